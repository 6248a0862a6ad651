"""Deterministic Keyword Variant Generator.

Expands a natural-language prompt into head, mid and long keyword variants
that are sent to the keyword-data provider.

Rules
-----
- NO external API calls
- NO randomness
- Pure transformation: same prompt + stopwords → same VariantSet
"""

from __future__ import annotations

import re
from typing import Iterable, List

from ..constants import (
    HEAD_MAX_BIGRAMS,
    HEAD_SINGLE_WORDS,
    MID_MAX_TRIGRAMS,
    QUESTION_MARK,
    QUESTION_STARTERS,
    TASK_PHRASES,
)
from ..errors import ValidationError
from ..schemas.variant_schema import Variant, VariantCategory, VariantSet

# Anything that is not a letter, digit or whitespace (\w also admits "_").
_NON_WORD = re.compile(r"[^\w\s]|_")
_WHITESPACE = re.compile(r"\s+")


# ===================================================================== #
#  Text helpers                                                           #
# ===================================================================== #

def clean_text(text: str) -> str:
    """Lowercase, replace punctuation with spaces and collapse whitespace.

    Idempotent: ``clean_text(clean_text(x)) == clean_text(x)``.
    """
    text = _NON_WORD.sub(" ", text.lower())
    return _WHITESPACE.sub(" ", text).strip()


def tokenize(text: str) -> List[str]:
    return text.split()


def remove_stopwords(words: Iterable[str], stopwords: Iterable[str]) -> List[str]:
    stop = set(stopwords)
    return [word for word in words if word not in stop]


def _dedupe(items: Iterable[str]) -> List[str]:
    """Return *items* with duplicates removed, preserving first-seen order."""
    return list(dict.fromkeys(items))


# ===================================================================== #
#  Per-category builders                                                  #
# ===================================================================== #

def head_variants(words: List[str]) -> List[str]:
    """First three words, then up to three adjacent bigrams."""
    if not words:
        return []

    variants = list(words[:HEAD_SINGLE_WORDS])
    if len(words) >= 2:
        for i in range(min(len(words) - 1, HEAD_MAX_BIGRAMS)):
            variants.append(f"{words[i]} {words[i + 1]}")
    return _dedupe(variants)


def mid_variants(words: List[str]) -> List[str]:
    """Up to four trigrams, then every task phrase + word pairing."""
    if len(words) < 2:
        return []

    variants = [
        " ".join(words[i:i + 3])
        for i in range(min(len(words) - 2, MID_MAX_TRIGRAMS))
    ]
    for word in words:
        for phrase in TASK_PHRASES:
            variants.append(f"{phrase} {word}")
    return _dedupe(variants)


def long_variants(cleaned_prompt: str, words: List[str]) -> List[str]:
    """Question forms of the whole phrase plus best-practice/tips forms."""
    if not words:
        return []

    phrase = " ".join(words)
    variants = [f"{starter} {phrase}" for starter in QUESTION_STARTERS]

    if not cleaned_prompt.endswith(QUESTION_MARK):
        variants.append(f"{cleaned_prompt}{QUESTION_MARK}")

    if len(words) >= 2:
        lead = " ".join(words[:2])
        variants.append(f"best practices for {lead}")
        variants.append(f"tips for {lead}")

    return _dedupe(variants)


# ===================================================================== #
#  Public API                                                             #
# ===================================================================== #

def validate_prompt(prompt: object, field_name: str = "prompt") -> str:
    """Return *prompt* if it is a non-blank string, else raise ValidationError."""
    if prompt is None or (hasattr(prompt, "__len__") and len(prompt) == 0):
        raise ValidationError(f"{field_name} cannot be blank")
    if not isinstance(prompt, str):
        raise ValidationError(f"{field_name} must be a string")
    if not prompt.strip():
        raise ValidationError(f"{field_name} cannot be blank")
    return prompt


def generate_variants(prompt: str, stopwords: Iterable[str] = ()) -> VariantSet:
    """Expand *prompt* into an unbounded :class:`VariantSet`.

    Parameters
    ----------
    prompt:
        Free-text prompt.  Must be a non-blank string.
    stopwords:
        Lowercase tokens dropped before variants are built.

    Raises
    ------
    ValidationError
        *prompt* is blank or not a string.
    """
    validate_prompt(prompt)

    cleaned = clean_text(prompt)
    words = remove_stopwords(tokenize(cleaned), stopwords)

    def _wrap(texts: List[str], category: VariantCategory) -> List[Variant]:
        return [Variant(text=text, category=category, prompt=prompt) for text in texts]

    return VariantSet(
        head=_wrap(head_variants(words), VariantCategory.HEAD),
        mid=_wrap(mid_variants(words), VariantCategory.MID),
        long=_wrap(long_variants(cleaned, words), VariantCategory.LONG),
    )
