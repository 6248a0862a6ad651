"""Fixed algorithm parameters shared by the variant and scoring code.

These are NOT configuration: deployments tune weights, locale bias and
confidence constants through the YAML config, never the values below.
"""

from __future__ import annotations

# ── Variant generation ──────────────────────────────────────────────────
# Prefixed to every filtered token to build mid-tail variants.
TASK_PHRASES: tuple[str, ...] = (
    "how to",
    "what is",
    "best way",
    "optimize",
    "improve",
    "create",
    "build",
)

# Prefixed to the full filtered phrase to build long-tail variants.
QUESTION_STARTERS: tuple[str, ...] = (
    "how to",
    "what is",
    "when should",
    "where can",
    "why does",
)

HEAD_SINGLE_WORDS = 3      # first N tokens as standalone head variants
HEAD_MAX_BIGRAMS = 3       # bigrams starting at i = 0..2
MID_MAX_TRIGRAMS = 4       # trigrams starting at i = 0..3

# Long variants the limiter keeps before any others, in this order.
BEST_PRACTICES_MARKER = "best practices"
TIPS_MARKER = "tips for"
QUESTION_MARK = "?"

# ── Confidence scoring ──────────────────────────────────────────────────
VARIANT_COUNT_CAP = 20              # variant bonus saturates here
DATA_QUALITY_MAX_BONUS = 0.1
COMPETITION_MAX_BONUS = 0.05
CONFIDENCE_CAP = 1.0

# ── Result metadata ─────────────────────────────────────────────────────
SOURCE_TAG = "serpstat"
