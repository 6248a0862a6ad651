from __future__ import annotations

from enum import Enum
from typing import Dict, Iterator, List, Tuple

from pydantic import BaseModel, ConfigDict, Field


class VariantCategory(str, Enum):
    """Keyword variant classes, in generation priority order."""

    HEAD = "head"   # short, high-volume
    MID = "mid"     # medium length, task-oriented
    LONG = "long"   # long-tail / question form


class Variant(BaseModel):
    """A generated keyword phrase.  Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(..., description="Keyword phrase sent to the provider")
    category: VariantCategory
    prompt: str = Field(..., description="Original prompt the variant derives from")


class VariantSet(BaseModel):
    """Head, mid and long variants.

    Order inside each list reflects generation priority.  Each list is
    deduplicated; the same phrase may appear in more than one list.
    """

    head: List[Variant] = Field(default_factory=list)
    mid: List[Variant] = Field(default_factory=list)
    long: List[Variant] = Field(default_factory=list)

    def by_category(self, category: VariantCategory | str) -> List[Variant]:
        return getattr(self, VariantCategory(category).value)

    def items(self) -> Iterator[Tuple[VariantCategory, List[Variant]]]:
        """Yield ``(category, variants)`` in head, mid, long order."""
        for category in VariantCategory:
            yield category, self.by_category(category)

    def texts(self, category: VariantCategory | str) -> List[str]:
        return [variant.text for variant in self.by_category(category)]

    def as_dict(self) -> Dict[str, List[str]]:
        return {category.value: self.texts(category) for category in VariantCategory}

    @property
    def total(self) -> int:
        return len(self.head) + len(self.mid) + len(self.long)
