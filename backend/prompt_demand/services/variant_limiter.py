"""Variant budget allocation.

Trims a :class:`VariantSet` to ``max_variants`` entries:

1. every category gets ``max_variants // 3`` slots
2. long slots go first to the question-mark, best-practices and tips
   variants (never more than the slot count), then to the remaining long
   variants in order
3. one pass over head, mid, long hands out leftover slots, each category
   taking at most ``remaining // 3`` more

Step 3 is a single pass, so the result can stay below the budget.
"""

from __future__ import annotations

from typing import Callable, List, Optional

from ..constants import BEST_PRACTICES_MARKER, QUESTION_MARK, TIPS_MARKER
from ..schemas.variant_schema import Variant, VariantSet

# Long variants kept ahead of the others, in priority order.
_LONG_PRIORITY: tuple[Callable[[str], bool], ...] = (
    lambda text: text.endswith(QUESTION_MARK),
    lambda text: BEST_PRACTICES_MARKER in text,
    lambda text: TIPS_MARKER in text,
)


def _first_match(variants: List[Variant], predicate: Callable[[str], bool]) -> Optional[Variant]:
    return next((v for v in variants if predicate(v.text)), None)


def _select_long(variants: List[Variant], slots: int) -> List[Variant]:
    """Priority long variants first, then fill up to *slots* in original order."""
    if not variants:
        return []

    selected: List[Variant] = []
    for predicate in _LONG_PRIORITY:
        if len(selected) >= slots:
            break
        match = _first_match(variants, predicate)
        if match is not None and match not in selected:
            selected.append(match)

    remaining = slots - len(selected)
    if remaining > 0:
        others = [v for v in variants if v not in selected]
        selected.extend(others[:remaining])
    return selected


def limit_variants(variants: VariantSet, max_variants: int) -> VariantSet:
    """Return *variants* trimmed to at most *max_variants* entries.

    No-op when the set already fits.
    """
    if variants.total <= max_variants:
        return variants

    base = max_variants // 3
    selected = {
        "head": list(variants.head[:base]),
        "mid": list(variants.mid[:base]),
        "long": _select_long(variants.long, base),
    }

    remaining = max_variants - sum(len(items) for items in selected.values())
    if remaining > 0:
        for category, source in variants.items():
            if remaining <= 0:
                break
            current = len(selected[category.value])
            additional = min(len(source) - current, remaining // 3)
            if additional > 0:
                chosen = selected[category.value]
                unselected = [v for v in source if v not in chosen]
                chosen.extend(unselected[:additional])
                remaining -= additional

    return VariantSet(**selected)
