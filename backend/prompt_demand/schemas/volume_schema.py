from typing import Any, List, Optional

from pydantic import BaseModel, Field

from .variant_schema import VariantCategory


class VolumeDatum(BaseModel):
    """Market metrics for one keyword, as reported by the provider.

    ``error`` is set when the lookup failed; such a datum carries zeroed
    metrics and is excluded from aggregation.
    """

    keyword: str
    search_volume: Optional[int] = Field(default=0, ge=0)
    cpc: float = Field(default=0.0, ge=0.0)
    competition: Optional[float] = Field(default=0.0)
    results_count: int = Field(default=0, ge=0)
    trend: List[Any] = Field(default_factory=list)
    source: Optional[str] = None
    variant_type: Optional[VariantCategory] = None
    original_variant: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        """True when the datum can take part in volume aggregation."""
        return self.error is None and self.search_volume is not None
