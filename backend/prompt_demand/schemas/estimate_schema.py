from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .variant_schema import VariantSet
from .volume_schema import VolumeDatum


class EstimateBreakdown(BaseModel):
    """Weighted volume estimate per category.

    ``total`` is the sum of the already-rounded category values.
    """

    head: float = 0.0
    mid: float = 0.0
    long: float = 0.0
    total: float = 0.0


class EstimationMetadata(BaseModel):
    total_variants: int = 0
    variants_with_data: int = 0
    source: str = "serpstat"
    timestamp: str


class EstimationResult(BaseModel):
    """Outcome of one estimation.  Never mutated after creation."""

    model_config = ConfigDict(frozen=True)

    prompt: str
    region: str
    estimates: EstimateBreakdown
    confidence: float = Field(..., ge=0.0, le=1.0)
    variants: VariantSet = Field(default_factory=VariantSet)
    volume_data: List[VolumeDatum] = Field(default_factory=list)
    metadata: Optional[EstimationMetadata] = None
    error: Optional[str] = Field(
        default=None,
        description="Set on degraded batch entries whose estimation failed",
    )


class KeywordListMetadata(BaseModel):
    total: int = 0
    source: str = "serpstat"
    timestamp: str


class KeywordListResult(BaseModel):
    """Related keywords or suggestions, sorted by descending search volume."""

    model_config = ConfigDict(frozen=True)

    prompt: str
    region: str
    keywords: List[VolumeDatum] = Field(default_factory=list)
    source: str = "serpstat"
    metadata: KeywordListMetadata
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------
class EstimateRequest(BaseModel):
    """Request body for the single-prompt endpoints."""

    prompt: str = Field(
        ...,
        min_length=1,
        max_length=2000,
        description="Natural-language prompt to estimate demand for",
        examples=["how to optimize python code performance"],
    )
    region: Optional[str] = Field(
        default=None,
        max_length=8,
        description="Region code, e.g. 'us'.  Defaults to the configured region.",
    )


class BatchEstimateRequest(BaseModel):
    prompts: List[Any] = Field(..., min_length=1)
    region: Optional[str] = Field(default=None, max_length=8)
