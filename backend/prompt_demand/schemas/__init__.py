# Schemas package
from .variant_schema import Variant, VariantCategory, VariantSet
from .volume_schema import VolumeDatum
from .estimate_schema import (
    BatchEstimateRequest,
    EstimateBreakdown,
    EstimateRequest,
    EstimationMetadata,
    EstimationResult,
    KeywordListMetadata,
    KeywordListResult,
)

__all__ = [
    "Variant",
    "VariantCategory",
    "VariantSet",
    "VolumeDatum",
    "EstimateBreakdown",
    "EstimationMetadata",
    "EstimationResult",
    "KeywordListMetadata",
    "KeywordListResult",
    "EstimateRequest",
    "BatchEstimateRequest",
]
