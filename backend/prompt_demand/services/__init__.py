from .variant_generator import generate_variants
from .variant_limiter import limit_variants
from .serpstat_client import SerpstatClient
from .estimation_engine import EstimationEngine, build_cache_key

__all__ = [
    "generate_variants",
    "limit_variants",
    "SerpstatClient",
    "EstimationEngine",
    "build_cache_key",
]
