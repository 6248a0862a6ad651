"""Prompt Demand Estimation Engine.

Orchestrates one estimation:

  prompt → variants → bounded variants → per-variant volume lookup
         → weighted per-category estimate → confidence score → cache

Rules
-----
- Bad input raises ValidationError before any cache access or I/O
- A failed variant lookup becomes a degraded VolumeDatum, never an exception
- A failed prompt in a batch becomes a degraded result, never an exception
- The cache is best-effort: a failing cache falls through to computation
"""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional, Protocol, Sequence

from ..cache import Cache
from ..constants import (
    COMPETITION_MAX_BONUS,
    CONFIDENCE_CAP,
    DATA_QUALITY_MAX_BONUS,
    SOURCE_TAG,
    VARIANT_COUNT_CAP,
)
from ..errors import ConfigurationError, ValidationError
from ..schemas.estimate_schema import (
    EstimateBreakdown,
    EstimationMetadata,
    EstimationResult,
    KeywordListMetadata,
    KeywordListResult,
)
from ..schemas.variant_schema import VariantCategory, VariantSet
from ..schemas.volume_schema import VolumeDatum
from ..settings import Settings
from ..timing import PipelineTimer
from .serpstat_client import SerpstatClient
from .variant_generator import generate_variants, validate_prompt
from .variant_limiter import limit_variants

logger = logging.getLogger(__name__)

ESTIMATE_OPERATION = "estimate_volume"
RELATED_OPERATION = "get_related_prompts"
SUGGESTIONS_OPERATION = "get_keyword_suggestions"


class KeywordDataProvider(Protocol):
    """Keyword-data collaborator consumed by the engine."""

    def get_volume(self, keyword: str, region: str) -> VolumeDatum: ...

    def get_related(self, keyword: str, region: str) -> List[VolumeDatum]: ...

    def get_suggestions(self, seed: str, region: str) -> List[VolumeDatum]: ...


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_cache_key(operation: str, prompt: str, region: str) -> str:
    """``<operation>:<md5 of lowercased, trimmed prompt>:<region>``."""
    digest = hashlib.md5(prompt.strip().lower().encode("utf-8")).hexdigest()
    return f"{operation}:{digest}:{region}"


class EstimationEngine:
    """Estimates search demand for prompts via a keyword-data provider."""

    def __init__(
        self,
        settings: Settings,
        provider: Optional[KeywordDataProvider] = None,
        cache: Optional[Cache] = None,
    ) -> None:
        self.settings = settings
        if provider is None:
            if not settings.provider_enabled(SOURCE_TAG):
                raise ConfigurationError(
                    "No keyword-data provider enabled: set providers.serpstat.enabled"
                )
            provider = SerpstatClient(settings)
        self.provider = provider
        self.cache = cache if cache is not None else Cache(
            ttl=settings.cache_ttl,
            max_size=settings.cache.max_size,
        )

    # ================================================================= #
    #  Public API                                                         #
    # ================================================================= #

    def estimate(self, prompt: str, region: Optional[str] = None) -> EstimationResult:
        """Estimate aggregate search demand for *prompt*.

        A cached result for the same prompt and region is returned as-is.

        Raises
        ------
        ValidationError
            *prompt* is blank or not a string.
        """
        validate_prompt(prompt)
        region = self.resolve_region(region)

        cache_key = build_cache_key(ESTIMATE_OPERATION, prompt, region)
        cached = self._cache_get(cache_key)
        if cached is not None:
            logger.info("Returning cached estimate prompt=%r region=%s", prompt, region)
            return cached

        logger.info("Starting volume estimation prompt=%r region=%s", prompt, region)
        timer = PipelineTimer("estimate")

        with timer.stage("variants"):
            variants = self.normalize(prompt)
        logger.info("Generated %d variants", variants.total)

        with timer.stage("volume_lookup"):
            volume_data = self.fetch_volume_data(variants, region)
        variants_with_data = sum(1 for d in volume_data if (d.search_volume or 0) > 0)
        logger.info(
            "Fetched volume data total=%d with_data=%d",
            len(volume_data),
            variants_with_data,
        )

        with timer.stage("scoring"):
            estimates = self.calculate_weighted_estimates(volume_data, region)
            confidence = self.calculate_confidence_score(variants, volume_data)
        logger.info(
            "Calculated estimates head=%.2f mid=%.2f long=%.2f total=%.2f",
            estimates.head,
            estimates.mid,
            estimates.long,
            estimates.total,
        )

        result = EstimationResult(
            prompt=prompt,
            region=region,
            estimates=estimates,
            confidence=confidence,
            variants=variants,
            volume_data=volume_data,
            metadata=EstimationMetadata(
                total_variants=variants.total,
                variants_with_data=variants_with_data,
                source=SOURCE_TAG,
                timestamp=_now_iso(),
            ),
        )
        timer.log()
        logger.info(
            "Volume estimation completed total=%.2f confidence=%.3f",
            estimates.total,
            confidence,
        )

        self._cache_set(cache_key, result)
        return result

    def estimate_batch(
        self,
        prompts: Sequence[Any],
        region: Optional[str] = None,
    ) -> List[EstimationResult]:
        """Estimate every prompt in order.

        A prompt that fails is represented by a zeroed result carrying
        ``error``; the batch itself never stops early.
        """
        if not isinstance(prompts, (list, tuple)):
            raise ValidationError("prompts must be a list")
        if not prompts:
            raise ValidationError("prompts cannot be blank")

        resolved_region = self.resolve_region(region)
        logger.info("Starting batch estimation count=%d region=%s", len(prompts), resolved_region)

        results: List[EstimationResult] = []
        for index, prompt in enumerate(prompts, start=1):
            try:
                result = self.estimate(prompt, region)
                logger.info(
                    "Processed prompt %d/%d estimate=%.2f",
                    index,
                    len(prompts),
                    result.estimates.total,
                )
            except Exception as exc:
                logger.error("Failed to estimate prompt %d/%d: %s", index, len(prompts), exc)
                result = EstimationResult(
                    prompt=prompt if isinstance(prompt, str) else repr(prompt),
                    region=resolved_region,
                    estimates=EstimateBreakdown(),
                    confidence=0.0,
                    error=str(exc),
                )
            results.append(result)

        failed = sum(1 for r in results if r.error)
        logger.info(
            "Batch estimation completed successful=%d failed=%d",
            len(results) - failed,
            failed,
        )
        return results

    def related_keywords(self, prompt: str, region: Optional[str] = None) -> KeywordListResult:
        """Keywords related to *prompt*, by descending search volume."""
        return self._keyword_list(RELATED_OPERATION, prompt, region)

    def keyword_suggestions(self, prompt: str, region: Optional[str] = None) -> KeywordListResult:
        """Provider suggestions seeded by *prompt*, by descending search volume."""
        return self._keyword_list(SUGGESTIONS_OPERATION, prompt, region)

    # ================================================================= #
    #  Pipeline steps                                                     #
    # ================================================================= #

    def resolve_region(self, region: Optional[str]) -> str:
        return region or self.settings.default_region

    def normalize(self, prompt: str) -> VariantSet:
        """Generate variants for *prompt* and trim them to ``max_variants``."""
        variants = generate_variants(prompt, self.settings.stopwords)
        limited = limit_variants(variants, self.settings.max_variants)
        logger.debug(
            "Normalized prompt head=%d mid=%d long=%d",
            len(limited.head),
            len(limited.mid),
            len(limited.long),
        )
        return limited

    def fetch_volume_data(self, variants: VariantSet, region: str) -> List[VolumeDatum]:
        """Look up every variant, in category then insertion order."""
        volume_data: List[VolumeDatum] = []
        for category, items in variants.items():
            for variant in items:
                try:
                    datum = self.provider.get_volume(variant.text, region)
                    datum = datum.model_copy(
                        update={"variant_type": category, "original_variant": variant.text}
                    )
                except Exception as exc:
                    logger.warning(
                        "Failed to fetch volume data variant=%r type=%s: %s",
                        variant.text,
                        category.value,
                        exc,
                    )
                    datum = VolumeDatum(
                        keyword=variant.text,
                        search_volume=0,
                        cpc=0.0,
                        competition=0.0,
                        results_count=0,
                        trend=[],
                        source=SOURCE_TAG,
                        variant_type=category,
                        original_variant=variant.text,
                        error=str(exc) or exc.__class__.__name__,
                    )
                volume_data.append(datum)
        return volume_data

    def calculate_weighted_estimates(
        self,
        volume_data: List[VolumeDatum],
        region: str,
    ) -> EstimateBreakdown:
        locale_bias = self.settings.locale_bias(region)
        per_category = {
            category.value: self.calculate_type_estimate(
                [d for d in volume_data if d.variant_type == category],
                self.settings.weight_for_type(category.value),
                locale_bias,
            )
            for category in VariantCategory
        }
        # total sums the rounded category values
        total = round(per_category["head"] + per_category["mid"] + per_category["long"], 2)
        return EstimateBreakdown(**per_category, total=total)

    @staticmethod
    def calculate_type_estimate(
        type_data: List[VolumeDatum],
        weight: float,
        locale_bias: float,
    ) -> float:
        """Average valid volume × weight × locale bias, rounded to 2 places."""
        valid = [d for d in type_data if d.is_valid]
        if not valid:
            return 0.0
        average_volume = sum(d.search_volume for d in valid) / len(valid)
        return round(average_volume * weight * locale_bias, 2)

    # ================================================================= #
    #  Confidence                                                         #
    # ================================================================= #

    def calculate_confidence_score(
        self,
        variants: VariantSet,
        volume_data: List[VolumeDatum],
    ) -> float:
        """Base score plus four bonuses, capped at 1.0 and rounded to 3 places."""
        base_score = self.settings.estimate.confidence.base_score
        total = (
            base_score
            + self._source_bonus(volume_data)
            + self._variant_bonus(variants)
            + self._data_quality_bonus(volume_data)
            + self._competition_bonus(volume_data)
        )
        return round(min(total, CONFIDENCE_CAP), 3)

    def _source_bonus(self, volume_data: List[VolumeDatum]) -> float:
        sources = {d.source for d in volume_data if d.source}
        return len(sources) * self.settings.estimate.confidence.source_bonus

    def _variant_bonus(self, variants: VariantSet) -> float:
        count = min(variants.total, VARIANT_COUNT_CAP)
        return count / float(VARIANT_COUNT_CAP) * self.settings.estimate.confidence.variant_bonus

    @staticmethod
    def _data_quality_bonus(volume_data: List[VolumeDatum]) -> float:
        valid = [d for d in volume_data if d.is_valid]
        if not valid:
            return 0.0
        with_volume = sum(1 for d in valid if d.search_volume > 0)
        return with_volume / len(volume_data) * DATA_QUALITY_MAX_BONUS

    @staticmethod
    def _competition_bonus(volume_data: List[VolumeDatum]) -> float:
        valid = [d for d in volume_data if d.error is None and d.competition is not None]
        if not valid:
            return 0.0
        average_competition = sum(d.competition for d in valid) / len(valid)
        return max(0.0, (1.0 - average_competition) * COMPETITION_MAX_BONUS)

    # ================================================================= #
    #  Related / suggestions                                              #
    # ================================================================= #

    def _keyword_list(
        self,
        operation: str,
        prompt: str,
        region: Optional[str],
    ) -> KeywordListResult:
        validate_prompt(prompt)
        region = self.resolve_region(region)

        cache_key = build_cache_key(operation, prompt, region)
        cached = self._cache_get(cache_key)
        if cached is not None:
            logger.info("Returning cached %s prompt=%r region=%s", operation, prompt, region)
            return cached

        fetch = (
            self.provider.get_related
            if operation == RELATED_OPERATION
            else self.provider.get_suggestions
        )
        logger.info("Fetching %s prompt=%r region=%s", operation, prompt, region)

        try:
            keywords = fetch(prompt, region)
        except Exception as exc:
            logger.error("Failed %s prompt=%r region=%s: %s", operation, prompt, region, exc)
            return KeywordListResult(
                prompt=prompt,
                region=region,
                keywords=[],
                source=SOURCE_TAG,
                metadata=KeywordListMetadata(total=0, source=SOURCE_TAG, timestamp=_now_iso()),
                error=str(exc) or exc.__class__.__name__,
            )

        ranked = sorted(keywords, key=lambda d: -(d.search_volume or 0))
        result = KeywordListResult(
            prompt=prompt,
            region=region,
            keywords=ranked,
            source=SOURCE_TAG,
            metadata=KeywordListMetadata(total=len(ranked), source=SOURCE_TAG, timestamp=_now_iso()),
        )
        self._cache_set(cache_key, result)
        return result

    # ================================================================= #
    #  Cache access (best-effort)                                         #
    # ================================================================= #

    def _cache_get(self, key: str) -> Any:
        if not self.settings.cache_enabled:
            return None
        try:
            return self.cache.get(key)
        except Exception as exc:
            logger.warning("Cache read failed key=%s: %s", key, exc)
            return None

    def _cache_set(self, key: str, value: Any) -> None:
        if not self.settings.cache_enabled:
            return
        try:
            self.cache.set(key, value)
        except Exception as exc:
            logger.warning("Cache write failed key=%s: %s", key, exc)
