"""Shared test doubles: settings builder and an in-memory keyword provider."""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from prompt_demand.errors import ProviderConnectionError
from prompt_demand.schemas.volume_schema import VolumeDatum
from prompt_demand.settings import Settings, settings_from_dict


def make_settings(**sections) -> Settings:
    """Settings with deterministic test defaults; keyword args replace whole sections."""
    data = {
        "providers": {
            "serpstat": {
                "enabled": True,
                "api_key": "test_key",
                "default_region": "us",
                "rate_limit_delay": 0.0,
            }
        },
        "normalize": {"max_variants": 15, "stopwords": ["the", "a", "an", "and", "or", "but", "to"]},
        "estimate": {
            "weights": {"head": 0.5, "mid": 0.3, "long": 0.2},
            "locale_bias": {"us": 1.0, "tr": 0.9},
            "confidence": {"base_score": 0.5, "source_bonus": 0.1, "variant_bonus": 0.2},
        },
        "cache": {"enabled": True, "ttl_seconds": 3600, "max_size": 100},
        "output": {"topN": 10},
    }
    data.update(sections)
    return settings_from_dict(data)


class FakeProvider:
    """Keyword provider that answers from a dict and records every call."""

    def __init__(
        self,
        volumes=None,
        default_volume=100,
        competition=0.5,
        source="serpstat",
        fail_for=(),
        related=None,
        suggestions=None,
        list_error=None,
    ):
        self.volumes = volumes or {}
        self.default_volume = default_volume
        self.competition = competition
        self.source = source
        self.fail_for = fail_for
        self.related = related or []
        self.suggestions = suggestions or []
        self.list_error = list_error
        self.calls = []

    def get_volume(self, keyword, region):
        self.calls.append((keyword, region))
        if any(marker in keyword for marker in self.fail_for):
            raise ProviderConnectionError(f"lookup failed for {keyword}")
        return VolumeDatum(
            keyword=keyword,
            search_volume=self.volumes.get(keyword, self.default_volume),
            cpc=1.5,
            competition=self.competition,
            results_count=1000,
            source=self.source,
        )

    def get_related(self, keyword, region):
        self.calls.append(("related", keyword, region))
        if self.list_error:
            raise self.list_error
        return list(self.related)

    def get_suggestions(self, seed, region):
        self.calls.append(("suggestions", seed, region))
        if self.list_error:
            raise self.list_error
        return list(self.suggestions)
