"""Serpstat keyword-data client.

Implements the provider contract consumed by the estimation engine:

- ``get_volume(keyword, region)``      → VolumeDatum
- ``get_related(keyword, region)``     → list[VolumeDatum]
- ``get_suggestions(seed, region)``    → list[VolumeDatum]

Rules
-----
- Requests start at least ``rate_limit_delay`` seconds apart, also across
  threads sharing one client
- Retries with exponential back-off on transport errors and 429/5xx
- Response shapes are resolved here; callers only ever see VolumeDatum
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import httpx

from ..constants import SOURCE_TAG
from ..errors import (
    ConfigurationError,
    ProviderAuthenticationError,
    ProviderConnectionError,
    ProviderError,
    ProviderRateLimitError,
)
from ..schemas.volume_schema import VolumeDatum
from ..settings import Settings
from .http_client import RetryConfig, build_client, is_retryable_error
from .variant_generator import validate_prompt

logger = logging.getLogger(__name__)

_VOLUME_METHOD = "SerpstatKeywordProcedure.getKeywordsInfo"


# ===================================================================== #
#  Response shapes                                                        #
# ===================================================================== #

class VolumeResponseShape(str, Enum):
    """Known layouts of a keyword-volume response."""

    RESULT_DATA = "result_data"    # {"result": {"data": [{...}, ...]}}
    RESULT_LIST = "result_list"    # {"result": [{...}, ...]}
    KEYWORD_MAP = "keyword_map"    # {"result": {"<keyword>": {...}}}
    EMPTY = "empty"


@dataclass(frozen=True)
class _FieldMap:
    search_volume: str
    cpc: str
    competition: str
    results_count: str


_FIELD_MAPS: Dict[VolumeResponseShape, _FieldMap] = {
    VolumeResponseShape.RESULT_DATA: _FieldMap(
        "region_queries_count", "cost", "concurrency", "found_results"
    ),
    VolumeResponseShape.RESULT_LIST: _FieldMap(
        "region_queries_count", "cpc", "competitive_difficulty", "results_count"
    ),
    VolumeResponseShape.KEYWORD_MAP: _FieldMap("sv", "cpc", "comp", "results"),
}

# Related / suggestion items always use the short field names.
_LIST_FIELD_MAP = _FIELD_MAPS[VolumeResponseShape.KEYWORD_MAP]


def classify_volume_response(payload: Any) -> VolumeResponseShape:
    """Decide which layout *payload* uses."""
    if not isinstance(payload, dict):
        return VolumeResponseShape.EMPTY
    result = payload.get("result")
    if isinstance(result, dict) and isinstance(result.get("data"), list):
        return VolumeResponseShape.RESULT_DATA
    if isinstance(result, list):
        return VolumeResponseShape.RESULT_LIST
    if isinstance(result, dict):
        return VolumeResponseShape.KEYWORD_MAP
    return VolumeResponseShape.EMPTY


def _find_item(items: List[Any], keyword: str) -> Dict[str, Any]:
    for item in items:
        if isinstance(item, dict) and item.get("keyword") == keyword:
            return item
    return {}


def _datum_from(item: Dict[str, Any], keyword: str, fields: _FieldMap) -> VolumeDatum:
    trend = item.get("trend") or []
    return VolumeDatum(
        keyword=keyword,
        search_volume=int(item.get(fields.search_volume) or 0),
        cpc=float(item.get(fields.cpc) or 0.0),
        competition=float(item.get(fields.competition) or 0.0),
        results_count=int(item.get(fields.results_count) or 0),
        trend=trend if isinstance(trend, list) else [],
        source=SOURCE_TAG,
    )


def parse_volume_response(payload: Any, keyword: str) -> VolumeDatum:
    """Turn a volume response of any known shape into a VolumeDatum."""
    shape = classify_volume_response(payload)
    if shape is VolumeResponseShape.EMPTY:
        return _datum_from({}, keyword, _LIST_FIELD_MAP)

    result = payload["result"]
    if shape is VolumeResponseShape.RESULT_DATA:
        item = _find_item(result["data"], keyword)
    elif shape is VolumeResponseShape.RESULT_LIST:
        item = _find_item(result, keyword)
    else:
        item = result.get(keyword) or {}
    return _datum_from(item, keyword, _FIELD_MAPS[shape])


def parse_keyword_list(payload: Any, list_key: str) -> List[VolumeDatum]:
    """Parse ``{"result": {<list_key>: [...]}}`` into VolumeDatum items."""
    if not isinstance(payload, dict):
        return []
    result = payload.get("result") or {}
    items = result.get(list_key) if isinstance(result, dict) else None
    if not isinstance(items, list):
        return []
    return [
        _datum_from(item, item.get("keyword") or "", _LIST_FIELD_MAP)
        for item in items
        if isinstance(item, dict)
    ]


# ===================================================================== #
#  Client                                                                 #
# ===================================================================== #

class SerpstatClient:
    """Synchronous, rate-limited Serpstat API client."""

    def __init__(
        self,
        settings: Settings,
        *,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings
        config = settings.providers.serpstat
        self.api_key = settings.serpstat_api_key
        if not self.api_key:
            raise ConfigurationError(
                "Serpstat API key missing: set providers.serpstat.api_key or SERPSTAT_API_KEY"
            )
        self.base_url = config.base_url.rstrip("/")
        self.rate_limit_delay = config.rate_limit_delay
        self._http = build_client(timeout=config.timeout, transport=transport)
        self._sleep = sleep
        self._clock = clock
        self._last_request_at: Optional[float] = None
        self._rate_lock = threading.Lock()

    # ------------------------------------------------------------------ #
    #  Provider contract                                                   #
    # ------------------------------------------------------------------ #
    def get_volume(self, keyword: str, region: Optional[str] = None) -> VolumeDatum:
        validate_prompt(keyword, "keyword")
        region = region or self.settings.default_region
        logger.debug("Fetching keyword volume keyword=%r region=%s", keyword, region)

        payload = self._post_jsonrpc(
            _VOLUME_METHOD,
            {"keywords": [keyword], "se": self._search_engine(region)},
        )
        return parse_volume_response(payload, keyword)

    def get_related(self, keyword: str, region: Optional[str] = None) -> List[VolumeDatum]:
        validate_prompt(keyword, "keyword")
        region = region or self.settings.default_region
        logger.debug("Fetching related keywords keyword=%r region=%s", keyword, region)

        payload = self._get(
            "related",
            {"q": keyword, "se": self._search_engine(region), "loc": region},
        )
        return parse_keyword_list(payload, "related")

    def get_suggestions(self, seed: str, region: Optional[str] = None) -> List[VolumeDatum]:
        validate_prompt(seed, "seed_keyword")
        region = region or self.settings.default_region
        logger.debug("Fetching keyword suggestions seed=%r region=%s", seed, region)

        payload = self._get(
            "suggest",
            {"q": seed, "se": self._search_engine(region), "loc": region},
        )
        return parse_keyword_list(payload, "suggestions")

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "SerpstatClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    #  Transport                                                           #
    # ------------------------------------------------------------------ #
    @staticmethod
    def _search_engine(region: str) -> str:
        return f"g_{region.lower()}"

    def _post_jsonrpc(self, method: str, params: Dict[str, Any]) -> Any:
        body = {"jsonrpc": "2.0", "method": method, "params": params, "id": 1}
        payload = self._request(
            lambda: self._http.post(
                self.base_url,
                params={"token": self.api_key},
                json=body,
            )
        )
        if isinstance(payload, dict) and payload.get("error"):
            error = payload["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise ProviderError(f"Serpstat JSON-RPC error: {message}")
        return payload

    def _get(self, endpoint: str, params: Dict[str, Any]) -> Any:
        query = dict(params, token=self.api_key)
        return self._request(lambda: self._http.get(f"{self.base_url}/{endpoint}", params=query))

    def _ensure_rate_limit(self) -> None:
        # held while sleeping so concurrent callers queue behind each other
        with self._rate_lock:
            if self._last_request_at is not None:
                elapsed = self._clock() - self._last_request_at
                if elapsed < self.rate_limit_delay:
                    wait = self.rate_limit_delay - elapsed
                    logger.debug("Rate limiting, sleeping %.2fs", wait)
                    self._sleep(wait)
            self._last_request_at = self._clock()

    def _request(self, send: Callable[[], httpx.Response]) -> Any:
        """Send with retries, then map the final response to JSON or an error."""
        response: Optional[httpx.Response] = None
        for attempt in range(1, RetryConfig.MAX_ATTEMPTS + 1):
            self._ensure_rate_limit()
            try:
                response = send()
            except httpx.TransportError as exc:
                logger.warning("Serpstat transport error (attempt %d): %s", attempt, exc)
                if attempt == RetryConfig.MAX_ATTEMPTS:
                    raise ProviderConnectionError(f"Serpstat connection failed: {exc}") from exc
            else:
                if not is_retryable_error(response.status_code):
                    break
                logger.warning(
                    "Serpstat HTTP %d (attempt %d)", response.status_code, attempt
                )
            if attempt < RetryConfig.MAX_ATTEMPTS:
                self._sleep(RetryConfig.BASE_DELAY * (2 ** (attempt - 1)))

        return self._handle_response(response)

    @staticmethod
    def _handle_response(response: httpx.Response) -> Any:
        code = response.status_code
        if response.is_success:
            try:
                return response.json()
            except ValueError as exc:
                raise ProviderError(f"Invalid JSON response: {exc}", status_code=code) from exc
        if code == 429:
            raise ProviderRateLimitError("Serpstat API rate limit exceeded", status_code=code)
        if code in (401, 403):
            raise ProviderAuthenticationError("Invalid Serpstat API key", status_code=code)
        if code == 400:
            raise ProviderError(f"Bad request: {response.text}", status_code=code)
        if code >= 500:
            raise ProviderConnectionError(f"Serpstat server error: {code}", status_code=code)
        raise ProviderError(f"Unexpected response: {code} - {response.text}", status_code=code)
