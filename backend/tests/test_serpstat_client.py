"""Serpstat client tests — request shape, response parsing, retries, rate limiting.

All HTTP traffic goes through ``httpx.MockTransport``; no network access.
"""

import os
import sys

# Ensure the backend package is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import json
import threading

import httpx
import pytest

from fakes import make_settings
from prompt_demand.errors import (
    ConfigurationError,
    ProviderAuthenticationError,
    ProviderConnectionError,
    ProviderError,
    ProviderRateLimitError,
    ValidationError,
)
from prompt_demand.services.serpstat_client import (
    SerpstatClient,
    VolumeResponseShape,
    classify_volume_response,
    parse_keyword_list,
    parse_volume_response,
)


class Recorder:
    """MockTransport handler replaying queued responses and recording requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        # fresh copy, a response instance can only be sent once
        return httpx.Response(
            response.status_code,
            content=response.content,
            headers=response.headers,
        )


def _client(recorder, settings=None, sleeps=None, clock=None):
    kwargs = {}
    if clock is not None:
        kwargs["clock"] = clock
    return SerpstatClient(
        settings or make_settings(),
        transport=httpx.MockTransport(recorder),
        sleep=(sleeps.append if sleeps is not None else (lambda seconds: None)),
        **kwargs,
    )


def _ok(payload):
    return httpx.Response(200, json=payload)


KEYWORD_MAP_PAYLOAD = {"result": {"test": {"sv": 50, "cpc": 0.5, "comp": 0.1, "results": 10}}}


# ===================================================================== #
#  Response parsing                                                       #
# ===================================================================== #

class TestParseVolumeResponse:
    def test_result_data_shape(self):
        payload = {
            "result": {
                "data": [
                    {"keyword": "other", "region_queries_count": 1},
                    {
                        "keyword": "test",
                        "region_queries_count": 1200,
                        "cost": 1.5,
                        "concurrency": 0.3,
                        "found_results": 5000,
                        "trend": [1, 2, 3],
                    },
                ]
            }
        }
        assert classify_volume_response(payload) is VolumeResponseShape.RESULT_DATA

        datum = parse_volume_response(payload, "test")
        assert datum.keyword == "test"
        assert datum.search_volume == 1200
        assert datum.cpc == 1.5
        assert datum.competition == 0.3
        assert datum.results_count == 5000
        assert datum.trend == [1, 2, 3]
        assert datum.source == "serpstat"

    def test_result_list_shape(self):
        payload = {
            "result": [
                {
                    "keyword": "test",
                    "region_queries_count": 800,
                    "cpc": 2.0,
                    "competitive_difficulty": 0.7,
                    "results_count": 100,
                }
            ]
        }
        assert classify_volume_response(payload) is VolumeResponseShape.RESULT_LIST

        datum = parse_volume_response(payload, "test")
        assert datum.search_volume == 800
        assert datum.cpc == 2.0
        assert datum.competition == 0.7
        assert datum.results_count == 100

    def test_keyword_map_shape(self):
        assert classify_volume_response(KEYWORD_MAP_PAYLOAD) is VolumeResponseShape.KEYWORD_MAP

        datum = parse_volume_response(KEYWORD_MAP_PAYLOAD, "test")
        assert datum.search_volume == 50
        assert datum.cpc == 0.5
        assert datum.competition == 0.1
        assert datum.results_count == 10

    @pytest.mark.parametrize("payload", [{}, {"result": None}, [], "nope", None])
    def test_empty_shape_gives_zeroed_datum(self, payload):
        assert classify_volume_response(payload) is VolumeResponseShape.EMPTY

        datum = parse_volume_response(payload, "test")
        assert datum.keyword == "test"
        assert datum.search_volume == 0
        assert datum.cpc == 0.0
        assert datum.competition == 0.0
        assert datum.error is None

    def test_keyword_absent_from_list_gives_zeros(self):
        payload = {"result": {"data": [{"keyword": "other", "region_queries_count": 10}]}}
        assert parse_volume_response(payload, "test").search_volume == 0

    def test_null_metrics_become_zero(self):
        payload = {"result": {"test": {"sv": None, "cpc": None, "comp": None}}}
        datum = parse_volume_response(payload, "test")
        assert datum.search_volume == 0
        assert datum.cpc == 0.0


class TestParseKeywordList:
    def test_related_items(self):
        payload = {
            "result": {
                "related": [
                    {"keyword": "a", "sv": 10, "cpc": 1.0, "comp": 0.2},
                    {"keyword": "b", "sv": 20},
                    "garbage",
                ]
            }
        }
        items = parse_keyword_list(payload, "related")

        assert [i.keyword for i in items] == ["a", "b"]
        assert items[0].cpc == 1.0
        assert items[1].search_volume == 20
        assert all(i.source == "serpstat" for i in items)

    @pytest.mark.parametrize(
        "payload",
        [{}, {"result": None}, {"result": {"related": None}}, {"result": []}, "nope"],
    )
    def test_missing_list_is_empty(self, payload):
        assert parse_keyword_list(payload, "related") == []


# ===================================================================== #
#  Requests                                                               #
# ===================================================================== #

class TestGetVolume:
    def test_request_shape(self):
        recorder = Recorder(_ok(KEYWORD_MAP_PAYLOAD))
        datum = _client(recorder).get_volume("test", "TR")

        assert datum.search_volume == 50
        request = recorder.requests[0]
        assert request.method == "POST"
        assert request.url.path == "/v4"
        assert request.url.params["token"] == "test_key"
        assert request.headers["user-agent"].startswith("PromptDemandEstimator")
        assert json.loads(request.content) == {
            "jsonrpc": "2.0",
            "method": "SerpstatKeywordProcedure.getKeywordsInfo",
            "params": {"keywords": ["test"], "se": "g_tr"},
            "id": 1,
        }

    def test_default_region(self):
        recorder = Recorder(_ok(KEYWORD_MAP_PAYLOAD))
        _client(recorder).get_volume("test")

        body = json.loads(recorder.requests[0].content)
        assert body["params"]["se"] == "g_us"

    def test_api_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("SERPSTAT_API_KEY", "env_key")
        settings = make_settings(providers={"serpstat": {"enabled": True, "rate_limit_delay": 0}})
        recorder = Recorder(_ok(KEYWORD_MAP_PAYLOAD))

        _client(recorder, settings).get_volume("test")

        assert recorder.requests[0].url.params["token"] == "env_key"

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.delenv("SERPSTAT_API_KEY", raising=False)
        settings = make_settings(providers={"serpstat": {"enabled": True}})

        with pytest.raises(ConfigurationError):
            SerpstatClient(settings)

    @pytest.mark.parametrize("keyword", ["", "   ", None])
    def test_blank_keyword(self, keyword):
        recorder = Recorder(_ok(KEYWORD_MAP_PAYLOAD))
        with pytest.raises(ValidationError):
            _client(recorder).get_volume(keyword)
        assert recorder.requests == []

    def test_jsonrpc_error(self):
        recorder = Recorder(_ok({"error": {"code": -32602, "message": "Invalid token"}}))
        with pytest.raises(ProviderError, match="Invalid token"):
            _client(recorder).get_volume("test")


class TestKeywordListRequests:
    def test_related_request(self):
        payload = {"result": {"related": [{"keyword": "test tips", "sv": 30}]}}
        recorder = Recorder(_ok(payload))

        items = _client(recorder).get_related("test", "de")

        assert [i.keyword for i in items] == ["test tips"]
        request = recorder.requests[0]
        assert request.method == "GET"
        assert request.url.path == "/v4/related"
        assert request.url.params["q"] == "test"
        assert request.url.params["se"] == "g_de"
        assert request.url.params["loc"] == "de"
        assert request.url.params["token"] == "test_key"

    def test_suggestions_request(self):
        payload = {"result": {"suggestions": [{"keyword": "test a"}, {"keyword": "test b"}]}}
        recorder = Recorder(_ok(payload))

        items = _client(recorder).get_suggestions("test")

        assert [i.keyword for i in items] == ["test a", "test b"]
        assert recorder.requests[0].url.path == "/v4/suggest"
        assert recorder.requests[0].url.params["se"] == "g_us"

    def test_blank_seed(self):
        recorder = Recorder(_ok({}))
        with pytest.raises(ValidationError, match="seed_keyword"):
            _client(recorder).get_suggestions("")


# ===================================================================== #
#  Error mapping and retries                                              #
# ===================================================================== #

class TestErrorHandling:
    def test_rate_limited_after_retries(self):
        sleeps = []
        recorder = Recorder(httpx.Response(429))

        with pytest.raises(ProviderRateLimitError) as exc_info:
            _client(recorder, sleeps=sleeps).get_volume("test")

        assert exc_info.value.status_code == 429
        assert len(recorder.requests) == 3
        assert sleeps == [1.0, 2.0]

    @pytest.mark.parametrize("code", [401, 403])
    def test_auth_errors_not_retried(self, code):
        sleeps = []
        recorder = Recorder(httpx.Response(code))

        with pytest.raises(ProviderAuthenticationError):
            _client(recorder, sleeps=sleeps).get_volume("test")

        assert len(recorder.requests) == 1
        assert sleeps == []

    def test_bad_request(self):
        recorder = Recorder(httpx.Response(400, text="missing keywords"))

        with pytest.raises(ProviderError, match="Bad request: missing keywords") as exc_info:
            _client(recorder).get_volume("test")

        assert exc_info.value.status_code == 400
        assert len(recorder.requests) == 1

    def test_unexpected_status(self):
        recorder = Recorder(httpx.Response(418, text="teapot"))
        with pytest.raises(ProviderError, match="Unexpected response: 418"):
            _client(recorder).get_volume("test")

    def test_server_error_after_retries(self):
        recorder = Recorder(httpx.Response(503))
        with pytest.raises(ProviderConnectionError, match="503"):
            _client(recorder).get_volume("test")
        assert len(recorder.requests) == 3

    def test_server_error_then_success(self):
        sleeps = []
        recorder = Recorder(httpx.Response(500), _ok(KEYWORD_MAP_PAYLOAD))

        datum = _client(recorder, sleeps=sleeps).get_volume("test")

        assert datum.search_volume == 50
        assert len(recorder.requests) == 2
        assert sleeps == [1.0]

    def test_connection_error_after_retries(self):
        sleeps = []
        recorder = Recorder(httpx.ConnectError("connection refused"))

        with pytest.raises(ProviderConnectionError, match="connection refused"):
            _client(recorder, sleeps=sleeps).get_volume("test")

        assert len(recorder.requests) == 3
        assert sleeps == [1.0, 2.0]

    def test_connection_error_then_success(self):
        recorder = Recorder(httpx.ReadTimeout("timed out"), _ok(KEYWORD_MAP_PAYLOAD))
        assert _client(recorder).get_volume("test").search_volume == 50

    def test_invalid_json(self):
        recorder = Recorder(httpx.Response(200, content=b"<html>not json</html>"))
        with pytest.raises(ProviderError, match="Invalid JSON"):
            _client(recorder).get_volume("test")


# ===================================================================== #
#  Rate limiting and lifecycle                                            #
# ===================================================================== #

class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class TestRateLimit:
    def test_requests_spaced_by_delay(self):
        clock = FakeClock()
        sleeps = []

        def sleep(seconds):
            sleeps.append(seconds)
            clock.advance(seconds)

        settings = make_settings(
            providers={"serpstat": {"enabled": True, "api_key": "k", "rate_limit_delay": 1.0}}
        )
        client = SerpstatClient(
            settings,
            transport=httpx.MockTransport(Recorder(_ok(KEYWORD_MAP_PAYLOAD))),
            sleep=sleep,
            clock=clock,
        )

        client.get_volume("test")
        assert sleeps == []

        client.get_volume("test")
        assert sleeps == [1.0]

        clock.advance(0.4)
        client.get_volume("test")
        assert sleeps[-1] == pytest.approx(0.6)

        clock.advance(5.0)
        client.get_volume("test")
        assert len(sleeps) == 2

    def test_concurrent_requests_are_spaced(self):
        clock = FakeClock()
        sleeps = []

        def sleep(seconds):
            sleeps.append(seconds)
            clock.advance(seconds)

        settings = make_settings(
            providers={"serpstat": {"enabled": True, "api_key": "k", "rate_limit_delay": 1.0}}
        )
        recorder = Recorder(_ok(KEYWORD_MAP_PAYLOAD))
        client = SerpstatClient(
            settings,
            transport=httpx.MockTransport(recorder),
            sleep=sleep,
            clock=clock,
        )
        start = threading.Barrier(4)

        def worker():
            start.wait()
            client.get_volume("test")

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        # one request goes straight out, each of the other three waits a full delay
        assert len(recorder.requests) == 4
        assert sleeps == [1.0, 1.0, 1.0]
        assert clock.now == 103.0

    def test_context_manager_closes_client(self):
        with _client(Recorder(_ok({}))) as client:
            assert not client._http.is_closed
        assert client._http.is_closed
