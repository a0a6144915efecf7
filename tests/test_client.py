"""
Test Suite for Suggestion Source Clients

Uses httpx.MockTransport, so no network traffic.
"""

import json
import httpx
import pytest
from src.collector import (
    ApifySuggestClient,
    GoogleSuggestClient,
    MAX_SUGGESTIONS,
    RetryConfig,
    SuggestionSourceError,
    create_client,
    group_actor_rows,
    parse_suggest_response,
)
from src.utils.config import Settings


def jsonp(query, suggestions):
    payload = json.dumps([query, [[s, 0, [512]] for s in suggestions], {"k": 1}])
    return f"window.google.ac.h({payload})"


# =============================================================================
# RESPONSE PARSING
# =============================================================================


class TestParseSuggestResponse:
    """Test suggest body parsing."""

    def test_jsonp(self):
        assert parse_suggest_response(jsonp("cold brew", ["cold brew recipe", "cold brew maker"])) == [
            "cold brew recipe",
            "cold brew maker",
        ]

    def test_plain_json(self):
        body = json.dumps(["cold brew", ["cold brew recipe", "  ", "cold brew ratio"]])
        assert parse_suggest_response(body) == ["cold brew recipe", "cold brew ratio"]

    def test_truncated_to_max(self):
        body = json.dumps(["q", [f"cold brew {i}" for i in range(20)]])
        assert len(parse_suggest_response(body)) == MAX_SUGGESTIONS

    def test_unexpected_shape_is_empty(self):
        assert parse_suggest_response(json.dumps({"error": "nope"})) == []

    def test_malformed_body(self):
        with pytest.raises(SuggestionSourceError):
            parse_suggest_response("<html>blocked</html>")


# =============================================================================
# GOOGLE CLIENT
# =============================================================================


class TestGoogleSuggestClient:
    """Test the single-query client."""

    @pytest.mark.asyncio
    async def test_fetch(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, text=jsonp("cold brew", ["cold brew recipe"]))

        async with GoogleSuggestClient(transport=httpx.MockTransport(handler), language="sv", country="SE") as client:
            suggestions = await client.fetch("cold brew")

        assert suggestions == ["cold brew recipe"]
        params = seen[0].url.params
        assert seen[0].url.path == "/complete/search"
        assert params["q"] == "cold brew"
        assert params["client"] == "youtube"
        assert params["ds"] == "yt"
        assert params["hl"] == "sv"
        assert params["gl"] == "SE"

    @pytest.mark.asyncio
    async def test_retries_server_errors(self, recording_sleep):
        responses = [httpx.Response(503), httpx.Response(200, text=jsonp("q", ["cold brew tips"]))]

        def handler(request):
            return responses.pop(0)

        client = GoogleSuggestClient(transport=httpx.MockTransport(handler), sleep=recording_sleep)
        try:
            assert await client.fetch("cold brew") == ["cold brew tips"]
        finally:
            await client.close()
        assert recording_sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, recording_sleep):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(404)

        client = GoogleSuggestClient(transport=httpx.MockTransport(handler), sleep=recording_sleep)
        try:
            with pytest.raises(SuggestionSourceError) as exc_info:
                await client.fetch("cold brew")
        finally:
            await client.close()

        assert exc_info.value.status_code == 404
        assert len(calls) == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_timeout_becomes_source_error(self, recording_sleep):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = GoogleSuggestClient(
            transport=httpx.MockTransport(handler),
            retry_config=RetryConfig(max_retries=2),
            sleep=recording_sleep,
        )
        try:
            with pytest.raises(SuggestionSourceError):
                await client.fetch("cold brew")
        finally:
            await client.close()
        assert recording_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_no_batch_support(self):
        client = GoogleSuggestClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        try:
            with pytest.raises(SuggestionSourceError):
                await client.fetch_many(["a", "b"])
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_closed_client(self):
        client = GoogleSuggestClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        await client.close()
        with pytest.raises(SuggestionSourceError):
            await client.fetch("cold brew")


# =============================================================================
# APIFY CLIENT
# =============================================================================


class TestApifySuggestClient:
    """Test the batch actor client."""

    @pytest.mark.asyncio
    async def test_fetch_many(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json=[
                {"seed": "cold brew a", "suggestion": "cold brew at home"},
                {"seed": "cold brew b", "suggestion": "cold brew bottles"},
                {"seed": "cold brew a", "suggestion": "cold brew at home"},
                {"seed": "cold brew a", "suggestion": "cold brew acidity"},
            ])

        async with ApifySuggestClient("secret", transport=httpx.MockTransport(handler)) as client:
            results = await client.fetch_many(["cold brew a", "cold brew b", "cold brew c"])

        assert results == {
            "cold brew a": ["cold brew at home", "cold brew acidity"],
            "cold brew b": ["cold brew bottles"],
            "cold brew c": [],
        }
        request = seen[0]
        assert request.method == "POST"
        assert request.url.params["token"] == "secret"
        assert json.loads(request.content)["queries"] == ["cold brew a", "cold brew b", "cold brew c"]

    def test_token_required(self):
        with pytest.raises(ValueError):
            ApifySuggestClient("")

    def test_group_rows_ignores_unknown_queries(self):
        grouped = group_actor_rows(["Cold Brew"], [
            {"query": "cold brew", "suggestion": "cold brew ratio"},
            {"seed": "iced tea", "suggestion": "iced tea recipe"},
            "not a row",
        ])
        assert grouped == {"Cold Brew": ["cold brew ratio"]}


# =============================================================================
# FACTORY
# =============================================================================


class TestCreateClient:
    """Test client selection from settings."""

    @pytest.mark.asyncio
    async def test_apify_without_token_falls_back(self):
        client = create_client(Settings(SUGGESTION_SOURCE="apify", APIFY_TOKEN=None))
        try:
            assert isinstance(client, GoogleSuggestClient)
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_apify_with_token(self):
        client = create_client(Settings(SUGGESTION_SOURCE="apify", APIFY_TOKEN="secret"))
        try:
            assert isinstance(client, ApifySuggestClient)
            assert client.supports_batch
        finally:
            await client.close()

    def test_unknown_source(self):
        with pytest.raises(ValueError):
            create_client(Settings(SUGGESTION_SOURCE="bing"))
