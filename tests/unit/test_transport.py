"""Unit tests for CompletionTransport."""

import json

import httpx
import pytest

from conftest import ScriptedAPI, completion_body, make_transport, sse_frames
from tweetrater.llm.requests import build_rating_request
from tweetrater.models.config import ModelConfig
from tweetrater.services.exceptions import ParseError, RatingTimeoutError, TransportError


@pytest.fixture
def request_model():
    return build_rating_request(ModelConfig(model="test/model"), "42", "[TWEET 42]\n Author:@a:\nhi", [], False)


class TestComplete:
    """Test non-streaming completion requests."""

    @pytest.mark.asyncio
    async def test_posts_payload_and_returns_body(self, request_model):
        """Test the request body and headers sent, and the parsed body returned."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["payload"] = json.loads(request.content)
            return httpx.Response(200, json=completion_body("ok SCORE_4"))

        transport = make_transport(handler)
        response = await transport.complete(request_model, "sk-test")

        assert response.status_code == 200
        assert response.body["choices"][0]["message"]["content"] == "ok SCORE_4"
        assert seen["url"] == "https://openrouter.ai/api/v1/chat/completions"
        assert seen["headers"]["authorization"] == "Bearer sk-test"
        assert seen["headers"]["x-title"] == "TweetFilter-AI"
        assert seen["payload"]["model"] == "test/model"
        assert seen["payload"]["provider"] == {"sort": "throughput", "allow_fallbacks": True}
        assert "stream" not in seen["payload"]

    @pytest.mark.asyncio
    async def test_non_2xx_raises_transport_error(self, request_model):
        """Test an HTTP error status becomes TransportError with the status."""
        transport = make_transport(ScriptedAPI((500, "upstream exploded")))

        with pytest.raises(TransportError) as exc_info:
            await transport.complete(request_model, "sk-test")

        assert exc_info.value.status_code == 500
        assert "upstream exploded" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_invalid_json_raises_parse_error(self, request_model):
        """Test a non-JSON body becomes ParseError."""
        transport = make_transport(lambda request: httpx.Response(200, text="<html>oops</html>"))

        with pytest.raises(ParseError):
            await transport.complete(request_model, "sk-test")

    @pytest.mark.asyncio
    async def test_json_array_raises_parse_error(self, request_model):
        """Test a JSON body that is not an object becomes ParseError."""
        transport = make_transport(lambda request: httpx.Response(200, json=[1, 2]))

        with pytest.raises(ParseError):
            await transport.complete(request_model, "sk-test")

    @pytest.mark.asyncio
    async def test_connection_error_raises_transport_error(self, request_model):
        """Test connection failures never escape as httpx exceptions."""
        def handler(request):
            raise httpx.ConnectError("connection refused")

        transport = make_transport(handler)

        with pytest.raises(TransportError) as exc_info:
            await transport.complete(request_model, "sk-test")

        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_timeout_raises_rating_timeout(self, request_model):
        """Test request timeouts become RatingTimeoutError."""
        def handler(request):
            raise httpx.ReadTimeout("read timed out")

        transport = make_transport(handler)

        with pytest.raises(RatingTimeoutError):
            await transport.complete(request_model, "sk-test")


class TestStream:
    """Test streaming completion requests."""

    @pytest.mark.asyncio
    async def test_yields_raw_text_and_sets_stream_flag(self, request_model):
        """Test streamed text is passed through and stream:true is sent."""
        api = ScriptedAPI(sse_frames("a", "b"))
        transport = make_transport(api)

        text = "".join([chunk async for chunk in transport.stream(request_model, "sk-test")])

        assert text == sse_frames("a", "b")
        assert api.payloads[0]["stream"] is True

    @pytest.mark.asyncio
    async def test_non_2xx_raises_before_yielding(self, request_model):
        """Test an HTTP error on a stream raises TransportError."""
        transport = make_transport(ScriptedAPI((429, "rate limited")))

        with pytest.raises(TransportError) as exc_info:
            async for _ in transport.stream(request_model, "sk-test"):
                pass

        assert exc_info.value.status_code == 429


class TestListModels:
    """Test model list retrieval."""

    @pytest.mark.asyncio
    async def test_returns_models_and_passes_order(self):
        """Test data.models is returned and the sort order sent as `order`."""
        seen = {}

        def handler(request):
            seen["order"] = request.url.params.get("order")
            return httpx.Response(200, json={"data": {"models": [{"slug": "a/b"}]}})

        transport = make_transport(handler)
        models = await transport.list_models("sk-test", "pricing-low-to-high")

        assert models == [{"slug": "a/b"}]
        assert seen["order"] == "pricing-low-to-high"

    @pytest.mark.asyncio
    async def test_missing_models_key_returns_empty(self):
        """Test an unexpected body shape yields an empty list."""
        transport = make_transport(lambda request: httpx.Response(200, json={"data": {}}))

        assert await transport.list_models("sk-test", "throughput-high-to-low") == []

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        """Test an HTTP error fetching models raises TransportError."""
        transport = make_transport(lambda request: httpx.Response(401, text="bad key"))

        with pytest.raises(TransportError):
            await transport.list_models("sk-test", "throughput-high-to-low")
