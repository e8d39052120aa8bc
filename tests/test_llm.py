import asyncio

import httpx
import pytest
from anthropic import (
    APIConnectionError,
    APIError,
    APIResponseValidationError,
    APITimeoutError,
    InternalServerError,
)

from slipwise.llm import (
    OUTPUT_TOOL_NAME,
    EmptyModelOutput,
    InvocationTimeout,
    MalformedResponse,
    ModelClient,
    ServiceUnavailable,
    output_tool,
)
from slipwise.models import AnalyzeOutput, HumanizeOutput
from slipwise.prompts import SYSTEM_PROMPT

REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def _invoke(client, prompt="Rewrite this", model=HumanizeOutput):
    return asyncio.run(client.invoke(prompt, model))


class TestOutputTool:
    def test_schema_uses_wire_names(self):
        tool = output_tool(AnalyzeOutput)
        schema = tool["input_schema"]
        assert tool["name"] == OUTPUT_TOOL_NAME
        assert set(schema["properties"]) == {"tone", "clarityScore", "suggestions"}
        assert set(schema["required"]) == {"tone", "clarityScore", "suggestions"}


class TestModelClient:
    def test_requires_api_key_without_client(self):
        with pytest.raises(RuntimeError):
            ModelClient()

    def test_returns_tool_input(self, fake_sdk, tool_response):
        sdk = fake_sdk(response=tool_response({"humanizedMessage": "Quick note..."}))
        client = ModelClient(sdk, model="test-model", max_tokens=256)

        assert _invoke(client) == {"humanizedMessage": "Quick note..."}

        sent = sdk.messages.kwargs
        assert sent["model"] == "test-model"
        assert sent["max_tokens"] == 256
        assert sent["system"] == SYSTEM_PROMPT
        assert sent["messages"] == [{"role": "user", "content": "Rewrite this"}]
        assert sent["tool_choice"] == {"type": "tool", "name": OUTPUT_TOOL_NAME}
        assert sent["tools"][0]["input_schema"]["required"] == ["humanizedMessage"]

    def test_falls_back_to_json_text(self, fake_sdk, text_response):
        client = ModelClient(fake_sdk(response=text_response('{"humanizedMessage": "Hi"}')))
        assert _invoke(client) == {"humanizedMessage": "Hi"}

    def test_undecodable_text_is_malformed(self, fake_sdk, text_response):
        client = ModelClient(fake_sdk(response=text_response("Sure! Here it is: Hi")))
        with pytest.raises(MalformedResponse) as exc_info:
            _invoke(client)
        assert exc_info.value.kind == "malformed_response"
        assert exc_info.value.reason == "json_decode"
        assert exc_info.value.raw_text == "Sure! Here it is: Hi"

    def test_non_object_payload_is_malformed(self, fake_sdk, tool_response):
        client = ModelClient(fake_sdk(response=tool_response(["Hi"])))
        with pytest.raises(MalformedResponse) as exc_info:
            _invoke(client)
        assert exc_info.value.reason == "not_an_object"

    def test_empty_response_is_malformed(self, fake_sdk, text_response):
        client = ModelClient(fake_sdk(response=text_response("   ")))
        with pytest.raises(EmptyModelOutput):
            _invoke(client)

    def test_sdk_timeout(self, fake_sdk):
        client = ModelClient(fake_sdk(error=APITimeoutError(request=REQUEST)))
        with pytest.raises(InvocationTimeout) as exc_info:
            _invoke(client)
        assert exc_info.value.kind == "timeout"

    def test_own_timeout_bound(self, fake_sdk, tool_response):
        client = ModelClient(fake_sdk(response=tool_response({}), delay=1.0), timeout_s=0.01)
        with pytest.raises(InvocationTimeout):
            _invoke(client)

    def test_connection_error_is_unavailable(self, fake_sdk):
        client = ModelClient(fake_sdk(error=APIConnectionError(request=REQUEST)))
        with pytest.raises(ServiceUnavailable) as exc_info:
            _invoke(client)
        assert exc_info.value.kind == "service_unavailable"
        assert exc_info.value.status_code is None

    def test_status_error_is_unavailable(self, fake_sdk):
        error = InternalServerError("Overloaded", response=httpx.Response(529, request=REQUEST), body=None)
        client = ModelClient(fake_sdk(error=error))
        with pytest.raises(ServiceUnavailable) as exc_info:
            _invoke(client)
        assert exc_info.value.status_code == 529

    def test_sdk_response_validation_is_malformed(self, fake_sdk):
        error = APIResponseValidationError(response=httpx.Response(200, request=REQUEST), body={"x": 1})
        client = ModelClient(fake_sdk(error=error))
        with pytest.raises(MalformedResponse) as exc_info:
            _invoke(client)
        assert exc_info.value.kind == "malformed_response"
        assert exc_info.value.reason == "sdk_validation"
        assert exc_info.value.raw_text == '{"x": 1}'

    def test_other_api_error_is_unavailable(self, fake_sdk):
        client = ModelClient(fake_sdk(error=APIError("boom", REQUEST, body=None)))
        with pytest.raises(ServiceUnavailable) as exc_info:
            _invoke(client)
        assert exc_info.value.status_code is None


class TestClosing:
    def test_owned_sdk_client_is_closed(self):
        async def use():
            async with ModelClient(api_key="sk-test") as client:
                assert not client._client.is_closed()
            return client

        client = asyncio.run(use())
        assert client._client.is_closed()

    def test_injected_sdk_client_is_left_open(self, fake_sdk):
        sdk = fake_sdk()
        closed = []

        async def close():
            closed.append(True)

        sdk.close = close

        async def use():
            async with ModelClient(sdk):
                pass

        asyncio.run(use())
        assert closed == []
