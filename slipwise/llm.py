import asyncio
import json
import logging
from typing import Any, Optional

from anthropic import (
    APIConnectionError,
    APIError,
    APIResponseValidationError,
    APIStatusError,
    APITimeoutError,
    AsyncAnthropic,
)
from pydantic import BaseModel

from .prompts import SYSTEM_PROMPT

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-5"
OUTPUT_TOOL_NAME = "submit_result"


class InvocationError(Exception):
    kind = "invocation_error"

    def __init__(self, error: str):
        super().__init__(f"Model invocation failure ({self.kind}): {error}")
        self.error = error


class InvocationTimeout(InvocationError):
    kind = "timeout"


class ServiceUnavailable(InvocationError):
    kind = "service_unavailable"

    def __init__(self, error: str, status_code: Optional[int] = None):
        super().__init__(error)
        self.status_code = status_code


class MalformedResponse(InvocationError):
    kind = "malformed_response"

    def __init__(self, raw_text: str, error: str, reason: str):
        super().__init__(f"{reason}: {error}")
        self.raw_text = raw_text
        self.reason = reason


class EmptyModelOutput(MalformedResponse):
    def __init__(self):
        super().__init__(
            raw_text="",
            error="No tool call or text content found in model response",
            reason="empty_output",
        )


def resolve_client(
    client: Any | None = None,
    api_key: str | None = None,
    timeout_s: float = 30.0,
) -> Any:
    if client is not None:
        return client
    if not api_key:
        raise RuntimeError("api_key is required when client is not provided")
    return AsyncAnthropic(api_key=api_key, timeout=timeout_s, max_retries=0)


def extract_text(resp) -> str:
    parts = []
    for block in resp.content:
        if getattr(block, "type", "text") == "text" and getattr(block, "text", None):
            parts.append(block.text)
    raw_text = "".join(parts)
    if not raw_text.strip():
        raise EmptyModelOutput()
    return raw_text.strip()


def extract_tool_input(resp, tool_name: str = OUTPUT_TOOL_NAME) -> Any | None:
    for block in resp.content:
        if getattr(block, "type", None) == "tool_use" and getattr(block, "name", None) == tool_name:
            return block.input
    return None


def output_tool(output_model: type[BaseModel]) -> dict[str, Any]:
    return {
        "name": OUTPUT_TOOL_NAME,
        "description": f"Submit the {output_model.__name__} result.",
        "input_schema": output_model.model_json_schema(by_alias=True),
    }


class ModelClient:
    """Single round trip to the Anthropic Messages API with a forced structured-output tool.

    Performs no retries and no caching; every ``invoke`` is one request.
    """

    def __init__(
        self,
        client: Any | None = None,
        *,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 1024,
        timeout_s: float = 30.0,
    ):
        self._owns_client = client is None
        self._client = resolve_client(client=client, api_key=api_key, timeout_s=timeout_s)
        self.model = model
        self.max_tokens = max_tokens
        self.timeout_s = timeout_s

    async def __aenter__(self) -> "ModelClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        # An injected SDK client belongs to the caller.
        if self._owns_client:
            await self._client.close()

    async def invoke(self, prompt: str, output_model: type[BaseModel]) -> dict[str, Any]:
        request = self._client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=0.0,
            system=SYSTEM_PROMPT,
            tools=[output_tool(output_model)],
            tool_choice={"type": "tool", "name": OUTPUT_TOOL_NAME},
            messages=[{"role": "user", "content": prompt}],
        )
        try:
            resp = await asyncio.wait_for(request, timeout=self.timeout_s)
        except (APITimeoutError, asyncio.TimeoutError) as e:
            raise InvocationTimeout(f"no response within {self.timeout_s:g}s") from e
        except APIConnectionError as e:
            raise ServiceUnavailable(str(e)) from e
        except APIResponseValidationError as e:
            raw_text = json.dumps(e.body, ensure_ascii=False, default=str) if e.body is not None else ""
            raise MalformedResponse(raw_text=raw_text, error=str(e), reason="sdk_validation") from e
        except APIStatusError as e:
            raise ServiceUnavailable(str(e), status_code=e.status_code) from e
        except APIError as e:
            raise ServiceUnavailable(str(e)) from e

        data = extract_tool_input(resp)
        raw = None
        if data is None:
            raw = extract_text(resp)
            try:
                data = json.loads(raw)
            except json.JSONDecodeError as e:
                raise MalformedResponse(raw_text=raw, error=str(e), reason="json_decode") from e

        if not isinstance(data, dict):
            raw_text = raw if raw is not None else json.dumps(data, ensure_ascii=False, default=str)
            raise MalformedResponse(
                raw_text=raw_text,
                error=f"expected a JSON object, got {type(data).__name__}",
                reason="not_an_object",
            )

        logger.debug("model %s returned keys %s", self.model, sorted(data))
        return data
