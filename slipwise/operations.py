import logging
from dataclasses import dataclass
from typing import Any, Generic, Optional, Protocol, TypeVar

from pydantic import BaseModel

from .llm import InvocationError, MalformedResponse, ModelClient
from .models import AnalyzeOutput, HumanizeOutput, OperationError, Record, ValidationIssue
from .prompts import render
from .schemas import OperationSchema, get_schema, validate

logger = logging.getLogger(__name__)

OutT = TypeVar("OutT", bound=Record)


class Invoker(Protocol):
    async def invoke(self, prompt: str, output_model: type[BaseModel]) -> dict[str, Any]: ...


@dataclass(frozen=True)
class OperationResult(Generic[OutT]):
    output: Optional[OutT] = None
    error: Optional[OperationError] = None
    raw: Optional[dict[str, Any]] = None
    raw_text: Optional[str] = None

    def __post_init__(self):
        if (self.output is None) == (self.error is None):
            raise ValueError("OperationResult needs exactly one of output or error")

    @property
    def ok(self) -> bool:
        return self.error is None


def _summarize(issues: tuple[ValidationIssue, ...]) -> str:
    return "; ".join(issue.message for issue in issues)


class Operation(Generic[OutT]):
    """One named, schema-bound model round trip.

    ``execute`` never raises for expected failures: invalid input, a failed
    invocation, and non-conforming model output all come back as an
    ``OperationError`` inside the result.
    """

    name: str = ""

    def __init__(self, client: Invoker):
        self.client = client
        self.schema: OperationSchema = get_schema(self.name)

    def _stage(self, stage: str) -> None:
        logger.debug("%s: %s", self.name, stage)

    def _fail(
        self,
        code: str,
        message: str,
        *,
        raw: Optional[dict[str, Any]] = None,
        raw_text: Optional[str] = None,
        **extra: Any,
    ) -> OperationResult[OutT]:
        self._stage("failed")
        error = OperationError(operation=self.name, code=code, message=message, **extra)
        logger.warning("%s failed (%s): %s", self.name, code, message)
        return OperationResult(error=error, raw=raw, raw_text=raw_text)

    async def execute(self, raw_input: Any) -> OperationResult[OutT]:
        self._stage("input_validating")
        checked = validate(raw_input, self.schema.input_model)
        if not checked.ok:
            return self._fail(
                "INVALID_INPUT",
                f"Invalid {self.name} input: {_summarize(checked.issues)}",
                issues=list(checked.issues),
            )

        self._stage("rendering")
        prompt = render(self.name, checked.value)
        logger.debug("%s prompt:\n%s", self.name, prompt)

        self._stage("invoking")
        try:
            data = await self.client.invoke(prompt, self.schema.output_model)
        except InvocationError as e:
            raw_text = e.raw_text if isinstance(e, MalformedResponse) and e.raw_text else None
            return self._fail(
                "INVOCATION_FAILED",
                f"{self.name} model call failed: {e.error}",
                cause=e.kind,
                raw_text=raw_text,
            )

        self._stage("output_validating")
        coerced = validate(data, self.schema.output_model)
        if not coerced.ok:
            return self._fail(
                "INVALID_MODEL_OUTPUT",
                f"{self.name} model output did not match its schema: {_summarize(coerced.issues)}",
                issues=list(coerced.issues),
                raw=data,
            )

        self._stage("succeeded")
        return OperationResult(output=coerced.value, raw=data)


class Analyze(Operation[AnalyzeOutput]):
    name = "Analyze"


class Humanize(Operation[HumanizeOutput]):
    name = "Humanize"


async def analyze_message(
    raw_input: Any,
    *,
    client: Invoker | None = None,
    api_key: str | None = None,
) -> OperationResult[AnalyzeOutput]:
    if client is not None:
        return await Analyze(client).execute(raw_input)
    async with ModelClient(api_key=api_key) as owned:
        return await Analyze(owned).execute(raw_input)


async def humanize_message(
    raw_input: Any,
    *,
    client: Invoker | None = None,
    api_key: str | None = None,
) -> OperationResult[HumanizeOutput]:
    if client is not None:
        return await Humanize(client).execute(raw_input)
    async with ModelClient(api_key=api_key) as owned:
        return await Humanize(owned).execute(raw_input)
