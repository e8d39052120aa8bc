"""Slip-side glue: builds operation inputs from a message slip and turns results into notices."""

import asyncio
from dataclasses import dataclass
from typing import Any, Literal, Optional

from .models import STATUS_LABELS, AnalyzeOutput, HumanizeOutput, MessageSlip, OperationError
from .operations import Analyze, Humanize, Invoker, OperationResult


@dataclass(frozen=True)
class Notice:
    level: Literal["success", "error"]
    title: str
    description: str
    retryable: bool = False


@dataclass(frozen=True)
class Assistance:
    analysis: OperationResult[AnalyzeOutput]
    humanized: OperationResult[HumanizeOutput]


_CAUSE_MESSAGES = {
    "timeout": "The assistant took too long to answer.",
    "service_unavailable": "The assistant service could not be reached.",
    "malformed_response": "The assistant returned an unreadable answer.",
}


def slip_context(slip: MessageSlip) -> str:
    return ", ".join(label for flag, label in STATUS_LABELS.items() if getattr(slip, flag))


def analyze_input(slip: MessageSlip) -> dict[str, Any]:
    return {"message": slip.message, "language": slip.language}


def humanize_input(slip: MessageSlip) -> dict[str, Any]:
    return {
        "senderName": slip.sender_name,
        "recipient": slip.recipient,
        "message": slip.message,
        "messageContext": slip_context(slip),
        "language": slip.language,
    }


def notice_for_error(error: OperationError) -> Notice:
    if error.code == "INVALID_INPUT":
        fields = ", ".join(sorted({issue.field for issue in error.issues})) or "the form"
        return Notice(
            level="error",
            title=f"{error.operation}: check the slip",
            description=f"Please fix {fields} and try again.",
        )
    if error.code == "INVOCATION_FAILED":
        return Notice(
            level="error",
            title=f"{error.operation} failed",
            description=_CAUSE_MESSAGES.get(error.cause or "", "The assistant call failed."),
            retryable=True,
        )
    return Notice(
        level="error",
        title=f"{error.operation} returned an unusable answer",
        description="The assistant's answer was incomplete or out of range, so it was discarded.",
        retryable=True,
    )


async def analyze_slip(slip: MessageSlip, client: Invoker) -> OperationResult[AnalyzeOutput]:
    return await Analyze(client).execute(analyze_input(slip))


async def humanize_slip(slip: MessageSlip, client: Invoker) -> OperationResult[HumanizeOutput]:
    return await Humanize(client).execute(humanize_input(slip))


async def assist(slip: MessageSlip, client: Invoker) -> Assistance:
    """Run Analyze and Humanize for one slip concurrently."""
    analysis, humanized = await asyncio.gather(analyze_slip(slip, client), humanize_slip(slip, client))
    return Assistance(analysis=analysis, humanized=humanized)


def approve_humanized(slip: MessageSlip, humanized: Optional[HumanizeOutput]) -> MessageSlip:
    # Only called after the user accepted the suggestion.
    if humanized is None:
        return slip
    return slip.model_copy(update={"humanized_message": humanized.humanized_message})
