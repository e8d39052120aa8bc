from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Language = Literal["en", "am"]
IssueKind = Literal["missing_field", "type_mismatch", "range_violation", "invalid_enum"]
ErrorCode = Literal["INVALID_INPUT", "INVOCATION_FAILED", "INVALID_MODEL_OUTPUT"]


class Record(BaseModel):
    """Base for every operation record: camelCase on the wire, strict, immutable."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        strict=True,
        frozen=True,
        extra="ignore",
    )


class AnalyzeInput(Record):
    message: str = Field(..., min_length=1)
    language: Language = "en"


class AnalyzeOutput(Record):
    tone: str
    clarity_score: float = Field(..., ge=1, le=10, allow_inf_nan=False)
    suggestions: List[str]


class HumanizeInput(Record):
    sender_name: str = Field(..., min_length=1)
    recipient: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    message_context: str
    language: Language = "en"


class HumanizeOutput(Record):
    humanized_message: str = Field(..., min_length=1)


class ValidationIssue(Record):
    kind: IssueKind
    field: str
    message: str
    expected_kind: Optional[str] = None
    value: Any = None
    min: Optional[float] = None
    max: Optional[float] = None
    allowed_values: Optional[List[str]] = None


class OperationError(Record):
    operation: str = Field(..., min_length=1)
    code: ErrorCode
    message: str = Field(..., min_length=1)
    issues: List[ValidationIssue] = Field(default_factory=list)
    cause: Optional[str] = None


# Form order of the status checkboxes on a slip.
STATUS_LABELS = {
    "telephoned": "Telephoned",
    "please_call": "Please call",
    "came_to_see_you": "Came to see you",
    "will_call_again": "Will call again",
    "wants_to_see_you": "Wants to see you",
    "rush": "Rush",
    "returned_call": "Returned your call",
    "special_attention": "Special attention",
    "urgent": "Urgent",
    "sent_documents": "Sent documents",
}


class MessageSlip(Record):
    recipient: str = Field(..., min_length=1)
    sender_name: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    sender_org: Optional[str] = None
    phone: Optional[str] = None
    language: Language = "en"

    telephoned: bool = False
    please_call: bool = False
    came_to_see_you: bool = False
    will_call_again: bool = False
    wants_to_see_you: bool = False
    rush: bool = False
    returned_call: bool = False
    special_attention: bool = False
    urgent: bool = False
    sent_documents: bool = False

    humanized_message: Optional[str] = None
