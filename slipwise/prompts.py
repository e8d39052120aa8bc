from typing import Any, Mapping, Union

from pydantic import BaseModel

from .schemas import get_schema

PLACEHOLDER = "N/A"

SYSTEM_PROMPT = """
You are an assistant embedded in an office message-slip tool.

Answer ONLY by calling the provided tool with arguments that match its schema.
Do not add commentary, markdown, or fields that are not in the schema.
"""

LANGUAGE_INSTRUCTIONS = {
    "en": "Write every text value of your answer in English.",
    "am": "Write every text value of your answer in Amharic (አማርኛ), using Ge'ez script.",
}

ANALYZE_TEMPLATE = """
You are an expert communication assistant. Analyze the following message for its tone, clarity, and effectiveness.

{language_instruction}

Message to analyze:
"{message}"

Provide:
1. tone: the primary tone of the message (e.g., Formal, Casual, Urgent, Anxious, Friendly, Neutral).
2. clarityScore: a number from 1 to 10, where 1 is "very confusing" and 10 is "perfectly clear and concise".
3. suggestions: brief, actionable suggestions to improve clarity, impact, and professionalism. If the message is already excellent, return fewer suggestions or an empty list.
"""

HUMANIZE_TEMPLATE = """
You are a helpful office assistant. Rewrite a short, formal message into a natural, human-friendly summary.
The message is for {recipient} from {senderName}.

{language_instruction}

Original message:
"{message}"

Additional context: {messageContext}

Rules:
- Write it as if you were telling {recipient} about it in person.
- Work the additional context in naturally (e.g., "Urgent, Please call" means the summary must say it is urgent and ask for a call back).
- Start with a phrase like "Just a heads up..." or "Quick note...".
- Keep it brief and clear.
- Do not add any information that is not in the original message or context.

Example:
Original: "Please call Mr. Smith at 555-1234 regarding the quarterly report."
Context: "Urgent, Please call"
humanizedMessage: "Quick note - Mr. Smith called about the quarterly report. He said it's urgent and would like you to call him back at 555-1234."
"""

TEMPLATES = {
    "Analyze": ANALYZE_TEMPLATE,
    "Humanize": HUMANIZE_TEMPLATE,
}


def language_instruction(language: Any) -> str:
    # Anything other than a supported code renders the English variant.
    if language == "am":
        return LANGUAGE_INSTRUCTIONS["am"]
    return LANGUAGE_INSTRUCTIONS["en"]


def _as_text(value: Any) -> str:
    if value is None:
        return PLACEHOLDER
    text = str(value)
    return text if text.strip() else PLACEHOLDER


def render(operation_name: str, validated_input: Union[BaseModel, Mapping[str, Any]]) -> str:
    """Render the instruction text for one operation call.

    The input is assumed to be validated already. Absent or blank fields are
    rendered as ``N/A`` so the template keeps the same structure.
    """
    schema = get_schema(operation_name)
    if isinstance(validated_input, BaseModel):
        values = validated_input.model_dump(by_alias=True)
    else:
        values = dict(validated_input)

    fields = {
        descriptor.name: _as_text(values.get(descriptor.name))
        for descriptor in schema.input_fields
        if descriptor.name != "language"
    }
    return TEMPLATES[operation_name].format(
        language_instruction=language_instruction(values.get("language")),
        **fields,
    ).strip()
