import asyncio
import sys
from typing import Awaitable, Callable, List, Optional

import typer
from pydantic import ValidationError
from rich import print

from .adapter import (
    Notice,
    analyze_slip,
    approve_humanized,
    assist,
    humanize_slip,
    notice_for_error,
)
from .artifacts import save_failure, save_slip
from .config import Settings, load_settings
from .llm import ModelClient
from .log import configure_logging
from .models import STATUS_LABELS, AnalyzeOutput, Language, MessageSlip
from .operations import Analyze, Humanize, OperationResult

app = typer.Typer(help="Message slip assistant: analyze and humanize 'while you were out' notes.")

_LABEL_TO_FLAG = {label.lower(): flag for flag, label in STATUS_LABELS.items()}
LANGUAGES = ("en", "am")


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """slipwise CLI entrypoint."""
    if ctx.invoked_subcommand is None:
        print(ctx.get_help())
        raise typer.Exit(code=0)


def _settings() -> Settings:
    try:
        settings = load_settings()
    except ValueError as exc:
        print(f"[red]{exc}[/red]")
        raise typer.Exit(code=2)
    configure_logging(settings.log_level)
    return settings


def _build_client(settings: Settings) -> ModelClient:
    if not settings.api_key:
        print("[red]ANTHROPIC_API_KEY not found in environment.[/red]")
        raise typer.Exit(code=1)
    return ModelClient(
        api_key=settings.api_key,
        model=settings.model,
        max_tokens=settings.max_tokens,
        timeout_s=settings.timeout_s,
    )


def _interactive() -> bool:
    return sys.stdin.isatty()


async def _closing(client, work: Awaitable):
    """Await `work`, then close `client` on the same event loop."""
    try:
        return await work
    finally:
        aclose = getattr(client, "aclose", None)
        if aclose is not None:
            await aclose()


def _print_notice(notice: Notice) -> None:
    color = "green" if notice.level == "success" else "red"
    print(f"[{color}][bold]{notice.title}[/bold][/{color}]")
    if notice.description:
        print(f"[{color}]{notice.description}[/{color}]")


async def _run(
    run: Callable[[], Awaitable[OperationResult]],
    settings: Settings,
    first: Optional[OperationResult] = None,
) -> OperationResult:
    """Return the first successful result, offering a fresh attempt after each retryable failure."""
    result = first if first is not None else await run()
    while result.error is not None:
        notice = notice_for_error(result.error)
        _print_notice(notice)
        if result.error.code != "INVALID_INPUT":
            path = save_failure(
                result.error, result.raw, out_dir=settings.out_dir, raw_text=result.raw_text
            )
            print(f"Saved failure details to [bold]{path}[/bold].")
        if not (notice.retryable and _interactive() and typer.confirm("Retry?", default=True)):
            break
        result = await run()
    return result


def _print_analysis(analysis: AnalyzeOutput) -> None:
    print("[bold]Tone[/bold]")
    print(analysis.tone)
    print(f"\n[bold]Clarity[/bold] {analysis.clarity_score:g}/10")
    print("\n[bold]Suggestions[/bold]")
    if analysis.suggestions:
        for i, suggestion in enumerate(analysis.suggestions, 1):
            print(f"{i}. {suggestion}")
    else:
        print("none")


def _resolve_statuses(statuses: List[str]) -> dict[str, bool]:
    flags = {}
    for status in statuses:
        flag = _LABEL_TO_FLAG.get(status.strip().lower())
        if flag is None:
            print(f"[red]Unknown status '{status}'. Use one of: {', '.join(STATUS_LABELS.values())}.[/red]")
            raise typer.Exit(code=2)
        flags[flag] = True
    return flags


def _resolve_language(language: str) -> Language:
    value = language.strip().lower()
    if value not in LANGUAGES:
        print(f"[red]Unsupported language '{language}'. Use one of: {', '.join(LANGUAGES)}.[/red]")
        raise typer.Exit(code=2)
    return value


@app.command()
def analyze(
    message: str,
    language: str = typer.Option("en", "--language", "-l", help="Output language: en or am."),
):
    """Rate the tone and clarity of a message."""
    settings = _settings()
    language = _resolve_language(language)
    client = _build_client(settings)
    operation = Analyze(client)

    raw_input = {"message": message, "language": language}

    result = asyncio.run(_closing(client, _run(lambda: operation.execute(raw_input), settings)))
    if result.output is None:
        raise typer.Exit(code=1)
    _print_analysis(result.output)


@app.command()
def humanize(
    sender: str = typer.Option(..., "--sender", help="Who left the message."),
    recipient: str = typer.Option(..., "--recipient", help="Who the message is for."),
    message: str = typer.Option(..., "--message", help="The message as taken down."),
    context: str = typer.Option("", "--context", help="Extra context, e.g. 'Urgent, Please call'."),
    language: str = typer.Option("en", "--language", "-l", help="Output language: en or am."),
):
    """Rewrite a message as a short, friendly note."""
    settings = _settings()
    language = _resolve_language(language)
    client = _build_client(settings)
    operation = Humanize(client)
    raw_input = {
        "senderName": sender,
        "recipient": recipient,
        "message": message,
        "messageContext": context,
        "language": language,
    }

    result = asyncio.run(_closing(client, _run(lambda: operation.execute(raw_input), settings)))
    if result.output is None:
        raise typer.Exit(code=1)
    print(result.output.humanized_message)


@app.command()
def slip(
    recipient: str = typer.Option(..., "--recipient", help="Who the message is for."),
    sender: str = typer.Option(..., "--sender", help="Who left the message."),
    message: str = typer.Option(..., "--message", help="The message as taken down."),
    org: Optional[str] = typer.Option(None, "--org", help="Sender organization."),
    phone: Optional[str] = typer.Option(None, "--phone", help="Call-back number."),
    status: List[str] = typer.Option([], "--status", "-s", help="Status checkbox label; repeatable."),
    language: str = typer.Option("en", "--language", "-l", help="Output language: en or am."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Accept the humanized message without asking."),
):
    """Fill a message slip, get feedback and a friendly rewrite, and save it."""
    settings = _settings()
    language = _resolve_language(language)
    try:
        record = MessageSlip(
            recipient=recipient,
            sender_name=sender,
            message=message,
            sender_org=org,
            phone=phone,
            language=language,
            **_resolve_statuses(status),
        )
    except ValidationError as exc:
        print(f"[red]Invalid slip:[/red] {exc}")
        raise typer.Exit(code=2)

    client = _build_client(settings)

    async def _assist_flow():
        assistance = await assist(record, client)
        analysis = await _run(lambda: analyze_slip(record, client), settings, first=assistance.analysis)
        humanized = await _run(lambda: humanize_slip(record, client), settings, first=assistance.humanized)
        return analysis, humanized

    analysis, humanized = asyncio.run(_closing(client, _assist_flow()))
    if analysis.output is not None:
        _print_analysis(analysis.output)

    if humanized.output is not None:
        print("\n[bold]Suggested rewrite[/bold]")
        print(humanized.output.humanized_message)
        approved = yes or (_interactive() and typer.confirm("Use this rewrite?", default=False))
        if approved:
            record = approve_humanized(record, humanized.output)
        else:
            print("Keeping the original message.")

    path = save_slip(record, out_dir=settings.out_dir)
    print(f"\nSaved slip to [bold]{path}[/bold]")
    if analysis.error is not None or humanized.error is not None:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
