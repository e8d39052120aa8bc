import json
import os
import secrets
from datetime import datetime, timezone
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Optional

from .models import MessageSlip, OperationError


def make_timestamp() -> str:
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
    return f"{timestamp}_{os.getpid()}_{secrets.token_hex(3)}"


def ensure_out_dir(path: str = "slips") -> None:
    Path(path).mkdir(parents=True, exist_ok=True)


def _atomic_write(path: Path, content: str) -> None:
    with NamedTemporaryFile("w", encoding="utf-8", dir=path.parent, delete=False) as tmp_file:
        tmp_file.write(content)
        tmp_path = Path(tmp_file.name)
    os.replace(tmp_path, path)


def _compact(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), sort_keys=True, ensure_ascii=False, default=str)


def save_slip(slip: MessageSlip, out_dir: str = "slips") -> str:
    ensure_out_dir(out_dir)
    slip_path = Path(out_dir) / f"slip_{make_timestamp()}.json"
    _atomic_write(slip_path, _compact(slip.model_dump(by_alias=True)))
    return str(slip_path)


def save_failure(
    error: OperationError,
    raw: Optional[dict[str, Any]] = None,
    out_dir: str = "slips",
    raw_text: Optional[str] = None,
) -> str:
    ensure_out_dir(out_dir)
    err_path = Path(out_dir) / f"failure_{make_timestamp()}.txt"

    if raw_text is None:
        raw_text = _compact(raw) if raw is not None else ""
    issues = "\n".join(f"- {issue.kind}: {issue.message}" for issue in error.issues) or "- none"
    contents = (
        f"OPERATION_FAILURE\n"
        f"operation: {error.operation}\n"
        f"code: {error.code}\n"
        f"cause: {error.cause or '-'}\n"
        f"message: {error.message}\n\n"
        f"---- ISSUES ----\n{issues}\n\n"
        f"---- RAW OUTPUT ----\n{raw_text}"
    )
    _atomic_write(err_path, contents)
    return str(err_path)
