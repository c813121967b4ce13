from __future__ import annotations
import os
import sys
import uuid
from typing import Optional, Any, Dict
from loguru import logger

_CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"

def setup_console(level: str = "INFO") -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=_CONSOLE_FORMAT, enqueue=True, backtrace=False, diagnose=False)

def setup_json(path: str, level: str = "DEBUG") -> None:
    logger.add(path, level=level.upper(), serialize=True, enqueue=True)

def configure_logging(log_level: str = "INFO", log_json_path: Optional[str] = None) -> None:
    """Human console output plus an optional JSON lines file."""
    setup_console(log_level)
    if log_json_path:
        setup_json(log_json_path)

def bind_run(run_id: Optional[str] = None) -> str:
    rid = run_id or str(uuid.uuid4())
    # Use configure to apply extra fields to all loggers.
    logger.configure(extra={"run_id": rid})
    return rid

def log_event(action: str, **fields: Any) -> None:
    # Strip None, stringify paths so JSON records stay flat
    clean: Dict[str, Any] = {
        k: (os.fspath(v) if isinstance(v, os.PathLike) else v) for k, v in fields.items() if v is not None
    }
    msg = clean.pop("msg", action)
    level = clean.pop("level", "INFO").upper()
    logger.bind(action=action, **clean).log(level, msg)


def truncate(text: str, max_len: int = 4096, max_lines: int = 20) -> str:
    """Truncate a string to a max length and/or max number of lines."""
    if not text:
        return ""
    # Limit lines first
    lines = text.strip().splitlines()
    if len(lines) > max_lines:
        text = "\n".join(["... (truncated)"] + lines[-max_lines:])

    # Then limit length
    if len(text) > max_len:
        text = "... (truncated)\n" + text[-max_len:]
    return text
