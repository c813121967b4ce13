"""Spoken command vocabulary and the file action behind each command."""
from __future__ import annotations

import enum
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .errors import ConfigurationError, DispatchError
from .paths import destination_for


class Command(enum.Enum):
    ACCEPT = "accept"
    DELETE = "delete"
    SKIP = "skip"
    UNRECOGNIZED = "unrecognized"


DEFAULT_VOCABULARY: Mapping[str, str] = {
    "accept": "accept",
    "delete": "delete",
    "skip": "skip",
}


def parse_command(token: Optional[str], vocabulary: Mapping[str, str] = DEFAULT_VOCABULARY) -> Command:
    """Map a recognized word to a Command; anything unknown (or None) is UNRECOGNIZED."""
    if token is None:
        return Command.UNRECOGNIZED
    name = vocabulary.get(token.strip().lower())
    if name is None:
        return Command.UNRECOGNIZED
    return Command(name)


@dataclass
class DispatchResult:
    command: Command
    source: Path
    destination: Optional[Path] = None


class CommandDispatcher:
    """Applies a command to a single file of the audited tree."""

    def __init__(self, input_root: Path, output_root: Path) -> None:
        self.input_root = Path(input_root)
        self.output_root = Path(output_root)

    def dispatch(self, command: Command, file_path: Path) -> DispatchResult:
        file_path = Path(file_path)
        if command is Command.ACCEPT:
            return self._accept(file_path)
        if command is Command.DELETE:
            return self._delete(file_path)
        return DispatchResult(command, file_path)

    def _accept(self, file_path: Path) -> DispatchResult:
        try:
            dest = destination_for(file_path, input_root=self.input_root, output_root=self.output_root)
        except ConfigurationError as e:
            raise DispatchError(str(e), file_path) from e
        # A plain rename would silently replace an existing file on POSIX
        if dest.exists():
            raise DispatchError(f"Destination already exists ({dest})", file_path)
        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(os.fspath(file_path), os.fspath(dest))
        except OSError as e:
            raise DispatchError(f"Move to {dest} failed: {e}", file_path) from e
        return DispatchResult(Command.ACCEPT, file_path, dest)

    def _delete(self, file_path: Path) -> DispatchResult:
        try:
            file_path.unlink()
        except OSError as e:
            raise DispatchError(f"Delete failed: {e}", file_path) from e
        return DispatchResult(Command.DELETE, file_path)
