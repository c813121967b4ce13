"""Source scanner for audio files (standard library only)."""
from __future__ import annotations

import os
from collections import deque
from pathlib import Path
from typing import Iterable, Iterator, List, Sequence

from .errors import NotFoundError


DEFAULT_EXTENSIONS = (".mp3",)


class WorkQueue:
    """Files left to audit, consumed front to back.

    Filled once from the scan; there is deliberately no way to add entries.
    """

    def __init__(self, paths: Iterable[Path]) -> None:
        self._items: deque[Path] = deque(paths)

    def pop(self) -> Path:
        """Remove and return the next file; IndexError when exhausted."""
        if not self._items:
            raise IndexError("pop from an empty WorkQueue")
        return self._items.popleft()

    def peek(self) -> List[Path]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __iter__(self) -> Iterator[Path]:
        # Non-consuming view; use pop() to take work
        return iter(list(self._items))

    def __repr__(self) -> str:
        return f"WorkQueue({len(self._items)} remaining)"


def _normalize_extensions(extensions: Sequence[str]) -> tuple[str, ...]:
    out = []
    for ext in extensions:
        ext = ext.strip().lower()
        if not ext:
            continue
        if not ext.startswith("."):
            ext = "." + ext
        out.append(ext)
    return tuple(out)


def scan_audio_files(root: Path | str, extensions: Sequence[str] = DEFAULT_EXTENSIONS) -> WorkQueue:
    """Recursively collect audio files under `root` into a WorkQueue.

    Matching is on the filename suffix, case-insensitive. Directories and
    files are visited in sorted order so that a session over the same tree
    always plays in the same order.
    """
    root_path = Path(root).expanduser()
    if not root_path.is_dir():
        raise NotFoundError(f"Path {root} does not exist")
    root_path = root_path.resolve()
    exts = _normalize_extensions(extensions)

    found: List[Path] = []
    for dirpath, dirnames, filenames in os.walk(root_path):
        dirnames.sort()
        for name in sorted(filenames):
            if name.lower().endswith(exts):
                found.append(Path(dirpath) / name)
    return WorkQueue(found)
