from __future__ import annotations

import enum
import os
import re
from pathlib import Path
from typing import List, Union

from .errors import ConfigurationError


StrPath = Union[str, "os.PathLike[str]"]

# Both separators are honored regardless of platform so that paths typed on
# Windows and POSIX split the same way.
_SEPARATORS_RE = re.compile(r"[\\/]")


class PathRelation(enum.Enum):
    OUTSIDE = "outside"
    CONTAINS = "contains"
    EQUAL = "equal"


def _segments(path: str) -> List[str]:
    """Split on any separator, dropping empty segments (root, doubled or trailing)."""
    return [s for s in _SEPARATORS_RE.split(path) if s]


def _casefold_key(segments: List[str]) -> List[str]:
    return [s.casefold() for s in segments]


def _ends_with_separator(path: str) -> bool:
    return path.endswith(("/", "\\"))


def path_relation(outer: StrPath, inner: StrPath) -> PathRelation:
    """Relation of `inner` to `outer`, compared case-insensitively.

    CONTAINS means `inner` is strictly nested under `outer`. Both paths are made
    absolute and normalized first, so `..` and `.` segments are resolved.
    """
    outer_parts = _casefold_key(_segments(os.path.abspath(os.fspath(outer))))
    inner_parts = _casefold_key(_segments(os.path.abspath(os.fspath(inner))))
    if outer_parts == inner_parts:
        return PathRelation.EQUAL
    if len(inner_parts) > len(outer_parts) and inner_parts[: len(outer_parts)] == outer_parts:
        return PathRelation.CONTAINS
    return PathRelation.OUTSIDE


def validate_distinct_roots(output_root: StrPath, input_root: StrPath) -> None:
    """Refuse an output directory that lives inside (or is) the input directory.

    Accepted files would otherwise land back inside the tree being audited.
    """
    relation = path_relation(input_root, output_root)
    if relation is not PathRelation.OUTSIDE:
        raise ConfigurationError(f"Path {os.fspath(output_root)} must not be within {os.fspath(input_root)}")


def relative_path(base: StrPath, target: StrPath) -> str:
    """Return `target` relative to `base`, comparing segments case-insensitively.

    - Both paths are normalized to absolute form; a relative `target` is taken
      to be relative to `base`, which makes the function idempotent on its own
      output.
    - With no common leading segment (different drives or roots) there is no
      safe relative form and the absolute target is returned.
    - Identical paths give ".".
    - A target written with a trailing separator keeps it when the result only
      walks forward (target at least as deep as base).
    """
    base_str = os.fspath(base)
    target_str = os.fspath(target)
    is_directory = _ends_with_separator(target_str)

    base_abs = os.path.abspath(base_str)
    if os.path.isabs(target_str):
        target_abs = os.path.abspath(target_str)
    else:
        target_abs = os.path.abspath(os.path.join(base_abs, target_str))

    target_parts = _segments(target_abs)
    base_parts = _segments(base_abs)

    i = 0
    while i < len(target_parts) and i < len(base_parts):
        if target_parts[i].casefold() != base_parts[i].casefold():
            break
        i += 1

    if i == 0:
        return target_abs

    rel = os.sep.join([".."] * (len(base_parts) - i) + target_parts[i:])
    if not rel:
        return "."
    if is_directory and len(target_parts) >= len(base_parts):
        rel += os.sep
    return rel


def destination_for(file_path: StrPath, *, input_root: StrPath, output_root: StrPath) -> Path:
    """Where an accepted file goes: same relative location under `output_root`.

    Raises ConfigurationError when the file has no relative form below
    `input_root` (it would escape the output tree).
    """
    rel = relative_path(input_root, file_path)
    if os.path.isabs(rel) or rel == "." or _segments(rel)[0] == "..":
        raise ConfigurationError(f"{os.fspath(file_path)} is not inside {os.fspath(input_root)}")
    return Path(output_root) / rel
