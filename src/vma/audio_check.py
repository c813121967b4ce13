"""Audio device and speech model preflight checks."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

import sounddevice as sd

from .errors import RecognitionError
from .logging import truncate
from .recognition import RecognitionChannel


@dataclass
class DeviceStatus:
    available: bool
    kind: str
    name: Optional[str] = None
    index: Optional[int] = None
    default_samplerate: Optional[float] = None
    error: Optional[str] = None


@dataclass
class ModelStatus:
    available: bool
    source: Optional[str] = None
    error: Optional[str] = None


def parse_device(value: Optional[Union[int, str]]) -> Optional[Union[int, str]]:
    """Turn a configured device into what sounddevice expects.

    Numeric strings become indices; anything else is a name substring.
    """
    if value is None or isinstance(value, int):
        return value
    s = str(value).strip()
    if not s:
        return None
    if s.isdigit():
        return int(s)
    return s


def probe_device(kind: str, device: Optional[Union[int, str]] = None) -> DeviceStatus:
    """kind is "input" or "output"; device None checks the system default."""
    try:
        info = sd.query_devices(parse_device(device), kind=kind)
    except (sd.PortAudioError, ValueError) as e:
        return DeviceStatus(available=False, kind=kind, error=str(e))
    return DeviceStatus(
        available=True,
        kind=kind,
        name=info.get("name"),
        index=info.get("index"),
        default_samplerate=info.get("default_samplerate"),
    )


def probe_model(model_path: Optional[str] = None, language: str = "en-us") -> ModelStatus:
    source = model_path or f"lang={language}"
    channel = RecognitionChannel(model_path=model_path, language=language)
    try:
        channel.load_model()
    except RecognitionError as e:
        return ModelStatus(available=False, source=source, error=str(e))
    return ModelStatus(available=True, source=source)


def list_devices() -> str:
    try:
        return truncate(str(sd.query_devices()), max_lines=40)
    except sd.PortAudioError as e:
        return f"(device query failed: {e})"
