from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover - Python <3.11 not supported per pyproject
    tomllib = None  # type: ignore

from tomlkit import dumps as toml_dumps


DEFAULT_CONFIG_PATH = Path("~/.config/voice-music-auditor/config.toml").expanduser()
ENV_PREFIX = "VMA_"


class VmaSettings(BaseSettings):
    """Global settings for voice-music-auditor.

    Priority (lowest -> highest):
    - Class defaults below
    - TOML file at `config_path` (default: ~/.config/voice-music-auditor/config.toml)
    - Environment variables with prefix VMA_
    - CLI overrides passed to `load(overrides=...)`
    """

    # Logging
    log_level: str = Field(default="INFO", description="Console log level")
    log_json: Optional[str] = Field(default=None, description="Path for structured JSON log file")

    # Scanning
    extensions: List[str] = Field(
        default_factory=lambda: [".mp3"],
        description="File suffixes picked up by the scanner (case-insensitive)",
    )

    # Audit loop
    poll_interval: float = Field(default=0.5, gt=0, description="Seconds between playback state checks")
    no_command: Literal["skip", "accept", "delete"] = Field(
        default="skip",
        description="Action taken when a file plays to the end without a recognized command",
    )

    # Vocabulary
    accept_word: str = Field(default="accept", description="Spoken word that accepts the current file")
    delete_word: str = Field(default="delete", description="Spoken word that deletes the current file")
    skip_word: str = Field(default="skip", description="Spoken word that skips the current file")

    # Speech recognition
    model_path: Optional[str] = Field(default=None, description="Path to an unpacked vosk model directory")
    language: str = Field(default="en-us", description="vosk model language, used when model_path is unset")
    sample_rate: int = Field(default=16000, description="Microphone sample rate fed to the recognizer")
    input_device: Optional[str] = Field(default=None, description="Microphone device name or index; None=system default")

    # Playback
    output_device: Optional[str] = Field(default=None, description="Output device name or index; None=system default")
    blocksize: int = Field(default=2048, description="Frames per playback block")

    # Config source/path (not persisted as part of effective config when writing)
    config_path: Path = Field(default=DEFAULT_CONFIG_PATH, exclude=True)

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX, extra="ignore")

    @model_validator(mode="after")
    def _distinct_command_words(self) -> "VmaSettings":
        seen: Dict[str, str] = {}
        for field_name in ("accept_word", "delete_word", "skip_word"):
            word = getattr(self, field_name).strip().lower()
            if not word:
                raise ValueError(f"{field_name} must not be empty")
            if word in seen:
                raise ValueError(f"{field_name} {word!r} is already used by {seen[word]}")
            seen[word] = field_name
        return self

    @staticmethod
    def default_config_path() -> Path:
        return DEFAULT_CONFIG_PATH

    @classmethod
    def _toml_file_source(cls, config_path: Path) -> Dict[str, Any]:
        """Read settings from a TOML file if it exists; return dict values.

        Unknown keys are ignored by pydantic via extra="ignore".
        """
        if not config_path or not config_path.exists():
            return {}
        if tomllib is None:
            return {}
        with config_path.open("rb") as f:
            data = tomllib.load(f)
        if not isinstance(data, dict):
            return {}
        return data  # type: ignore[return-value]

    @classmethod
    def load(
        cls,
        *,
        config_path: Optional[Path] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "VmaSettings":
        """Load settings from defaults + TOML + env + CLI overrides.

        - config_path: path to TOML config; defaults to ~/.config/voice-music-auditor/config.toml
        - overrides: dict of CLI values (None values are ignored)
        """
        cp = config_path or DEFAULT_CONFIG_PATH
        file_values = cls._toml_file_source(cp)
        # Init kwargs outrank env in pydantic-settings, so pick out the env-provided
        # fields first and layer them explicitly: file < env < CLI
        env_only = cls()
        env_values = env_only.model_dump(include=set(env_only.model_fields_set))
        if overrides:
            non_none = {k: v for k, v in overrides.items() if v is not None}
        else:
            non_none = {}
        merged: Dict[str, Any] = dict(file_values)
        merged.update(env_values)
        merged.update(non_none)
        settings = cls(**merged)
        settings.config_path = cp
        return settings

    def vocabulary(self) -> Dict[str, str]:
        """Map each spoken word (lowercase) to its command name."""
        return {
            self.accept_word.strip().lower(): "accept",
            self.delete_word.strip().lower(): "delete",
            self.skip_word.strip().lower(): "skip",
        }

    def to_toml(self) -> str:
        """Serialize effective settings (excluding ephemeral fields) to TOML string."""
        data = self.model_dump(exclude={"config_path"})
        # TOML has no null; unset optionals are simply omitted
        data = {k: v for k, v in data.items() if v is not None}
        return toml_dumps(data)

    def write(self, path: Optional[Path] = None) -> Path:
        """Write effective config to TOML at `path` (or default path). Creates parent dirs.

        Returns the path written.
        """
        target = path or self.config_path or DEFAULT_CONFIG_PATH
        target.parent.mkdir(parents=True, exist_ok=True)
        content = self.to_toml()
        target.write_text(content, encoding="utf-8")
        return target


def cli_overrides_from_args(args: Any) -> Dict[str, Any]:
    """Extract known settings keys from argparse Namespace into an overrides dict.

    Unknown keys are ignored; None values are preserved for filtering by `load()`.
    """
    keys = {
        "log_level",
        "log_json",
        "extensions",
        "poll_interval",
        "no_command",
        "model_path",
        "language",
        "input_device",
        "output_device",
    }
    result: Dict[str, Any] = {}
    for k in keys:
        if hasattr(args, k):
            result[k] = getattr(args, k)
    return result
