"""Orchestration for one audit session: validate, scan, wire up, run."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from loguru import logger

from .audio_check import parse_device
from .audit import AuditLoop, AuditSummary
from .commands import Command, CommandDispatcher
from .config import VmaSettings
from .errors import ConfigurationError, NotFoundError, RecognitionError
from .logging import bind_run, log_event
from .paths import validate_distinct_roots
from .playback import PlaybackController
from .recognition import RecognitionChannel
from .scanner import scan_audio_files


EXIT_OK = 0
EXIT_PREFLIGHT_FAILED = 3


def _validate_and_scan(in_dir: str, out_dir: str, cfg: VmaSettings):
    out_p = Path(out_dir).expanduser()
    in_p = Path(in_dir).expanduser()
    # Order matters: output existence, then nesting, then the input scan
    if not out_p.is_dir():
        raise ConfigurationError(f"Path {out_dir} does not exist")
    # Symlinks resolved: the scanner and dispatcher work on real paths
    in_p, out_p = in_p.resolve(), out_p.resolve()
    validate_distinct_roots(out_p, in_p)
    work = scan_audio_files(in_p, cfg.extensions)
    return in_p, out_p, work


def cmd_audit(
    cfg: VmaSettings,
    in_dir: str,
    out_dir: str,
    *,
    player: Optional[Any] = None,
    channel: Optional[Any] = None,
) -> Tuple[int, Dict[str, Any]]:
    """Audit every audio file under `in_dir`, moving accepted ones to `out_dir`.

    Args:
        cfg: effective settings
        in_dir: directory to audit
        out_dir: existing directory outside `in_dir` that receives accepted files
        player: playback controller; built from settings when None
        channel: recognition channel; built from settings when None

    Returns (exit_code, summary counts).
    """
    try:
        in_root, out_root, work = _validate_and_scan(in_dir, out_dir, cfg)
    except (ConfigurationError, NotFoundError) as e:
        logger.error(str(e))
        return EXIT_PREFLIGHT_FAILED, {}

    run_id = bind_run()
    logger.debug(f"run id: {run_id}")
    if not work:
        logger.info(f"No audio files found under {in_root}")
        return EXIT_OK, AuditSummary().as_dict()
    logger.info(f"Found {len(work)} files under {in_root}")

    if channel is None:
        channel = RecognitionChannel(
            model_path=cfg.model_path,
            language=cfg.language,
            sample_rate=cfg.sample_rate,
            device=parse_device(cfg.input_device),
        )
        try:
            channel.load_model()
        except RecognitionError as e:
            logger.error(str(e))
            return EXIT_PREFLIGHT_FAILED, {}
    if player is None:
        player = PlaybackController(device=parse_device(cfg.output_device), blocksize=cfg.blocksize)

    vocabulary = cfg.vocabulary()
    logger.info(f"Say one of: {', '.join(vocabulary)}")
    loop = AuditLoop(
        work,
        player,
        channel,
        CommandDispatcher(in_root, out_root),
        vocabulary=vocabulary,
        poll_interval=cfg.poll_interval,
        no_command=Command(cfg.no_command),
    )
    try:
        summary = loop.run()
    except RecognitionError as e:
        logger.error(str(e))
        return EXIT_PREFLIGHT_FAILED, loop.summary.as_dict()

    counts = summary.as_dict()
    log_event("session", msg="Audit summary: " + ", ".join(f"{k}={v}" for k, v in counts.items()), **counts)
    return EXIT_OK, counts
