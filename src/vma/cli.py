from __future__ import annotations

import argparse
import sys
from pathlib import Path

from loguru import logger

from .audio_check import list_devices, probe_device, probe_model
from .audit_runner import EXIT_OK, EXIT_PREFLIGHT_FAILED, cmd_audit
from .config import VmaSettings, cli_overrides_from_args
from .logging import configure_logging


def cmd_preflight(cfg: VmaSettings) -> int:
    ok = True
    for kind, device in (("output", cfg.output_device), ("input", cfg.input_device)):
        st = probe_device(kind, device)
        if st.available:
            logger.info(f"{kind} device: {st.name} (index {st.index}, {st.default_samplerate} Hz)")
        else:
            logger.error(f"{kind} device: NOT AVAILABLE")
            if st.error:
                logger.error(st.error)
            ok = False

    ms = probe_model(cfg.model_path, cfg.language)
    if ms.available:
        logger.info(f"speech model: {ms.source}")
    else:
        logger.error(f"speech model: NOT AVAILABLE ({ms.source})")
        if ms.error:
            logger.error(ms.error)
        ok = False

    logger.debug("devices:\n" + list_devices())
    return EXIT_OK if ok else EXIT_PREFLIGHT_FAILED


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(
        prog="vma",
        description="Audit audio files by voice: accept them into a folder of your choice, delete them, or skip them",
    )
    # Config/Logging options (defaults resolved via VmaSettings)
    p.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to TOML config (default: ~/.config/voice-music-auditor/config.toml)",
    )
    p.add_argument(
        "--write-config",
        action="store_true",
        help="Write current effective settings to the config file and exit",
    )
    p.add_argument(
        "--log-level",
        default=None,
        help="Console log level (DEBUG, INFO, WARNING, ERROR)",
    )
    p.add_argument(
        "--log-json",
        dest="log_json",
        default=None,
        help="Path to write JSON lines log (structured events)",
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    sub.add_parser("preflight", help="Check audio devices and speech model availability")

    p_audit = sub.add_parser("audit", help="Play every audio file under --input and act on spoken commands")
    p_audit.add_argument("--input", dest="in_dir", required=True, help="Input path to scan for audio files")
    p_audit.add_argument("--output", dest="out_dir", required=True, help="Where to place accepted files")
    p_audit.add_argument(
        "--ext",
        dest="extensions",
        action="append",
        default=None,
        help="File extension to audit; repeat for several (default from settings: .mp3)",
    )
    p_audit.add_argument(
        "--no-command",
        dest="no_command",
        choices=["skip", "accept", "delete"],
        default=None,
        help="What to do when a file ends without a recognized command (default from settings: skip)",
    )
    p_audit.add_argument(
        "--poll-interval",
        type=float,
        default=None,
        help="Seconds between playback state checks (default from settings)",
    )
    p_audit.add_argument("--model-path", default=None, help="Path to an unpacked vosk model")
    p_audit.add_argument("--language", default=None, help="vosk model language when --model-path is not given")
    p_audit.add_argument("--input-device", default=None, help="Microphone device name or index")
    p_audit.add_argument("--output-device", default=None, help="Playback device name or index")

    args = p.parse_args(argv)
    # Load settings: defaults + TOML + env + CLI overrides
    overrides = cli_overrides_from_args(args)
    cfg = VmaSettings.load(config_path=Path(args.config_path).expanduser() if args.config_path else None, overrides=overrides)

    # Write config and exit if requested
    if args.write_config:
        written = cfg.write(Path(args.config_path).expanduser() if args.config_path else None)
        print(f"Config written to: {written}")
        return EXIT_OK

    configure_logging(cfg.log_level, cfg.log_json)
    if args.cmd == "preflight":
        return cmd_preflight(cfg)
    if args.cmd == "audit":
        exit_code, _ = cmd_audit(cfg, args.in_dir, args.out_dir)
        return exit_code
    p.error("unknown command")
    return 1


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
