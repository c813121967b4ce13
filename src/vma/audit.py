"""The audit loop: play each queued file and act on the first spoken command.

Playback and recognition both run on their own threads. The recognition
callback never touches the player or the filesystem; it only posts a
(generation, token) event to a bounded queue. The loop thread is the single
owner of stopping playback and dispatching, so at most one action can be
applied to a file, and an event that arrives late for a previous file is
recognized by its generation and dropped.
"""
from __future__ import annotations

import enum
import functools
import queue
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, List, Mapping, Optional, Tuple

from loguru import logger

from .commands import Command, CommandDispatcher, DEFAULT_VOCABULARY, DispatchResult, parse_command
from .errors import DispatchError, PlaybackError
from .logging import log_event
from .scanner import WorkQueue


class AuditState(enum.Enum):
    DRAINING = "draining"
    PLAYING = "playing"
    FINISHED = "finished"


@dataclass
class AuditSummary:
    """Per-session counters.

    `unanswered` counts files that played out with no command; the no-command
    policy's action (if not skip) is also counted under accepted/deleted.
    """

    total: int = 0
    accepted: int = 0
    deleted: int = 0
    skipped: int = 0
    unanswered: int = 0
    unplayable: int = 0
    failed: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


_Event = Tuple[int, Optional[str]]


class AuditLoop:
    def __init__(
        self,
        work: WorkQueue,
        player: Any,
        channel: Any,
        dispatcher: CommandDispatcher,
        *,
        vocabulary: Mapping[str, str] = DEFAULT_VOCABULARY,
        poll_interval: float = 0.5,
        no_command: Command = Command.SKIP,
        max_pending_events: int = 8,
    ) -> None:
        if no_command is Command.UNRECOGNIZED:
            raise ValueError("no_command policy must be accept, delete or skip")
        self._work = work
        self._player = player
        self._channel = channel
        self._dispatcher = dispatcher
        self._vocabulary = dict(vocabulary)
        self._poll_interval = poll_interval
        self._no_command = no_command
        self._events: "queue.Queue[_Event]" = queue.Queue(maxsize=max_pending_events)
        self._generation = 0

        self.state = AuditState.DRAINING
        self.current: Optional[Path] = None
        self.summary = AuditSummary(total=len(work))
        self.results: List[DispatchResult] = []

    def run(self) -> AuditSummary:
        """Drain the queue; returns once every file has been played or skipped."""
        try:
            while True:
                self.state = AuditState.DRAINING
                try:
                    path = self._work.pop()
                except IndexError:
                    break
                self._audit_one(path)
        finally:
            self.current = None
            self._channel.disable()
            self._player.stop()
        self.state = AuditState.FINISHED
        logger.info("All files processed")
        return self.summary

    def _on_recognized(self, generation: int, token: Optional[str]) -> None:
        # Recognizer thread: hand off only
        try:
            self._events.put_nowait((generation, token))
        except queue.Full:
            logger.debug(f"dropping recognition event {token!r}: queue full")

    def _audit_one(self, path: Path) -> None:
        self._generation += 1
        generation = self._generation
        self.current = path
        logger.info(f"{len(self._work)} files remain")

        try:
            self._player.start(path)
        except PlaybackError as e:
            self.summary.unplayable += 1
            log_event("unplayable", msg=f"Skipping unplayable file: {e}", file=str(path), level="WARNING")
            return

        self.state = AuditState.PLAYING
        logger.info(f"Playing: {path}")
        command: Optional[Command] = None
        try:
            self._channel.enable(self._vocabulary.keys(), functools.partial(self._on_recognized, generation))
            command = self._await_command(path, generation)
        finally:
            self._channel.disable()
            self._player.stop()
            self._drain_events()

        if command is None:
            self.summary.unanswered += 1
            command = self._no_command
            log_event(
                "unanswered",
                msg=f"No command before playback ended; applying {command.value}",
                file=str(path),
            )
            if command is Command.SKIP:
                return
        self._apply(command, path)

    def _await_command(self, path: Path, generation: int) -> Optional[Command]:
        """Wait for an actionable command while the file is still playing."""
        while self._player.is_playing():
            try:
                event_generation, token = self._events.get(timeout=self._poll_interval)
            except queue.Empty:
                continue
            if event_generation != generation:
                continue
            command = parse_command(token, self._vocabulary)
            if command is Command.UNRECOGNIZED:
                log_event(
                    "unrecognized",
                    msg="Don't know how to respond to voice command",
                    file=str(path),
                    token=token,
                )
                continue
            logger.info(f"Speech recognized: {token}")
            self._player.stop()
            return command
        return None

    def _drain_events(self) -> None:
        while True:
            try:
                self._events.get_nowait()
            except queue.Empty:
                return

    def _apply(self, command: Command, path: Path) -> None:
        try:
            result = self._dispatcher.dispatch(command, path)
        except DispatchError as e:
            self.summary.failed += 1
            log_event("failed", msg=f"Could not {command.value} file: {e}", file=str(path), level="ERROR")
            return
        self.results.append(result)
        if command is Command.ACCEPT:
            self.summary.accepted += 1
            log_event("accept", msg=f"Accepted: {result.destination}", file=str(path), dest=str(result.destination))
        elif command is Command.DELETE:
            self.summary.deleted += 1
            log_event("delete", msg=f"Deleted: {path}", file=str(path))
        else:
            self.summary.skipped += 1
            log_event("skip", msg=f"Skipped: {path}", file=str(path))
