"""Playback of one audio file at a time through sounddevice.

The file is decoded incrementally by soundfile and pushed to an output
stream from the PortAudio callback thread. Only one session may be open;
every public method takes the controller lock so the orchestrator and any
other caller cannot release the same handles twice.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import sounddevice as sd
import soundfile as sf
from loguru import logger

from .errors import PlaybackError


@dataclass
class PlaybackSession:
    path: Path
    stream: Any
    sound: Any
    finished: threading.Event = field(default_factory=threading.Event)


class PlaybackController:
    def __init__(self, *, device: Optional[Union[int, str]] = None, blocksize: int = 2048) -> None:
        self._device = device
        self._blocksize = blocksize
        self._lock = threading.RLock()
        self._session: Optional[PlaybackSession] = None

    @property
    def session(self) -> Optional[PlaybackSession]:
        return self._session

    def start(self, path: Path) -> PlaybackSession:
        """Open `path` and begin playing it asynchronously."""
        path = Path(path)
        with self._lock:
            if self._session is not None:
                raise PlaybackError(f"Playback already active for {self._session.path}")
            try:
                sound = sf.SoundFile(str(path))
            except (RuntimeError, OSError) as e:
                raise PlaybackError(f"Cannot decode {path}: {e}") from e

            finished = threading.Event()

            def callback(outdata, frames, time_info, status):  # PortAudio thread
                if status:
                    logger.debug(f"playback status: {status}")
                data = sound.read(frames, dtype="float32", always_2d=True)
                n = len(data)
                outdata[:n] = data
                if n < frames:
                    outdata[n:] = 0
                    raise sd.CallbackStop

            try:
                stream = sd.OutputStream(
                    samplerate=sound.samplerate,
                    channels=sound.channels,
                    dtype="float32",
                    device=self._device,
                    blocksize=self._blocksize,
                    callback=callback,
                    finished_callback=finished.set,
                )
            except (sd.PortAudioError, ValueError) as e:
                # ValueError: no device matches the configured name
                sound.close()
                raise PlaybackError(f"Cannot open output device for {path}: {e}") from e
            try:
                stream.start()
            except sd.PortAudioError as e:
                try:
                    stream.close()
                finally:
                    sound.close()
                raise PlaybackError(f"Cannot start playback of {path}: {e}") from e

            self._session = PlaybackSession(path=path, stream=stream, sound=sound, finished=finished)
            logger.debug(f"playback started: {path} ({sound.samplerate} Hz, {sound.channels} ch)")
            return self._session

    def is_playing(self) -> bool:
        with self._lock:
            return self._session is not None and not self._session.finished.is_set()

    def stop(self) -> bool:
        """Stop playback and release the stream and the decoded file.

        Returns False when nothing was playing; calling it again is harmless.
        """
        with self._lock:
            session = self._session
            self._session = None
            if session is None:
                return False
            try:
                session.stream.abort()
            except sd.PortAudioError as e:
                logger.warning(f"Stopping playback of {session.path} failed: {e}")
            finally:
                try:
                    session.stream.close()
                finally:
                    session.sound.close()
            logger.debug(f"playback released: {session.path}")
            return True
