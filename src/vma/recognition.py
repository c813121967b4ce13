"""Closed-vocabulary speech recognition from the microphone.

Audio blocks arrive from a sounddevice input stream and are fed to a vosk
recognizer restricted to the command words plus the "[unk]" garbage token, so
anything else spoken comes back as unknown instead of being forced onto a
command.
"""
from __future__ import annotations

import json
import queue
import threading
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

import sounddevice as sd
import vosk
from loguru import logger

from .errors import RecognitionError


UNKNOWN_TOKEN = "[unk]"

# Called with the recognized word, or None when nothing in the vocabulary matched.
CommandCallback = Callable[[Optional[str]], None]


class RecognitionChannel:
    def __init__(
        self,
        *,
        model_path: Optional[str] = None,
        language: str = "en-us",
        sample_rate: int = 16000,
        device: Optional[Union[int, str]] = None,
        blocksize: int = 8000,
    ) -> None:
        self._model_path = model_path
        self._language = language
        self._sample_rate = sample_rate
        self._device = device
        self._blocksize = blocksize
        self._model = None

        self._lock = threading.Lock()
        # Held while a result is being delivered; disable() waits on it.
        self._deliver_lock = threading.RLock()
        self._enabled = False
        self._stop: Optional[threading.Event] = None
        self._stream = None
        self._worker: Optional[threading.Thread] = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    def load_model(self):
        """Load the vosk model once; later calls reuse it."""
        if self._model is None:
            vosk.SetLogLevel(-1)
            try:
                if self._model_path:
                    self._model = vosk.Model(model_path=str(Path(self._model_path).expanduser()))
                else:
                    self._model = vosk.Model(lang=self._language)
            except Exception as e:  # vosk raises bare Exception on load failure
                raise RecognitionError(f"Could not load speech model: {e}") from e
        return self._model

    def enable(self, vocabulary: Iterable[str], callback: CommandCallback) -> None:
        """Start listening; `callback` fires on the recognizer worker thread."""
        words = sorted({w.strip().lower() for w in vocabulary if w.strip()})
        if not words:
            raise ValueError("vocabulary must contain at least one word")
        with self._lock:
            if self._enabled:
                raise RuntimeError("recognition is already enabled")
            model = self.load_model()
            recognizer = vosk.KaldiRecognizer(model, self._sample_rate, json.dumps(words + [UNKNOWN_TOKEN]))
            audio: "queue.Queue[bytes]" = queue.Queue()
            stop = threading.Event()

            def on_audio(indata, frames, time_info, status):  # PortAudio thread
                if status:
                    logger.debug(f"microphone status: {status}")
                audio.put(bytes(indata))

            try:
                stream = sd.RawInputStream(
                    samplerate=self._sample_rate,
                    blocksize=self._blocksize,
                    device=self._device,
                    dtype="int16",
                    channels=1,
                    callback=on_audio,
                )
            except (sd.PortAudioError, ValueError) as e:
                raise RecognitionError(f"Cannot open microphone: {e}") from e
            try:
                stream.start()
            except sd.PortAudioError as e:
                stream.close()
                raise RecognitionError(f"Cannot start microphone: {e}") from e

            worker = threading.Thread(
                target=self._run,
                args=(recognizer, audio, stop, frozenset(words), callback),
                name="vma-recognizer",
                daemon=True,
            )
            self._stop = stop
            self._stream = stream
            self._worker = worker
            self._enabled = True
            worker.start()
        logger.debug(f"listening for: {', '.join(words)}")

    def disable(self) -> None:
        """Stop listening. No callback runs once this returns; repeated calls are no-ops."""
        with self._lock:
            if not self._enabled:
                return
            self._enabled = False
            stop, stream, worker = self._stop, self._stream, self._worker
            self._stop = self._stream = self._worker = None

        stop.set()
        # Wait out a delivery already in progress
        with self._deliver_lock:
            pass
        try:
            stream.abort()
        except sd.PortAudioError as e:
            logger.warning(f"Stopping microphone failed: {e}")
        finally:
            stream.close()
        if worker is not threading.current_thread():
            worker.join(timeout=2.0)
        logger.debug("listening stopped")

    def _run(self, recognizer, audio, stop, words, callback) -> None:
        while not stop.is_set():
            try:
                data = audio.get(timeout=0.1)
            except queue.Empty:
                continue
            if not recognizer.AcceptWaveform(data):
                continue
            text = json.loads(recognizer.Result()).get("text", "")
            self._deliver(text, words, stop, callback)

    def _deliver(self, text: str, words, stop: threading.Event, callback: CommandCallback) -> None:
        text = text.strip().lower()
        if not text:
            return
        token: Optional[str] = text if text in words else None
        with self._deliver_lock:
            if stop.is_set():
                return
            try:
                callback(token)
            except Exception:
                logger.exception(f"Command callback failed for {text!r}")
