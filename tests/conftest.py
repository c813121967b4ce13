"""Shared fakes standing in for the audio device and the microphone."""

from pathlib import Path

import pytest
from loguru import logger

from vma.errors import PlaybackError


class FakePlayer:
    """Plays each file for `polls` is_playing() checks, then ends on its own."""

    def __init__(self, polls=3, unplayable=(), journal=None, work=None):
        self.polls = polls
        self.unplayable = {Path(p) for p in unplayable}
        self.journal = journal if journal is not None else []
        self.work = work
        self.started = []
        self.remaining_at_start = []
        self.stops = 0
        self._left = 0
        self._active = None

    def start(self, path):
        path = Path(path)
        if path in self.unplayable:
            raise PlaybackError(f"Cannot decode {path}")
        if self._active is not None:
            raise PlaybackError("already playing")
        self.started.append(path)
        if self.work is not None:
            self.remaining_at_start.append(len(self.work))
        self._active = path
        self._left = self.polls
        self.journal.append(("start", path))

    def is_playing(self):
        if self._active is None or self._left <= 0:
            return False
        self._left -= 1
        return True

    def stop(self):
        if self._active is None:
            return False
        self.journal.append(("stop", self._active))
        self._active = None
        self.stops += 1
        return True


class FakeChannel:
    """Speaks the scripted tokens for the n-th file as soon as listening starts."""

    def __init__(self, script=None, journal=None, fail_with=None):
        self.script = list(script or [])
        self.journal = journal if journal is not None else []
        self.fail_with = fail_with
        self.enabled = False
        self.enable_calls = 0
        self.vocabularies = []

    def enable(self, vocabulary, callback):
        if self.fail_with is not None:
            raise self.fail_with
        self.vocabularies.append(set(vocabulary))
        tokens = self.script[self.enable_calls] if self.enable_calls < len(self.script) else []
        self.enable_calls += 1
        self.enabled = True
        for token in tokens:
            callback(token)

    def disable(self):
        if self.enabled:
            self.journal.append(("disable",))
        self.enabled = False


@pytest.fixture
def fake_player():
    return FakePlayer


@pytest.fixture
def fake_channel():
    return FakeChannel


@pytest.fixture(autouse=True)
def quiet_logger():
    # Each test starts with no sinks; tests that inspect output add their own
    logger.remove()
    yield
    logger.remove()


@pytest.fixture
def audio_tree(tmp_path):
    """An input tree with two songs and an empty, separate output directory."""
    in_root = tmp_path / "in"
    out_root = tmp_path / "out"
    (in_root / "sub").mkdir(parents=True)
    out_root.mkdir()
    song1 = in_root / "song1.mp3"
    song2 = in_root / "sub" / "song2.mp3"
    song1.write_bytes(b"ID3 one")
    song2.write_bytes(b"ID3 two")
    return in_root.resolve(), out_root.resolve(), song1.resolve(), song2.resolve()
