"""Audit loop scenarios driven by scripted players and microphones."""

import pytest

from vma.audit import AuditLoop, AuditState
from vma.commands import Command, CommandDispatcher
from vma.errors import RecognitionError
from vma.scanner import WorkQueue, scan_audio_files


class JournalingDispatcher(CommandDispatcher):
    def __init__(self, in_root, out_root, journal):
        super().__init__(in_root, out_root)
        self.journal = journal
        self.calls = []

    def dispatch(self, command, file_path):
        self.calls.append((command, file_path))
        self.journal.append(("dispatch", command, file_path))
        return super().dispatch(command, file_path)


def _loop(audio_tree, player_cls, channel_cls, script, **kwargs):
    in_root, out_root, song1, song2 = audio_tree
    journal = []
    work = WorkQueue([song1, song2])
    player = player_cls(polls=kwargs.pop("polls", 3), unplayable=kwargs.pop("unplayable", ()), journal=journal, work=work)
    channel = channel_cls(script=script, journal=journal)
    dispatcher = JournalingDispatcher(in_root, out_root, journal)
    loop = AuditLoop(work, player, channel, dispatcher, poll_interval=0.001, **kwargs)
    return loop, work, player, channel, dispatcher, journal


def test_accept_moves_files_into_output_tree(audio_tree, fake_player, fake_channel):
    in_root, out_root, song1, song2 = audio_tree
    loop, work, player, channel, _, _ = _loop(audio_tree, fake_player, fake_channel, [["accept"], ["accept"]])

    summary = loop.run()

    assert (out_root / "song1.mp3").exists()
    assert (out_root / "sub" / "song2.mp3").exists()
    assert not song1.exists() and not song2.exists()
    assert summary.accepted == 2
    assert summary.total == 2
    assert len(work) == 0
    assert loop.state is AuditState.FINISHED
    assert channel.vocabularies[0] == {"accept", "delete", "skip"}


def test_delete_removes_file_and_queue_advances(audio_tree, fake_player, fake_channel):
    _, _, song1, song2 = audio_tree
    loop, _, player, _, _, _ = _loop(audio_tree, fake_player, fake_channel, [["delete"], []])

    summary = loop.run()

    assert not song1.exists()
    assert song2.exists()
    assert player.started == [song1, song2]
    assert summary.deleted == 1
    assert summary.unanswered == 1


@pytest.mark.parametrize("token", [None, "banana"])
def test_unrecognized_leaves_file_and_waits_for_playback_end(audio_tree, fake_player, fake_channel, token):
    _, out_root, song1, _ = audio_tree
    loop, _, player, _, dispatcher, _ = _loop(audio_tree, fake_player, fake_channel, [[token], []])

    summary = loop.run()

    assert song1.exists()
    assert list(out_root.iterdir()) == []
    assert dispatcher.calls == []
    assert summary.unanswered == 2
    assert summary.skipped == 0
    assert len(player.started) == 2


def test_unrecognized_then_command_still_acts(audio_tree, fake_player, fake_channel):
    _, _, song1, _ = audio_tree
    loop, _, _, _, dispatcher, _ = _loop(audio_tree, fake_player, fake_channel, [["hmm", "delete"], []])
    loop.run()
    assert not song1.exists()
    assert dispatcher.calls == [(Command.DELETE, song1)]


def test_at_most_one_action_per_file(audio_tree, fake_player, fake_channel):
    _, out_root, song1, song2 = audio_tree
    loop, _, _, _, dispatcher, _ = _loop(
        audio_tree, fake_player, fake_channel, [["delete", "accept", "skip"], ["skip", "delete"]]
    )

    summary = loop.run()

    assert dispatcher.calls == [(Command.DELETE, song1), (Command.SKIP, song2)]
    assert not song1.exists()
    assert not (out_root / "song1.mp3").exists()
    assert song2.exists()
    assert summary.deleted == 1
    assert summary.skipped == 1


def test_playback_stopped_before_dispatch(audio_tree, fake_player, fake_channel):
    _, _, song1, _ = audio_tree
    loop, _, _, _, _, journal = _loop(audio_tree, fake_player, fake_channel, [["accept"], []])
    loop.run()
    first_file = [entry for entry in journal if song1 in entry or entry == ("disable",)][:4]
    assert first_file[0] == ("start", song1)
    assert first_file[1] == ("stop", song1)
    assert first_file[2] == ("disable",)
    assert first_file[3][0] == "dispatch"


def test_stale_event_from_previous_file_is_ignored(audio_tree, fake_player, fake_channel):
    _, _, song1, _ = audio_tree
    loop, _, _, _, dispatcher, _ = _loop(audio_tree, fake_player, fake_channel, [[], []])
    # Generation 0 never belongs to a played file
    loop._on_recognized(0, "delete")

    loop.run()

    assert song1.exists()
    assert dispatcher.calls == []


def test_unplayable_file_is_skipped(audio_tree, fake_player, fake_channel):
    _, out_root, song1, song2 = audio_tree
    loop, _, player, channel, _, _ = _loop(
        audio_tree, fake_player, fake_channel, [["accept"]], unplayable=[song1]
    )

    summary = loop.run()

    assert summary.unplayable == 1
    assert player.started == [song2]
    assert channel.enable_calls == 1
    assert (out_root / "sub" / "song2.mp3").exists()
    assert song1.exists()


def test_dispatch_failure_does_not_abort_session(audio_tree, fake_player, fake_channel):
    _, out_root, song1, song2 = audio_tree
    (out_root / "song1.mp3").write_bytes(b"collision")
    loop, _, _, _, _, _ = _loop(audio_tree, fake_player, fake_channel, [["accept"], ["accept"]])

    summary = loop.run()

    assert summary.failed == 1
    assert summary.accepted == 1
    assert song1.exists()
    assert (out_root / "sub" / "song2.mp3").exists()
    assert loop.state is AuditState.FINISHED


def test_no_command_policy_applies_after_playback_ends(audio_tree, fake_player, fake_channel):
    _, out_root, song1, song2 = audio_tree
    loop, _, _, _, _, _ = _loop(audio_tree, fake_player, fake_channel, [], no_command=Command.ACCEPT)

    summary = loop.run()

    assert summary.unanswered == 2
    assert summary.accepted == 2
    assert (out_root / "song1.mp3").exists()
    assert (out_root / "sub" / "song2.mp3").exists()


def test_no_command_policy_rejects_unrecognized(audio_tree, fake_player, fake_channel):
    with pytest.raises(ValueError):
        _loop(audio_tree, fake_player, fake_channel, [], no_command=Command.UNRECOGNIZED)


def test_queue_shrinks_by_one_per_cycle(tmp_path, fake_player, fake_channel):
    in_root = tmp_path / "in"
    out_root = tmp_path / "out"
    out_root.mkdir()
    for i in range(5):
        (in_root / f"d{i}").mkdir(parents=True)
        (in_root / f"d{i}" / f"{i}.mp3").write_bytes(b"")
    work = scan_audio_files(in_root)
    player = fake_player(polls=1, work=work)
    loop = AuditLoop(work, player, fake_channel(), CommandDispatcher(in_root.resolve(), out_root), poll_interval=0.001)

    loop.run()

    assert player.remaining_at_start == [4, 3, 2, 1, 0]
    assert len(work) == 0


def test_empty_queue_finishes_immediately(audio_tree, fake_player, fake_channel):
    in_root, out_root, _, _ = audio_tree
    player = fake_player()
    channel = fake_channel()
    loop = AuditLoop(WorkQueue([]), player, channel, CommandDispatcher(in_root, out_root))

    summary = loop.run()

    assert loop.state is AuditState.FINISHED
    assert player.started == []
    assert channel.enable_calls == 0
    assert summary.total == 0


def test_recognition_failure_releases_playback(audio_tree, fake_player, fake_channel):
    in_root, out_root, song1, song2 = audio_tree
    player = fake_player(polls=100)
    channel = fake_channel(fail_with=RecognitionError("no microphone"))
    loop = AuditLoop(WorkQueue([song1, song2]), player, channel, CommandDispatcher(in_root, out_root))

    with pytest.raises(RecognitionError):
        loop.run()

    assert player.started == [song1]
    assert player.stops == 1
    assert not player.is_playing()
