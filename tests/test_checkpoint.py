import pytest

from coastal_obs.core.checkpoint import CheckpointError, CheckpointStore
from coastal_obs.core.hours import HourKey


def test_mark_done_persists_across_instances(tmp_path):
    store = CheckpointStore(tmp_path, "pull_2024-01-01_to_2024-01-02")
    hour = HourKey(2024, 1, 1, 5)
    assert not store.is_done(hour)
    store.mark_done(hour)
    store.mark_done(hour)
    assert store.is_done(hour)

    reloaded = CheckpointStore(tmp_path, "pull_2024-01-01_to_2024-01-02")
    assert reloaded.is_done(hour)
    assert len(reloaded) == 1
    assert store.path.read_text() == "20240101T05\n"


def test_torn_line_is_ignored(tmp_path):
    path = tmp_path / "job.checkpoint"
    path.write_text("20240101T00\n20240101T01\n2024010")
    store = CheckpointStore(tmp_path, "job")
    assert len(store) == 2
    assert store.pending([HourKey(2024, 1, 1, h) for h in range(3)]) == [HourKey(2024, 1, 1, 2)]


def test_append_after_torn_line_starts_a_new_line(tmp_path):
    path = tmp_path / "job.checkpoint"
    path.write_text("20240101T00\n2024010")
    CheckpointStore(tmp_path, "job").mark_done(HourKey(2024, 1, 1, 2))

    assert path.read_text() == "20240101T00\n2024010\n20240101T02\n"
    reloaded = CheckpointStore(tmp_path, "job")
    assert reloaded.is_done(HourKey(2024, 1, 1, 2))
    assert len(reloaded) == 2


def test_jobs_are_independent(tmp_path):
    CheckpointStore(tmp_path, "a").mark_done(HourKey(2024, 1, 1, 0))
    assert not CheckpointStore(tmp_path, "b").is_done(HourKey(2024, 1, 1, 0))


def test_discard_removes_file(tmp_path):
    store = CheckpointStore(tmp_path, "job")
    store.mark_done(HourKey(2024, 1, 1, 0))
    store.discard()
    assert not store.path.exists()
    assert len(store) == 0
    store.discard()


def test_write_failure_is_fatal(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    store = CheckpointStore(blocker, "job")
    with pytest.raises(CheckpointError):
        store.mark_done(HourKey(2024, 1, 1, 0))
    assert not store.is_done(HourKey(2024, 1, 1, 0))


def test_prune_drops_older_hours(tmp_path):
    store = CheckpointStore(tmp_path, "realtime")
    for hour in (HourKey(2024, 3, 3, 23), HourKey(2024, 3, 4, 0), HourKey(2024, 3, 5, 7)):
        store.mark_done(hour)

    assert store.prune(HourKey(2024, 3, 4, 0)) == 1
    assert store.prune(HourKey(2024, 3, 4, 0)) == 0
    assert not store.is_done(HourKey(2024, 3, 3, 23))
    assert store.path.read_text() == "20240304T00\n20240305T07\n"
    assert len(CheckpointStore(tmp_path, "realtime")) == 2
