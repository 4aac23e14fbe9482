import pytest

from printbot.db.base import init_db, make_engine, make_session_factory
from printbot.db.snapshots import StatsSnapshotStore
from printbot.models import HistoryEntry, JobStatus, UserStat


@pytest.fixture
def store(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'data' / 'bot.db'}")
    init_db(engine)
    yield StatsSnapshotStore(make_session_factory(engine), history_cap=3)
    engine.dispose()


def _entry(i, status=JobStatus.COMPLETED):
    return HistoryEntry(
        job_id=f"job-{i}", owner_id="a", original_name=f"f{i}.pdf", page_count=1, copies=2,
        has_color=False, estimated_cost=1000, status=status, attempts=1, created_at=float(i),
        finished_at=float(i) + 1,
    )


def test_save_and_load_round_trip(store):
    stats = {"a": UserStat(total_requests=4, total_prints=1, total_pages=2, first_seen=1.0, last_seen=9.0)}
    assert store.save(stats.items(), [_entry(1), _entry(2, JobStatus.FAILED)]) == 2

    loaded_stats, history = store.load()
    assert loaded_stats == stats
    assert [e.job_id for e in history] == ["job-2", "job-1"]
    assert history[0].status == JobStatus.FAILED


def test_save_updates_stats_and_skips_known_entries(store):
    store.save([("a", UserStat(total_requests=1, first_seen=1.0, last_seen=1.0))], [_entry(1)])
    added = store.save([("a", UserStat(total_requests=5, first_seen=1.0, last_seen=5.0))], [_entry(1)])

    stats, history = store.load()
    assert added == 0
    assert stats["a"].total_requests == 5
    assert len(history) == 1


def test_archive_is_capped(store):
    store.save([], [_entry(i) for i in range(5)])
    _, history = store.load()
    assert [e.job_id for e in history] == ["job-4", "job-3", "job-2"]
