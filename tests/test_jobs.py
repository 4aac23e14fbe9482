import os

import pytest
from pydantic import ValidationError as ModelValidationError

from printbot.errors import InvalidState, NotFound
from printbot.jobs import JobStore, estimate_cost
from printbot.models import FileAnalysis, FileMeta, JobStatus, Quality


@pytest.fixture
def clock():
    state = {"now": 1000.0}

    def now():
        return state["now"]

    now.state = state
    return now


@pytest.fixture
def events():
    return []


@pytest.fixture
def store(clock, events):
    return JobStore(clock, bw_rate=500, color_rate=2000, audit=lambda e, p: events.append((e, p)))


def _create(store, tmp_path, pages=3, color=False, name="doc.pdf"):
    path = tmp_path / name
    path.write_bytes(b"%PDF-1.4")
    meta = FileMeta(file_name=name, original_name=name, file_path=str(path), extension="pdf", file_size=8)
    return store.create_job("6281", "6281", meta, FileAnalysis(page_count=pages, has_color=color))


def test_estimate_cost():
    assert estimate_cost(3, 2, False, 500, 2000) == 3000
    assert estimate_cost(3, 2, True, 500, 2000) == 12000


def test_create_job_is_pending_with_cost(store, tmp_path, events):
    job = _create(store, tmp_path)
    assert job.status == JobStatus.PENDING
    assert job.copies == 1
    assert job.estimated_cost == 1500
    assert store.get(job.job_id) is job
    assert events[0][0] == "job_created"


def test_color_rate_applies(store, tmp_path):
    job = _create(store, tmp_path, pages=2, color=True)
    assert job.estimated_cost == 4000


def test_update_options_recomputes_cost(store, tmp_path):
    job = _create(store, tmp_path)
    updated = store.update_options(job.job_id, lambda j: setattr(j, "copies", 7))
    assert updated.copies == 7
    assert updated.estimated_cost == 7 * job.estimated_cost
    assert store.get(job.job_id).copies == 7


def test_rejected_mutation_leaves_job_unchanged(store, tmp_path):
    job = _create(store, tmp_path)
    with pytest.raises(ModelValidationError):
        store.update_options(job.job_id, lambda j: setattr(j, "copies", 11))
    assert store.get(job.job_id).copies == 1
    assert store.get(job.job_id).estimated_cost == 1500


def test_update_options_on_non_pending_job_is_rejected(store, tmp_path):
    job = _create(store, tmp_path)
    store.mark_printing(job.job_id)
    with pytest.raises(InvalidState):
        store.update_options(job.job_id, lambda j: setattr(j.options, "quality", Quality.HIGH))
    current = store.get(job.job_id)
    assert current.options.quality == Quality.NORMAL
    assert current.status == JobStatus.PRINTING


def test_update_options_missing_job(store):
    with pytest.raises(NotFound):
        store.update_options("nope", lambda j: None)


def test_status_transitions_are_one_way(store, tmp_path, clock):
    job = _create(store, tmp_path)
    with pytest.raises(InvalidState):
        store.mark_completed(job.job_id)

    clock.state["now"] = 1010.0
    store.mark_printing(job.job_id)
    assert job.started_at == 1010.0
    store.mark_completed(job.job_id)
    assert job.status == JobStatus.COMPLETED
    assert job.finished_at == 1010.0

    with pytest.raises(InvalidState):
        store.mark_failed(job.job_id, "late")
    with pytest.raises(InvalidState):
        store.mark_printing(job.job_id)


def test_remove_releases_file_and_is_idempotent(store, tmp_path, events):
    job = _create(store, tmp_path)
    assert os.path.exists(job.file_path)
    assert store.remove(job.job_id)
    assert not os.path.exists(job.file_path)
    assert job.job_id not in store
    assert not store.remove(job.job_id)
    assert [e for e, _ in events].count("job_removed") == 1


def test_terminal_older_than_uses_created_at(store, tmp_path, clock):
    done = _create(store, tmp_path, name="a.pdf")
    store.mark_printing(done.job_id)
    store.mark_failed(done.job_id, "boom")
    waiting = _create(store, tmp_path, name="b.pdf")

    clock.state["now"] = 1000.0 + 3601
    aged = store.terminal_older_than(3600)
    assert [j.job_id for j in aged] == [done.job_id]
    assert waiting.job_id not in [j.job_id for j in aged]


def test_pending_queue_orders_oldest_first(store, tmp_path, clock):
    first = _create(store, tmp_path, name="a.pdf")
    clock.state["now"] = 1001.0
    second = _create(store, tmp_path, name="b.pdf")
    assert [j.job_id for j in store.pending_queue()] == [first.job_id, second.job_id]
