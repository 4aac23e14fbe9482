from printbot.history import HistoryRecorder, UserStatsBook
from printbot.models import JobStatus, PrintJob


def _job(i, status=JobStatus.COMPLETED, owner="a", copies=1):
    return PrintJob(
        file_name=f"f{i}", original_name=f"f{i}.pdf", file_path=f"/tmp/f{i}", extension="pdf",
        file_size=1, page_count=2, copies=copies, owner_id=owner, conversation_id=owner,
        status=status, created_at=float(i),
    )


def test_history_is_most_recent_first_and_capped():
    history = HistoryRecorder(live_cap=3)
    for i in range(5):
        history.record(_job(i))
    assert [e.original_name for e in history.entries()] == ["f4.pdf", "f3.pdf", "f2.pdf"]
    assert len(history.take_unsaved()) == 5
    assert history.take_unsaved() == []


def test_history_filters_by_owner_and_summarises():
    history = HistoryRecorder()
    history.record(_job(1, owner="a", copies=3))
    history.record(_job(2, owner="b", status=JobStatus.FAILED))
    assert [e.owner_id for e in history.entries(owner_id="a")] == ["a"]
    assert history.summary() == {"entries": 2, "completed": 1, "failed": 1, "pages": 6}


def test_restore_unsaved_keeps_order():
    history = HistoryRecorder()
    history.record(_job(1))
    first = history.take_unsaved()
    history.record(_job(2))
    history.restore_unsaved(first)
    assert [e.original_name for e in history.take_unsaved()] == ["f1.pdf", "f2.pdf"]


def test_user_stats():
    now = {"t": 100.0}
    book = UserStatsBook(lambda: now["t"])
    book.record_request("a")
    now["t"] = 200.0
    book.record_request("a")
    book.record_print("a", 6)
    book.record_request("b")

    stat = book.get("a")
    assert (stat.total_requests, stat.total_prints, stat.total_pages) == (2, 1, 6)
    assert (stat.first_seen, stat.last_seen) == (100.0, 200.0)
    assert [sender for sender, _ in book.leaderboard()] == ["a", "b"]
    assert sorted(book.active_since(150.0)) == ["a", "b"]
    assert book.active_since(250.0) == []
