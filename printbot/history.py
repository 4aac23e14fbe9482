from collections import deque
from typing import Callable, Deque, Dict, Iterable, List, Optional, Tuple

from printbot.models import HistoryEntry, JobStatus, PrintJob, UserStat


class HistoryRecorder:
    """Most-recent-first snapshots of terminal jobs.

    The live list is capped; entries not yet persisted are tracked so the
    snapshot store can archive them under its own, larger cap.
    """

    def __init__(self, live_cap: int = 100):
        self.live_cap = live_cap
        self._entries: Deque[HistoryEntry] = deque(maxlen=live_cap)
        self._unsaved: List[HistoryEntry] = []

    def record(self, job: PrintJob) -> HistoryEntry:
        entry = HistoryEntry.from_job(job)
        self._entries.appendleft(entry)
        self._unsaved.append(entry)
        return entry

    def load(self, entries: Iterable[HistoryEntry]) -> None:
        """Seed from persisted entries, given most recent first."""
        self._entries.clear()
        for entry in list(entries)[: self.live_cap]:
            self._entries.append(entry)

    def entries(self, owner_id: Optional[str] = None, limit: Optional[int] = None) -> List[HistoryEntry]:
        items = [e for e in self._entries if owner_id is None or e.owner_id == owner_id]
        return items[:limit] if limit is not None else items

    def take_unsaved(self) -> List[HistoryEntry]:
        unsaved, self._unsaved = self._unsaved, []
        return unsaved

    def restore_unsaved(self, entries: List[HistoryEntry]) -> None:
        """Put back entries a failed save did not persist."""
        self._unsaved = list(entries) + self._unsaved

    def summary(self) -> Dict[str, int]:
        completed = [e for e in self._entries if e.status == JobStatus.COMPLETED]
        failed = [e for e in self._entries if e.status == JobStatus.FAILED]
        return {
            "entries": len(self._entries),
            "completed": len(completed),
            "failed": len(failed),
            "pages": sum(e.total_pages for e in completed),
        }

    def __len__(self) -> int:
        return len(self._entries)


class UserStatsBook:
    def __init__(self, clock: Callable[[], float]):
        self._clock = clock
        self._stats: Dict[str, UserStat] = {}

    def get(self, sender_id: str) -> Optional[UserStat]:
        return self._stats.get(sender_id)

    def items(self) -> List[Tuple[str, UserStat]]:
        return list(self._stats.items())

    def __len__(self) -> int:
        return len(self._stats)

    def load(self, stats: Dict[str, UserStat]) -> None:
        self._stats.update(stats)

    def record_request(self, sender_id: str) -> UserStat:
        now = self._clock()
        stat = self._stats.get(sender_id)
        if stat is None:
            stat = UserStat(first_seen=now, last_seen=now)
            self._stats[sender_id] = stat
        stat.total_requests += 1
        stat.last_seen = now
        return stat

    def record_print(self, sender_id: str, pages: int) -> UserStat:
        stat = self._stats.get(sender_id)
        if stat is None:
            now = self._clock()
            stat = UserStat(first_seen=now, last_seen=now)
            self._stats[sender_id] = stat
        stat.total_prints += 1
        stat.total_pages += pages
        return stat

    def leaderboard(self, limit: int = 10) -> List[Tuple[str, UserStat]]:
        ranked = sorted(self._stats.items(), key=lambda kv: kv[1].total_prints, reverse=True)
        return ranked[:limit]

    def active_since(self, cutoff: float) -> List[str]:
        return [sender for sender, stat in self._stats.items() if stat.last_seen >= cutoff]
