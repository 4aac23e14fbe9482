import logging
from typing import Dict, Iterable, List, Tuple

from sqlalchemy.orm import sessionmaker

from printbot.db.models import PrintHistoryRow, UserStatRow
from printbot.models import HistoryEntry, JobStatus, UserStat

logger = logging.getLogger("printbot.db")


class StatsSnapshotStore:
    """Durable copy of the UserStat map and the history archive."""

    def __init__(self, session_factory: sessionmaker, history_cap: int = 1000):
        self.Session = session_factory
        self.history_cap = history_cap

    def save(self, stats: Iterable[Tuple[str, UserStat]], new_entries: List[HistoryEntry]) -> int:
        """Upsert stats, append unseen history entries (oldest first) and prune to cap."""
        stats = list(stats)
        with self.Session() as db:
            for sender_id, stat in stats:
                db.merge(UserStatRow(sender_id=sender_id, **stat.model_dump()))

            ids = [e.job_id for e in new_entries]
            known = set()
            if ids:
                known = {r[0] for r in db.query(PrintHistoryRow.job_id).filter(PrintHistoryRow.job_id.in_(ids)).all()}

            added = 0
            for entry in new_entries:
                if entry.job_id in known:
                    continue
                data = entry.model_dump()
                data["status"] = entry.status.value
                db.add(PrintHistoryRow(**data))
                known.add(entry.job_id)
                added += 1
            db.flush()

            keep = db.query(PrintHistoryRow.id).order_by(PrintHistoryRow.id.desc()).limit(self.history_cap)
            db.query(PrintHistoryRow).filter(PrintHistoryRow.id.not_in(keep.scalar_subquery())).delete(
                synchronize_session=False
            )
            db.commit()

        logger.info("Stats saved: %d users, %d new history entries", len(stats), added)
        return added

    def load(self) -> Tuple[Dict[str, UserStat], List[HistoryEntry]]:
        with self.Session() as db:
            stats = {
                row.sender_id: UserStat(
                    total_requests=row.total_requests or 0,
                    total_prints=row.total_prints or 0,
                    total_pages=row.total_pages or 0,
                    first_seen=row.first_seen,
                    last_seen=row.last_seen,
                )
                for row in db.query(UserStatRow).all()
            }
            rows = db.query(PrintHistoryRow).order_by(PrintHistoryRow.id.desc()).limit(self.history_cap).all()
            history = [
                HistoryEntry(
                    job_id=row.job_id,
                    owner_id=row.owner_id,
                    original_name=row.original_name or "",
                    page_count=row.page_count,
                    copies=row.copies,
                    has_color=bool(row.has_color),
                    estimated_cost=row.estimated_cost or 0,
                    status=JobStatus(row.status),
                    attempts=row.attempts or 0,
                    created_at=row.created_at,
                    started_at=row.started_at,
                    finished_at=row.finished_at,
                )
                for row in rows
            ]
        return stats, history
