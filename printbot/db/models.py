from sqlalchemy import Boolean, Float, Integer, String
from sqlalchemy.orm import DeclarativeBase, mapped_column


class Base(DeclarativeBase):
    pass


class UserStatRow(Base):
    __tablename__ = "user_stats"

    sender_id = mapped_column(String(64), primary_key=True)
    total_requests = mapped_column(Integer, default=0)
    total_prints = mapped_column(Integer, default=0)
    total_pages = mapped_column(Integer, default=0)
    first_seen = mapped_column(Float, nullable=False)
    last_seen = mapped_column(Float, nullable=False)


class PrintHistoryRow(Base):
    __tablename__ = "print_history"

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id = mapped_column(String(64), unique=True, nullable=False)
    owner_id = mapped_column(String(64), nullable=False)
    original_name = mapped_column(String(255))
    page_count = mapped_column(Integer, nullable=False)
    copies = mapped_column(Integer, nullable=False)
    has_color = mapped_column(Boolean, default=False)
    estimated_cost = mapped_column(Integer, default=0)
    status = mapped_column(String(16), nullable=False)
    attempts = mapped_column(Integer, default=0)
    created_at = mapped_column(Float, nullable=False)
    started_at = mapped_column(Float, nullable=True)
    finished_at = mapped_column(Float, nullable=True)
