"""Data models for the cost ledger."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field
from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


# ============================================================================
# Pydantic Models (validation)
# ============================================================================


class LedgerEntry(BaseModel):
    """One top-level task invocation."""

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    command: str
    backend: str
    model: str
    workflow: str | None = None
    department: str | None = None
    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    estimated_cost: float = Field(default=0.0, ge=0.0)
    duration_ms: int = Field(default=0, ge=0)
    success: bool
    escalated: bool = False
    session_id: str | None = None
    project: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        """Prompt plus completion tokens."""
        return self.prompt_tokens + self.completion_tokens

    @property
    def date(self) -> str:
        """UTC day the entry belongs to (``YYYY-MM-DD``)."""
        return self.created_at.astimezone(timezone.utc).date().isoformat()


class RoutingStats(BaseModel):
    """Per (workflow, backend, model) performance row."""

    workflow: str | None
    backend: str
    model: str
    calls: int
    successes: int
    avg_duration_ms: float
    total_cost: float


# ============================================================================
# SQLAlchemy ORM Models
# ============================================================================


class LedgerEntryRow(Base):  # type: ignore
    """SQLAlchemy model for ledger entries."""

    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    command = Column(String, nullable=False)
    backend = Column(String, nullable=False)
    model = Column(String, nullable=False)
    workflow = Column(String)
    department = Column(String)
    prompt_tokens = Column(Integer, default=0)
    completion_tokens = Column(Integer, default=0)
    estimated_cost = Column(Float, default=0.0)
    duration_ms = Column(Integer, default=0)
    success = Column(Boolean, nullable=False)
    escalated = Column(Boolean, default=False)
    session_id = Column(String)
    project = Column(String)
    metadata_ = Column("metadata_json", JSON, default=dict)


class DailySummaryRow(Base):  # type: ignore
    """Per-day totals, upserted atomically."""

    __tablename__ = "daily_summary"

    date = Column(String, primary_key=True)
    total_tokens = Column(Integer, default=0, nullable=False)
    total_cost = Column(Float, default=0.0, nullable=False)
    calls = Column(Integer, default=0, nullable=False)


class DailyBreakdownRow(Base):  # type: ignore
    """Per-day call counts by backend, workflow and department."""

    __tablename__ = "daily_breakdown"

    date = Column(String, primary_key=True)
    dimension = Column(String, primary_key=True)
    key = Column(String, primary_key=True)
    calls = Column(Integer, default=0, nullable=False)
