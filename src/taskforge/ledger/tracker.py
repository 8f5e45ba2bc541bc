"""SQLite ledger of task invocations.

Every top-level invocation appends one row to ``ledger_entries``. Daily totals
in ``daily_summary`` and per-dimension counts in ``daily_breakdown`` are kept
with ``INSERT ... ON CONFLICT DO UPDATE`` so concurrent writers never lose an
increment.
"""

from datetime import datetime
from pathlib import Path
from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from taskforge.ledger.models import (
    Base,
    DailyBreakdownRow,
    DailySummaryRow,
    LedgerEntry,
    LedgerEntryRow,
    RoutingStats,
)
from taskforge.telemetry import LEDGER_ENTRY_WRITTEN, get_logger

log = get_logger(__name__)

BREAKDOWN_DIMENSIONS = ("backend", "workflow", "department")

GROUP_BY_COLUMNS = {
    "backend": LedgerEntryRow.backend,
    "workflow": LedgerEntryRow.workflow,
    "department": LedgerEntryRow.department,
    "model": LedgerEntryRow.model,
    "project": LedgerEntryRow.project,
}


class Ledger:
    """Append-mostly ledger backed by SQLite through SQLAlchemy async.

    Usage:
        ledger = Ledger(config.ledger_path)
        await ledger.append(entry)
        rows = await ledger.aggregate("backend")
        await ledger.close()
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize with the database file; the engine is created lazily."""
        self.db_path = db_path
        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None

    async def _session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._sessions is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._engine = create_async_engine(f"sqlite+aiosqlite:///{self.db_path}")
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            self._sessions = async_sessionmaker(
                self._engine, class_=AsyncSession, expire_on_commit=False
            )
        return self._sessions

    async def close(self) -> None:
        """Dispose of the engine."""
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._sessions = None

    async def append(self, entry: LedgerEntry) -> int:
        """Write one entry and bump the daily aggregates.

        Args:
            entry: Validated ledger entry.

        Returns:
            Total number of entries after the write.
        """
        sessions = await self._session_factory()
        async with sessions() as db:
            db.add(
                LedgerEntryRow(
                    created_at=entry.created_at,
                    command=entry.command,
                    backend=entry.backend,
                    model=entry.model,
                    workflow=entry.workflow,
                    department=entry.department,
                    prompt_tokens=entry.prompt_tokens,
                    completion_tokens=entry.completion_tokens,
                    estimated_cost=entry.estimated_cost,
                    duration_ms=entry.duration_ms,
                    success=entry.success,
                    escalated=entry.escalated,
                    session_id=entry.session_id,
                    project=entry.project,
                    metadata_=entry.metadata,
                )
            )

            summary = insert(DailySummaryRow).values(
                date=entry.date,
                total_tokens=entry.total_tokens,
                total_cost=entry.estimated_cost,
                calls=1,
            )
            await db.execute(
                summary.on_conflict_do_update(
                    index_elements=[DailySummaryRow.date],
                    set_={
                        "total_tokens": DailySummaryRow.total_tokens
                        + summary.excluded.total_tokens,
                        "total_cost": DailySummaryRow.total_cost + summary.excluded.total_cost,
                        "calls": DailySummaryRow.calls + 1,
                    },
                )
            )

            for dimension in BREAKDOWN_DIMENSIONS:
                breakdown = insert(DailyBreakdownRow).values(
                    date=entry.date,
                    dimension=dimension,
                    key=getattr(entry, dimension) or "unknown",
                    calls=1,
                )
                await db.execute(
                    breakdown.on_conflict_do_update(
                        index_elements=[
                            DailyBreakdownRow.date,
                            DailyBreakdownRow.dimension,
                            DailyBreakdownRow.key,
                        ],
                        set_={"calls": DailyBreakdownRow.calls + 1},
                    )
                )

            await db.commit()
            total = await db.scalar(select(func.count()).select_from(LedgerEntryRow))

        log.debug(
            LEDGER_ENTRY_WRITTEN,
            command=entry.command,
            model=entry.model,
            success=entry.success,
            estimated_cost=entry.estimated_cost,
        )
        return int(total or 0)

    async def count(self) -> int:
        """Number of ledger entries."""
        sessions = await self._session_factory()
        async with sessions() as db:
            total = await db.scalar(select(func.count()).select_from(LedgerEntryRow))
        return int(total or 0)

    async def aggregate(
        self, group_by: str | None = None, since: datetime | None = None
    ) -> list[dict[str, Any]]:
        """Spend totals, optionally grouped.

        Args:
            group_by: ``backend``, ``workflow``, ``department``, ``model``,
                ``project`` or ``day``; None returns a single totals row.
            since: Only entries created at or after this time.

        Returns:
            Rows with ``key`` (when grouped), ``calls``, ``prompt_tokens``,
            ``completion_tokens`` and ``total_cost``, costliest first.

        Raises:
            ValueError: On an unknown ``group_by``.
        """
        if group_by == "day":
            key_column: Any = func.date(LedgerEntryRow.created_at)
        elif group_by is None:
            key_column = None
        elif group_by in GROUP_BY_COLUMNS:
            key_column = GROUP_BY_COLUMNS[group_by]
        else:
            raise ValueError(f"Unknown ledger grouping: {group_by}")

        total_cost = func.round(func.coalesce(func.sum(LedgerEntryRow.estimated_cost), 0.0), 4)
        columns = [
            func.count().label("calls"),
            func.coalesce(func.sum(LedgerEntryRow.prompt_tokens), 0).label("prompt_tokens"),
            func.coalesce(func.sum(LedgerEntryRow.completion_tokens), 0).label(
                "completion_tokens"
            ),
            total_cost.label("total_cost"),
        ]
        if key_column is not None:
            columns.insert(0, key_column.label("key"))

        stmt = select(*columns).select_from(LedgerEntryRow)
        if since is not None:
            stmt = stmt.where(LedgerEntryRow.created_at >= since)
        if key_column is not None:
            order = key_column.desc() if group_by == "day" else total_cost.desc()
            stmt = stmt.group_by(key_column).order_by(order, func.count().desc())

        sessions = await self._session_factory()
        async with sessions() as db:
            result = await db.execute(stmt)
            return [dict(row._mapping) for row in result]

    async def daily_summary(self) -> list[dict[str, Any]]:
        """Rows of ``daily_summary``, newest day first."""
        sessions = await self._session_factory()
        async with sessions() as db:
            result = await db.execute(
                select(DailySummaryRow).order_by(DailySummaryRow.date.desc())
            )
            return [
                {
                    "date": row.date,
                    "total_tokens": row.total_tokens,
                    "total_cost": round(row.total_cost, 4),
                    "calls": row.calls,
                }
                for row in result.scalars()
            ]

    async def routing_stats(self) -> list[RoutingStats]:
        """Performance per (workflow, backend, model), most used first."""
        calls = func.count()
        stmt = (
            select(
                LedgerEntryRow.workflow,
                LedgerEntryRow.backend,
                LedgerEntryRow.model,
                calls.label("calls"),
                func.sum(case((LedgerEntryRow.success.is_(True), 1), else_=0)).label("successes"),
                func.round(func.avg(LedgerEntryRow.duration_ms), 2).label("avg_duration_ms"),
                func.round(func.sum(LedgerEntryRow.estimated_cost), 4).label("total_cost"),
            )
            .group_by(LedgerEntryRow.workflow, LedgerEntryRow.backend, LedgerEntryRow.model)
            .order_by(calls.desc())
        )
        sessions = await self._session_factory()
        async with sessions() as db:
            result = await db.execute(stmt)
            return [RoutingStats.model_validate(dict(row._mapping)) for row in result]
