"""Telemetry module for structured logging and trace correlation.

This module provides:
- TraceContext for per-task correlation
- Structured logging via structlog
- Semantic event constants
"""

from taskforge.telemetry.events import (
    APPROVAL_DENIED,
    APPROVAL_GRANTED,
    APPROVAL_REQUIRED,
    BRAIN_QUERIED,
    BRAIN_SUMMARY_STORED,
    BUDGET_EXCEEDED,
    COST_ESTIMATED,
    COST_WARNING,
    DRY_RUN_PLANNED,
    ESCALATION_SKIPPED,
    ESCALATION_TRIGGERED,
    LEDGER_ENTRY_WRITTEN,
    LEDGER_WRITE_FAILED,
    MODEL_CALL_COMPLETED,
    MODEL_CALL_ERROR,
    MODEL_CALL_STARTED,
    MODEL_CALL_TIMEOUT,
    PIPELINE_ABORTED,
    PIPELINE_STARTED,
    PIPELINE_STEP_COMPLETED,
    PIPELINE_STEP_SKIPPED,
    QUALITY_JUDGE_FAILED,
    QUALITY_JUDGE_VERDICT,
    ROUTING_REPORT_WRITTEN,
    SESSION_CLOSED,
    SESSION_CREATED,
    SESSION_HYDRATED,
    SUB_AGENT_COMPLETED,
    TASK_CLASSIFIED,
    TASK_COMPLETED,
    TASK_FAILED,
    TASK_STARTED,
    WORKTREE_CLEANUP_FAILED,
    WORKTREE_CREATED,
    WORKTREE_KEPT,
    WORKTREE_REMOVED,
)
from taskforge.telemetry.logger import configure_logging, get_logger
from taskforge.telemetry.trace import TraceContext

__all__ = [
    # Core exports
    "TraceContext",
    "get_logger",
    "configure_logging",
    # Event constants
    "TASK_STARTED",
    "TASK_COMPLETED",
    "TASK_FAILED",
    "TASK_CLASSIFIED",
    "DRY_RUN_PLANNED",
    "COST_ESTIMATED",
    "COST_WARNING",
    "BUDGET_EXCEEDED",
    "MODEL_CALL_STARTED",
    "MODEL_CALL_COMPLETED",
    "MODEL_CALL_ERROR",
    "MODEL_CALL_TIMEOUT",
    "ESCALATION_TRIGGERED",
    "ESCALATION_SKIPPED",
    "QUALITY_JUDGE_VERDICT",
    "QUALITY_JUDGE_FAILED",
    "PIPELINE_STARTED",
    "PIPELINE_STEP_COMPLETED",
    "PIPELINE_STEP_SKIPPED",
    "PIPELINE_ABORTED",
    "SUB_AGENT_COMPLETED",
    "APPROVAL_REQUIRED",
    "APPROVAL_GRANTED",
    "APPROVAL_DENIED",
    "SESSION_CREATED",
    "SESSION_HYDRATED",
    "SESSION_CLOSED",
    "WORKTREE_CREATED",
    "WORKTREE_REMOVED",
    "WORKTREE_KEPT",
    "WORKTREE_CLEANUP_FAILED",
    "LEDGER_ENTRY_WRITTEN",
    "LEDGER_WRITE_FAILED",
    "ROUTING_REPORT_WRITTEN",
    "BRAIN_QUERIED",
    "BRAIN_SUMMARY_STORED",
]
