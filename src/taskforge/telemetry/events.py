"""Semantic event constants for structured logging.

All log events should use these constants rather than magic strings to ensure
consistency and enable reliable querying of ``<home>/logs/taskforge.jsonl``.
"""

# Orchestrator events
TASK_STARTED = "task_started"
TASK_COMPLETED = "task_completed"
TASK_FAILED = "task_failed"
TASK_CLASSIFIED = "task_classified"
DRY_RUN_PLANNED = "dry_run_planned"

# Cost guard events
COST_ESTIMATED = "cost_estimated"
COST_WARNING = "cost_warning"
BUDGET_EXCEEDED = "budget_exceeded"

# Backend events
MODEL_CALL_STARTED = "model_call_started"
MODEL_CALL_COMPLETED = "model_call_completed"
MODEL_CALL_ERROR = "model_call_error"
MODEL_CALL_TIMEOUT = "model_call_timeout"

# Escalation events
ESCALATION_TRIGGERED = "escalation_triggered"
ESCALATION_SKIPPED = "escalation_skipped"
QUALITY_JUDGE_VERDICT = "quality_judge_verdict"
QUALITY_JUDGE_FAILED = "quality_judge_failed"

# Pipeline events
PIPELINE_STARTED = "pipeline_started"
PIPELINE_STEP_COMPLETED = "pipeline_step_completed"
PIPELINE_STEP_SKIPPED = "pipeline_step_skipped"
PIPELINE_ABORTED = "pipeline_aborted"
SUB_AGENT_COMPLETED = "sub_agent_completed"

# Human checkpoint events
APPROVAL_REQUIRED = "approval_required"
APPROVAL_GRANTED = "approval_granted"
APPROVAL_DENIED = "approval_denied"

# Session events
SESSION_CREATED = "session_created"
SESSION_HYDRATED = "session_hydrated"
SESSION_CLOSED = "session_closed"

# Worktree events
WORKTREE_CREATED = "worktree_created"
WORKTREE_REMOVED = "worktree_removed"
WORKTREE_KEPT = "worktree_kept"
WORKTREE_CLEANUP_FAILED = "worktree_cleanup_failed"

# Ledger and knowledge-base events
LEDGER_ENTRY_WRITTEN = "ledger_entry_written"
LEDGER_WRITE_FAILED = "ledger_write_failed"
ROUTING_REPORT_WRITTEN = "routing_report_written"
BRAIN_QUERIED = "brain_queried"
BRAIN_SUMMARY_STORED = "brain_summary_stored"
