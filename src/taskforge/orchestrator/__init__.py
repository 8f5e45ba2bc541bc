"""Orchestrator module for task classification, routing and execution.

This module provides the core orchestrator that coordinates a task end to end
between the CLI, the backends, the knowledge base and the ledger.
"""

from taskforge.orchestrator.checkpoint import AutoApproveConfirmer, Confirmer, ConsoleConfirmer
from taskforge.orchestrator.classifier import Classifier, classify_task
from taskforge.orchestrator.orchestrator import Orchestrator, TaskRequest
from taskforge.orchestrator.session import SessionManager
from taskforge.orchestrator.types import (
    AgentSpec,
    BackendInvocationError,
    BudgetExceededError,
    CheckpointDeclinedError,
    Classification,
    Complexity,
    CostEstimate,
    DryRunPlan,
    ExecutionResult,
    InvalidSessionTransition,
    OrchestratorError,
    OrchestratorResult,
    Session,
    SessionStage,
    Step,
    StepResult,
    SubAgentSpec,
    Worktree,
)

__all__ = [
    # Public API
    "Orchestrator",
    "TaskRequest",
    "Classifier",
    "classify_task",
    # Types
    "Classification",
    "Complexity",
    "CostEstimate",
    "AgentSpec",
    "Step",
    "SubAgentSpec",
    "StepResult",
    "ExecutionResult",
    "DryRunPlan",
    "OrchestratorResult",
    "Worktree",
    # Session management
    "Session",
    "SessionStage",
    "SessionManager",
    # Human checkpoints
    "Confirmer",
    "AutoApproveConfirmer",
    "ConsoleConfirmer",
    # Errors
    "OrchestratorError",
    "BudgetExceededError",
    "CheckpointDeclinedError",
    "BackendInvocationError",
    "InvalidSessionTransition",
]
