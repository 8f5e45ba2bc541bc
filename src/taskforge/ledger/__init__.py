"""Cost ledger: one row per task invocation plus daily aggregates."""

from taskforge.ledger.models import LedgerEntry, RoutingStats
from taskforge.ledger.reports import (
    RoutingAnalysis,
    analyze_routing_performance,
    maybe_write_reports,
    suggest_routing_changes,
    write_routing_reports,
)
from taskforge.ledger.tracker import Ledger

__all__ = [
    "Ledger",
    "LedgerEntry",
    "RoutingStats",
    "RoutingAnalysis",
    "analyze_routing_performance",
    "maybe_write_reports",
    "suggest_routing_changes",
    "write_routing_reports",
]
