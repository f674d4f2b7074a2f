"""Workflows for news_brief."""

from .delivery import compose_message, run_delivery
from .discovery import build_delivery_units, check_processed, delivery_instance_id, run_discovery
from .engine import WorkflowBinding, WorkflowInstance, WorkflowStep

__all__ = [
    "compose_message",
    "run_delivery",
    "build_delivery_units",
    "check_processed",
    "delivery_instance_id",
    "run_discovery",
    "WorkflowBinding",
    "WorkflowInstance",
    "WorkflowStep",
]
