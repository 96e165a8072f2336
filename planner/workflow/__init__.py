"""
Planning workflows: per-domain slot-filling state machines.

Key components:
- WorkflowEngine: drives the active workflow for one session
- definitions: travel / study / project / event / life graphs and plan generators
- models: WorkflowDefinition, WorkflowPhase, WorkflowState, PlanOutput
"""

from planner.workflow.engine import WorkflowEngine
from planner.workflow.models import (
    PlanOutput,
    PlanSection,
    WorkflowDefinition,
    WorkflowDefinitionError,
    WorkflowPhase,
    WorkflowState,
)

__all__ = [
    "PlanOutput",
    "PlanSection",
    "WorkflowDefinition",
    "WorkflowDefinitionError",
    "WorkflowEngine",
    "WorkflowPhase",
    "WorkflowState",
]
