"""Workspace registry and the outcome-returning workbench facade."""

from dtree.workspace.registry import WorkspaceRegistry
from dtree.workspace.workbench import Outcome, Workbench

__all__ = [
    "Outcome",
    "Workbench",
    "WorkspaceRegistry",
]
