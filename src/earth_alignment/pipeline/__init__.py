"""
Pipeline Module

End-to-end orchestration of the georeferencing workflow.
"""

from .workflow import EarthAlignmentWorkflow, WorkflowResult

__all__ = [
    "EarthAlignmentWorkflow",
    "WorkflowResult",
]
