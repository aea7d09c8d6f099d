"""
Workflows package - Sample workflow implementations.
"""

from actionflow.workflows.item_pipeline import create_item_pipeline_workflow, register_item_pipeline_workflow

__all__ = [
    "create_item_pipeline_workflow",
    "register_item_pipeline_workflow",
]
