"""
Pure functions for task status interpretation.
"""

from typing import Optional

from ..models import Task, TaskStatus


def is_success_status(status: Optional[str]) -> bool:
    return TaskStatus.normalize(status) is TaskStatus.SUCCEEDED


def is_failure_status(status: Optional[str]) -> bool:
    return TaskStatus.normalize(status) is TaskStatus.FAILED


def is_terminal_status(status: Optional[str]) -> bool:
    return TaskStatus.normalize(status).is_terminal


def describe_task(task: Optional[Task]) -> str:
    """One-line summary of a task for log output."""
    if task is None:
        return "task=<null>"
    return (
        f"task[id={task.task_id}, status={task.status}, "
        f"position={task.position}, meta={task.metadata}]"
    )
