"""
Task plan generation, editing and progress tracking.
"""

from importlib import import_module
from typing import Any

_EXPORTS = {
    "TaskPlanGenerator": "lifegit.planning.generator",
    "TaskPlanManager": "lifegit.planning.manager",
    "TaskPlanService": "lifegit.planning.service",
    "TaskItemStore": "lifegit.planning.items",
    "ErrorClassifier": "lifegit.planning.errors",
    "calculate_progress": "lifegit.planning.progress",
}

__all__ = sorted(_EXPORTS)


def __getattr__(name: str) -> Any:
    """Lazily import planning components so submodules stay independently importable."""
    if name in _EXPORTS:
        module = import_module(_EXPORTS[name])
        return getattr(module, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
