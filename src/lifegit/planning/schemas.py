"""Structured payloads returned by the AI backend when generating a plan."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(slots=True)
class GeneratedTask:
    """Single task descriptor proposed by the backend."""

    title: str
    description: str = ""
    time_scope: str = "daily"
    estimated_duration: int = 0
    order_index: Optional[int] = None
    execution_tips: Optional[str] = None


@dataclass(slots=True)
class GeneratedPlan:
    """Ordered plan description proposed by the backend."""

    total_duration: str = ""
    tasks: List[GeneratedTask] = field(default_factory=list)


__all__ = ["GeneratedPlan", "GeneratedTask"]
