"""Prompt templates used when asking the AI backend for a task plan."""

from __future__ import annotations

from typing import Optional

JSON_RESPONSE_INSTRUCTION = (
    "Return only JSON. Emit a single JSON object that satisfies the documented response schema. "
    "Do not include markdown fences, explanations, or trailing text."
)

PLAN_RESPONSE_SCHEMA = """{
  "total_duration": "overall duration estimate, e.g. '6 weeks'",
  "tasks": [
    {
      "title": "task title",
      "description": "what to do and how to know it is done",
      "time_scope": "daily|weekly|monthly",
      "estimated_duration": <minutes as an integer>,
      "order_index": <zero-based position>,
      "execution_tips": "practical advice"
    }
  ]
}"""


def render_system_prompt() -> str:
    """Return the planner persona and response contract."""
    return (
        "You are a goal-management and task-planning assistant. Break large personal goals "
        "into concrete, measurable, executable tasks.\n"
        "- Keep every task specific and actionable.\n"
        "- Estimate durations realistically.\n"
        "- Order tasks from easier to harder and keep a logical sequence.\n"
        "- Offer practical execution tips.\n\n"
        f"Respond with JSON shaped like:\n{PLAN_RESPONSE_SCHEMA}\n\n{JSON_RESPONSE_INSTRUCTION}"
    )


def render_plan_prompt(goal_title: str, goal_description: str, timeframe: Optional[str] = None) -> str:
    """Render the user prompt describing the goal to decompose."""
    lines = [
        "Create a detailed task plan for the following goal.",
        "",
        f"Goal title: {goal_title.strip()}",
        f"Goal description: {goal_description.strip()}",
    ]
    if timeframe and timeframe.strip():
        lines.append(f"Expected timeframe: {timeframe.strip()}")
    lines.extend(
        [
            "",
            "Requirements:",
            "1. Split the goal into concrete, executable tasks.",
            "2. Assign each task a time scope (daily, weekly, monthly).",
            "3. Estimate each task's duration in minutes.",
            "4. Describe each task and give execution tips.",
            "5. Keep the tasks in a logical order.",
        ]
    )
    return "\n".join(lines)


__all__ = [
    "JSON_RESPONSE_INSTRUCTION",
    "PLAN_RESPONSE_SCHEMA",
    "render_plan_prompt",
    "render_system_prompt",
]
