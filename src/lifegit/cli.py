"""CLI commands for tracking goals, progress commits, tags and task plans."""

from __future__ import annotations

import asyncio
import copy
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

import typer
import yaml

from .errors import LifeGitError
from .memory.schema import Branch, BranchStatus, CommitType, TagType, TaskPlan, TaskTimeScope
from .memory.store import MemoryStore
from .models import DeepseekClient, LLMClient, LLMClientError, OfflineLLMClient
from .planning.errors import DEFAULT_BASE_DELAY, DEFAULT_MAX_ATTEMPTS
from .planning.generator import GenerationLog, TaskPlanGenerator
from .planning.manager import TaskPlanManager
from .planning.progress import calculate_progress
from .planning.service import TaskPlanService
from .versioning.branches import BranchManager
from .versioning.catalog import (
    BRANCH_STATUS_CATALOG,
    COMMIT_TYPE_CATALOG,
    MASTER_BRANCH_DISPLAY,
    TAG_TYPE_CATALOG,
    TIME_SCOPE_CATALOG,
    commit_label,
)
from .versioning.commits import CommitManager
from .versioning.tags import TagManager

APP_HELP = "LifeGit: manage life goals like git branches."
DEFAULT_CONFIG_NAME = "lifegit.yaml"

DEFAULT_CONFIG_TEMPLATE: Dict[str, Any] = {
    "user": {
        "id": "local-user",
        "name": "",
    },
    "models": {
        "default": "deepseek-reasoner",
        "base_url": "https://api.deepseek.com/chat/completions",
        "api_key": "",
        "timeout": 60,
        "max_attempts": 2,
    },
    "retry": {
        "max_attempts": DEFAULT_MAX_ATTEMPTS,
        "base_delay": DEFAULT_BASE_DELAY,
    },
    "logging": {
        "level": "INFO",
    },
    "paths": {
        "data": "data",
        "db_path": "data/lifegit.sqlite",
        "logs": "data/logs",
    },
}

_VERBOSE = False


def _copy_config_template() -> Dict[str, Any]:
    """Return a deep copy of the default configuration template."""
    return copy.deepcopy(DEFAULT_CONFIG_TEMPLATE)


def _write_config(config_path: Path, config_data: Dict[str, Any]) -> None:
    """Persist configuration data to disk with stable formatting."""
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(config_data, handle, sort_keys=False, allow_unicode=True)


app = typer.Typer(help=APP_HELP)
branch_app = typer.Typer(help="Create and manage goal branches.")
commit_app = typer.Typer(help="Record and inspect progress commits.")
tag_app = typer.Typer(help="Mark life milestones with tags.")
plan_app = typer.Typer(help="Generate and edit the task plan of a branch.")
app.add_typer(branch_app, name="branch")
app.add_typer(commit_app, name="commit")
app.add_typer(tag_app, name="tag")
app.add_typer(plan_app, name="plan")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Track long-term goals as branches and progress as commits."""
    global _VERBOSE
    _VERBOSE = verbose


def _read_config(config_path: Path) -> Dict[str, Any]:
    """Read the YAML mapping stored at ``config_path`` without interpreting it."""
    if not config_path.exists():
        raise typer.BadParameter(f"Config file not found: {config_path}. Run `lifegit init` first.")

    try:
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except yaml.YAMLError as error:
        typer.echo(f"Failed to parse config: {error}")
        raise typer.Exit(code=1) from error

    if not isinstance(data, dict):
        typer.echo("Configuration must be a mapping at the top level.")
        raise typer.Exit(code=1)

    return data


def load_config(config_path: Path) -> Dict[str, Any]:
    """Load YAML configuration from disk and return it as a dictionary."""
    return _resolve_paths(_read_config(config_path), config_path)


def _resolve_paths(config: Dict[str, Any], config_path: Path) -> Dict[str, Any]:
    """Anchor relative data paths at the directory holding the config file."""
    paths_cfg = config.setdefault("paths", {})
    base = config_path.resolve().parent
    for key in ("data", "db_path", "logs"):
        value = paths_cfg.get(key)
        if isinstance(value, str) and value.strip() and not Path(value).is_absolute():
            paths_cfg[key] = (base / value).as_posix()
    return config


def _configure_logging(config: Dict[str, Any]) -> None:
    logging_cfg = config.get("logging") or {}
    level_name = "DEBUG" if _VERBOSE else str(logging_cfg.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger("lifegit").setLevel(level)


def _user_id(config: Dict[str, Any]) -> str:
    user_cfg = config.get("user") or {}
    return str(user_cfg.get("id") or "local-user")


def _is_offline_model(model_name: str) -> bool:
    key = model_name.lower()
    return key == "offline" or key.endswith("-offline")


def _build_client(config: Dict[str, Any], *, use_remote: bool) -> LLMClient:
    """Select either the real Deepseek client or the offline stub."""
    models_cfg = config.get("models") or {}
    model_name = str(models_cfg.get("default", "deepseek-reasoner"))

    if use_remote and not _is_offline_model(model_name):
        client_kwargs: Dict[str, Any] = {}
        timeout_value = models_cfg.get("timeout")
        if isinstance(timeout_value, (int, float)) and timeout_value > 0:
            client_kwargs["timeout"] = float(timeout_value)
        max_attempts_value = models_cfg.get("max_attempts")
        if isinstance(max_attempts_value, int) and max_attempts_value > 0:
            client_kwargs["max_attempts"] = max_attempts_value
        base_url_value = models_cfg.get("base_url")
        if isinstance(base_url_value, str) and base_url_value.strip():
            client_kwargs["base_url"] = base_url_value.strip()
        api_key_value = models_cfg.get("api_key")
        if isinstance(api_key_value, str) and api_key_value.strip():
            client_kwargs["api_key"] = api_key_value.strip()
        try:
            client = DeepseekClient(model=model_name, **client_kwargs)
        except ValueError as error:
            if "api key" in str(error).lower():
                typer.echo(
                    "No API key given. Set DEEPSEEK_API_KEY or models.api_key, "
                    "or re-run with --no-use-remote for a manual task plan."
                )
            else:
                typer.echo(f"Failed to initialise Deepseek client: {error}")
            raise typer.Exit(code=1)
        except LLMClientError as error:
            typer.echo(f"Failed to initialise Deepseek client: {error}")
            raise typer.Exit(code=1)
        typer.echo(f"Using Deepseek client ({model_name}).")
        return client

    if use_remote:
        typer.echo(f"Model '{model_name}' is offline-only; a manual task plan will be created.")
    else:
        typer.echo("AI generation disabled; a manual task plan will be created.")
    return OfflineLLMClient()


def _build_generator(config: Dict[str, Any], store: MemoryStore, *, use_remote: bool) -> TaskPlanGenerator:
    client = _build_client(config, use_remote=use_remote)
    retry_cfg = config.get("retry") or {}
    paths_cfg = config.get("paths") or {}
    return TaskPlanGenerator(
        store,
        TaskPlanService(client),
        max_attempts=int(retry_cfg.get("max_attempts", DEFAULT_MAX_ATTEMPTS)),
        base_delay=float(retry_cfg.get("base_delay", DEFAULT_BASE_DELAY)),
        is_online=not isinstance(client, OfflineLLMClient),
        generation_log=GenerationLog(paths_cfg.get("logs")),
    )


@contextmanager
def _session(config: str) -> Iterator[tuple[Dict[str, Any], MemoryStore]]:
    """Load configuration, open the store and turn domain errors into exit code 1."""
    config_data = load_config(Path(config))
    _configure_logging(config_data)
    try:
        with MemoryStore.from_config(config_data) as store:
            yield config_data, store
    except LifeGitError as error:
        typer.echo(f"Error: {error}")
        raise typer.Exit(code=1) from error


def _resolve_branch(store: MemoryStore, user_id: str, reference: str) -> Branch:
    """Find a branch by id, unique id prefix, or exact name."""
    branch = store.get_branch(reference)
    if branch is not None:
        return branch
    candidates = [
        candidate
        for candidate in store.list_branches(owner_user_id=user_id)
        if candidate.id.startswith(reference) or candidate.name == reference
    ]
    if len(candidates) == 1:
        return candidates[0]
    if not candidates:
        typer.echo(f"Branch not found: {reference}")
    else:
        typer.echo(f"Branch reference '{reference}' is ambiguous; use the full id.")
    raise typer.Exit(code=1)


def _resolve_item(plan: TaskPlan, reference: str) -> str:
    """Resolve a task item by id, id prefix or 1-based position."""
    if reference.isdigit():
        position = int(reference)
        if 1 <= position <= len(plan.tasks):
            return plan.tasks[position - 1].id
    matches = [task.id for task in plan.tasks if task.id.startswith(reference)]
    if len(matches) == 1:
        return matches[0]
    typer.echo(f"Task not found: {reference}")
    raise typer.Exit(code=1)


def _require_plan(store: MemoryStore, branch: Branch) -> TaskPlan:
    plan = store.get_task_plan_for_branch(branch.id)
    if plan is None:
        typer.echo(f"Branch '{branch.name}' has no task plan. Run `lifegit plan generate` first.")
        raise typer.Exit(code=1)
    return plan


def _branch_label(branch: Branch) -> str:
    display = MASTER_BRANCH_DISPLAY if branch.is_master else BRANCH_STATUS_CATALOG[branch.status]
    return f"{display.emoji} {branch.name} [{branch.id[:8]}] {display.display_name.lower()}"


def _render_plan(plan: TaskPlan) -> None:
    origin = "AI-generated" if plan.is_ai_generated else "manual"
    typer.echo(f"Task plan {plan.id[:8]} ({origin}): {plan.total_duration}")
    if not plan.tasks:
        typer.echo("No tasks.")
        return
    for task in plan.tasks:
        mark = "x" if task.is_completed else " "
        scope = TIME_SCOPE_CATALOG[task.time_scope]
        typer.echo(
            f"{task.order_index + 1}. [{mark}] {task.title} "
            f"({scope.display_name.lower()}, {task.estimated_duration} min) [{task.id[:8]}]"
        )
        if task.description:
            typer.echo(f"     {task.description}")
        if task.execution_tips:
            typer.echo(f"     tip: {task.execution_tips}")


def _config_option() -> Any:
    return typer.Option(
        DEFAULT_CONFIG_NAME,
        "--config",
        "-c",
        help="Path to the LifeGit configuration file.",
    )


def _use_remote_option() -> Any:
    return typer.Option(
        True,
        "--use-remote/--no-use-remote",
        help="Call the Deepseek API instead of creating a manual plan (requires API key).",
    )


@app.command()
def init(
    config: str = _config_option(),
    user_id: Optional[str] = typer.Option(None, "--user-id", help="Identifier of the local user."),
    name: Optional[str] = typer.Option(None, "--name", help="Display name of the local user."),
) -> None:
    """Write the configuration file and create the master branch."""
    config_path = Path(config)
    config_exists = config_path.exists()
    config_data = _read_config(config_path) if config_exists else _copy_config_template()
    user_cfg = config_data.setdefault("user", {})
    dirty = not config_exists
    if user_id and user_cfg.get("id") != user_id:
        user_cfg["id"] = user_id
        dirty = True
    if name and user_cfg.get("name") != name:
        user_cfg["name"] = name
        dirty = True
    if dirty:
        _write_config(config_path, config_data)
        typer.echo(f"{'Updated' if config_exists else 'Created'} configuration at {config_path}.")

    with _session(config) as (config_data, store):
        master = BranchManager(store).ensure_master_branch(_user_id(config_data))
        typer.echo(f"Master branch ready: {master.name} [{master.id[:8]}]")


@app.command()
def status(config: str = _config_option()) -> None:
    """Summarise branches, commits and tags for the configured user."""
    with _session(config) as (config_data, store):
        user_id = _user_id(config_data)
        master = store.get_master_branch(user_id)
        if master is None:
            typer.echo("No master branch yet. Run `lifegit init`.")
            raise typer.Exit(code=1)
        branches = store.list_branches(owner_user_id=user_id)
        counts = {state: 0 for state in BranchStatus}
        for branch in branches:
            if not branch.is_master:
                counts[branch.status] += 1
        typer.echo(f"Master: {master.name} [{master.id[:8]}] ({store.count_commits(master.id)} commit(s))")
        typer.echo(
            "Branches: "
            + " | ".join(f"{BRANCH_STATUS_CATALOG[state].display_name} {count}" for state, count in counts.items())
        )
        typer.echo(f"Tags: {len(store.list_tags(owner_user_id=user_id))}")


# Branch commands -------------------------------------------------------------------
@branch_app.command("create")
def branch_create(
    name: str = typer.Argument(..., help="Goal title."),
    description: str = typer.Option("", "--description", "-d", help="Goal description."),
    timeframe: Optional[str] = typer.Option(None, "--timeframe", "-t", help="Expected timeframe."),
    plan: bool = typer.Option(True, "--plan/--no-plan", help="Generate a task plan for the branch."),
    config: str = _config_option(),
    use_remote: bool = _use_remote_option(),
) -> None:
    """Create a goal branch and its task plan."""
    with _session(config) as (config_data, store):
        user_id = _user_id(config_data)
        BranchManager(store).ensure_master_branch(user_id)
        generator = _build_generator(config_data, store, use_remote=use_remote) if plan else None
        manager = BranchManager(store, generator)
        branch, task_plan = asyncio.run(
            manager.create_branch(name, description, user_id, timeframe=timeframe, generate_plan=plan)
        )
        typer.echo(f"Created branch {branch.name} [{branch.id[:8]}].")
        if task_plan is not None:
            _render_plan(task_plan)


@branch_app.command("list")
def branch_list(
    state: Optional[BranchStatus] = typer.Option(None, "--status", "-s", help="Filter by status."),
    config: str = _config_option(),
) -> None:
    """List branches, newest first."""
    with _session(config) as (config_data, store):
        branches = store.list_branches(owner_user_id=_user_id(config_data), status=state)
        if not branches:
            typer.echo("No branches.")
            return
        for branch in branches:
            typer.echo(_branch_label(branch))


@branch_app.command("complete")
def branch_complete(
    branch_ref: str = typer.Argument(..., help="Branch id, id prefix or name."),
    config: str = _config_option(),
) -> None:
    """Mark a branch as completed."""
    with _session(config) as (config_data, store):
        branch = _resolve_branch(store, _user_id(config_data), branch_ref)
        BranchManager(store).complete_branch(branch)
        typer.echo(f"Completed branch {branch.name}.")


@branch_app.command("abandon")
def branch_abandon(
    branch_ref: str = typer.Argument(..., help="Branch id, id prefix or name."),
    config: str = _config_option(),
) -> None:
    """Abandon an active branch."""
    with _session(config) as (config_data, store):
        branch = _resolve_branch(store, _user_id(config_data), branch_ref)
        BranchManager(store).abandon_branch(branch)
        typer.echo(f"Abandoned branch {branch.name}.")


@branch_app.command("merge")
def branch_merge(
    branch_ref: str = typer.Argument(..., help="Branch id, id prefix or name."),
    config: str = _config_option(),
) -> None:
    """Record a completed branch on the master branch."""
    with _session(config) as (config_data, store):
        branch = _resolve_branch(store, _user_id(config_data), branch_ref)
        commit = BranchManager(store).merge_branch(branch)
        typer.echo(f"Merged {branch.name} into master ({commit.message}).")


@branch_app.command("stats")
def branch_stats(
    branch_ref: str = typer.Argument(..., help="Branch id, id prefix or name."),
    config: str = _config_option(),
) -> None:
    """Show commit and task statistics for a branch."""
    with _session(config) as (config_data, store):
        branch = _resolve_branch(store, _user_id(config_data), branch_ref)
        stats = BranchManager(store).branch_statistics(branch)
        typer.echo(_branch_label(branch))
        typer.echo(f"Commits: {stats.commit_count}")
        typer.echo(f"Tasks: {stats.completed_tasks}/{stats.total_tasks} ({stats.progress:.0%})")
        typer.echo(f"Estimated duration: {stats.estimated_duration} min")


# Commit commands -------------------------------------------------------------------
@commit_app.command("add")
def commit_add(
    branch_ref: str = typer.Argument(..., help="Branch id, id prefix or name."),
    commit_type: CommitType = typer.Option(CommitType.TASK_COMPLETE, "--type", "-t", help="Commit type."),
    message: Optional[str] = typer.Option(None, "--message", "-m", help="Commit message."),
    task: Optional[str] = typer.Option(None, "--task", help="Related task item id."),
    config: str = _config_option(),
) -> None:
    """Record a progress commit on a branch."""
    with _session(config) as (config_data, store):
        branch = _resolve_branch(store, _user_id(config_data), branch_ref)
        manager = CommitManager(store)
        if message:
            commit = manager.create_commit(branch.id, commit_type, message, related_task_id=task)
        else:
            commit = manager.create_quick_commit(branch.id, commit_type)
        typer.echo(f"[{branch.name} {commit.id[:8]}] {commit_label(commit.type)}: {commit.message}")


@commit_app.command("list")
def commit_list(
    branch_ref: Optional[str] = typer.Option(None, "--branch", "-b", help="Only this branch."),
    commit_type: Optional[CommitType] = typer.Option(None, "--type", "-t", help="Only this type."),
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Match message text."),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum number of commits."),
    config: str = _config_option(),
) -> None:
    """List commits, newest first."""
    with _session(config) as (config_data, store):
        if search:
            commits = CommitManager(store).search(search)[:limit]
        else:
            branch_id = (
                _resolve_branch(store, _user_id(config_data), branch_ref).id if branch_ref else None
            )
            commits = store.list_commits(branch_id=branch_id, commit_type=commit_type, limit=limit)
        if not commits:
            typer.echo("No commits.")
            return
        for commit in commits:
            stamp = commit.created_at.strftime("%Y-%m-%d %H:%M")
            typer.echo(f"{commit.id[:8]} {stamp} {commit_label(commit.type)}: {commit.message}")


@commit_app.command("recommend")
def commit_recommend(
    branch_ref: Optional[str] = typer.Option(None, "--branch", "-b", help="Only this branch."),
    config: str = _config_option(),
) -> None:
    """Suggest commit types based on the last 30 days."""
    with _session(config) as (config_data, store):
        branch_id = _resolve_branch(store, _user_id(config_data), branch_ref).id if branch_ref else None
        for commit_type in CommitManager(store).recommended_types(branch_id):
            info = COMMIT_TYPE_CATALOG[commit_type]
            typer.echo(f"{info.emoji} {commit_type.value}: {info.description}")


@commit_app.command("stats")
def commit_stats(
    branch_ref: str = typer.Argument(..., help="Branch id, id prefix or name."),
    config: str = _config_option(),
) -> None:
    """Show commit statistics and the current streak for a branch."""
    with _session(config) as (config_data, store):
        branch = _resolve_branch(store, _user_id(config_data), branch_ref)
        manager = CommitManager(store)
        stats = manager.commit_statistics(branch.id)
        typer.echo(f"Total commits: {stats.total_commits}")
        for commit_type, count in sorted(stats.by_type.items(), key=lambda entry: -entry[1]):
            typer.echo(f"  {commit_label(commit_type)}: {count}")
        typer.echo(f"Commits per day (30d): {stats.commit_frequency:.2f}")
        if stats.most_active_day:
            typer.echo(f"Most active day: {stats.most_active_day}")
        typer.echo(f"Current streak: {manager.commit_streak(branch.id)} day(s)")


# Tag commands ----------------------------------------------------------------------
@tag_app.command("add")
def tag_add(
    title: str = typer.Argument(..., help="Tag title."),
    tag_type: TagType = typer.Option(TagType.MILESTONE, "--type", "-t", help="Tag type."),
    description: str = typer.Option("", "--description", "-d", help="Tag description."),
    version: Optional[str] = typer.Option(None, "--version", help="Associated life version."),
    important: bool = typer.Option(False, "--important", help="Mark the tag as important."),
    config: str = _config_option(),
) -> None:
    """Create a milestone tag."""
    with _session(config) as (config_data, store):
        tag = TagManager(store).create_tag(
            _user_id(config_data),
            title,
            tag_type,
            description=description,
            associated_version=version,
            is_important=important,
        )
        typer.echo(f"Created tag {TAG_TYPE_CATALOG[tag.type].emoji} {tag.title} [{tag.id[:8]}].")


@tag_app.command("list")
def tag_list(
    tag_type: Optional[TagType] = typer.Option(None, "--type", "-t", help="Only this type."),
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Match title or description."),
    versioned: bool = typer.Option(False, "--versioned", help="Only tags tied to a version."),
    config: str = _config_option(),
) -> None:
    """List tags, newest first."""
    with _session(config) as (config_data, store):
        manager = TagManager(store)
        user_id = _user_id(config_data)
        if versioned:
            tags = manager.version_associated_tags(user_id)
        else:
            tags = manager.filter_tags(user_id, tag_type=tag_type, text=search)
        if not tags:
            typer.echo("No tags.")
            return
        for tag in tags:
            version = f" @ {tag.associated_version}" if tag.is_version_associated else ""
            star = " *" if tag.is_important else ""
            typer.echo(f"{TAG_TYPE_CATALOG[tag.type].emoji} {tag.title}{version}{star} [{tag.id[:8]}]")


@tag_app.command("associate")
def tag_associate(
    tag_id: str = typer.Argument(..., help="Tag id."),
    version: str = typer.Argument(..., help="Life version, e.g. v2.0."),
    config: str = _config_option(),
) -> None:
    """Tie a tag to a life version."""
    with _session(config) as (_, store):
        tag = TagManager(store).associate_with_version(tag_id, version)
        typer.echo(f"Tag {tag.title} associated with {tag.associated_version}.")


# Plan commands ---------------------------------------------------------------------
def _plan_manager(config_data: Dict[str, Any], store: MemoryStore, *, use_remote: bool) -> TaskPlanManager:
    return TaskPlanManager(store, _build_generator(config_data, store, use_remote=use_remote))


@plan_app.command("generate")
def plan_generate(
    branch_ref: str = typer.Argument(..., help="Branch id, id prefix or name."),
    timeframe: Optional[str] = typer.Option(None, "--timeframe", "-t", help="Expected timeframe."),
    config: str = _config_option(),
    use_remote: bool = _use_remote_option(),
) -> None:
    """Generate a task plan for a branch that has none."""
    with _session(config) as (config_data, store):
        branch = _resolve_branch(store, _user_id(config_data), branch_ref)
        manager = _plan_manager(config_data, store, use_remote=use_remote)
        plan = asyncio.run(
            manager.generate_task_plan(branch.name, branch.description, branch.id, timeframe)
        )
        _render_plan(plan)


@plan_app.command("regenerate")
def plan_regenerate(
    branch_ref: str = typer.Argument(..., help="Branch id, id prefix or name."),
    config: str = _config_option(),
    use_remote: bool = _use_remote_option(),
) -> None:
    """Replace the task plan of a branch with a freshly generated one."""
    with _session(config) as (config_data, store):
        branch = _resolve_branch(store, _user_id(config_data), branch_ref)
        existing = _require_plan(store, branch)
        manager = _plan_manager(config_data, store, use_remote=use_remote)
        plan = asyncio.run(manager.regenerate_task_plan(existing))
        _render_plan(plan)


@plan_app.command("show")
def plan_show(
    branch_ref: str = typer.Argument(..., help="Branch id, id prefix or name."),
    config: str = _config_option(),
) -> None:
    """Print the task plan of a branch."""
    with _session(config) as (config_data, store):
        branch = _resolve_branch(store, _user_id(config_data), branch_ref)
        _render_plan(_require_plan(store, branch))


@plan_app.command("add")
def plan_add(
    branch_ref: str = typer.Argument(..., help="Branch id, id prefix or name."),
    title: str = typer.Argument(..., help="Task title."),
    description: str = typer.Option("", "--description", "-d", help="Task description."),
    scope: TaskTimeScope = typer.Option(TaskTimeScope.DAILY, "--scope", "-s", help="Time scope."),
    minutes: int = typer.Option(30, "--minutes", "-m", help="Estimated duration in minutes."),
    tips: Optional[str] = typer.Option(None, "--tips", help="Execution tips."),
    config: str = _config_option(),
) -> None:
    """Append a task to the plan."""
    with _session(config) as (config_data, store):
        branch = _resolve_branch(store, _user_id(config_data), branch_ref)
        plan = _require_plan(store, branch)
        manager = TaskPlanManager(store, TaskPlanGenerator(store))
        item = manager.add_task_item(plan, title, description, scope, minutes, tips)
        typer.echo(f"Added task {item.order_index + 1}: {item.title} [{item.id[:8]}]")


@plan_app.command("remove")
def plan_remove(
    branch_ref: str = typer.Argument(..., help="Branch id, id prefix or name."),
    task_ref: str = typer.Argument(..., help="Task position, id or id prefix."),
    config: str = _config_option(),
) -> None:
    """Remove a task from the plan."""
    with _session(config) as (config_data, store):
        branch = _resolve_branch(store, _user_id(config_data), branch_ref)
        plan = _require_plan(store, branch)
        task_id = _resolve_item(plan, task_ref)
        TaskPlanManager(store, TaskPlanGenerator(store)).remove_task_item(plan, task_id)
        typer.echo(f"Removed task; {len(plan.tasks)} task(s) remain.")


@plan_app.command("move")
def plan_move(
    branch_ref: str = typer.Argument(..., help="Branch id, id prefix or name."),
    task_ref: str = typer.Argument(..., help="Task position, id or id prefix."),
    position: int = typer.Argument(..., help="New 1-based position."),
    config: str = _config_option(),
) -> None:
    """Move a task to a new position."""
    with _session(config) as (config_data, store):
        branch = _resolve_branch(store, _user_id(config_data), branch_ref)
        plan = _require_plan(store, branch)
        task_id = _resolve_item(plan, task_ref)
        items = list(plan.tasks)
        moving = next(task for task in items if task.id == task_id)
        items.remove(moving)
        target = min(max(position, 1), len(items) + 1) - 1
        items.insert(target, moving)
        TaskPlanManager(store, TaskPlanGenerator(store)).reorder_task_items(plan, items)
        _render_plan(plan)


@plan_app.command("toggle")
def plan_toggle(
    branch_ref: str = typer.Argument(..., help="Branch id, id prefix or name."),
    task_ref: str = typer.Argument(..., help="Task position, id or id prefix."),
    config: str = _config_option(),
) -> None:
    """Flip the completion state of a task."""
    with _session(config) as (config_data, store):
        branch = _resolve_branch(store, _user_id(config_data), branch_ref)
        plan = _require_plan(store, branch)
        task_id = _resolve_item(plan, task_ref)
        item = TaskPlanManager(store, TaskPlanGenerator(store)).toggle_task_completion(plan, task_id)
        state = "completed" if item.is_completed else "not completed"
        typer.echo(f"Task '{item.title}' is {state}.")


@plan_app.command("progress")
def plan_progress(
    branch_ref: str = typer.Argument(..., help="Branch id, id prefix or name."),
    config: str = _config_option(),
) -> None:
    """Show task plan progress."""
    with _session(config) as (config_data, store):
        branch = _resolve_branch(store, _user_id(config_data), branch_ref)
        progress = calculate_progress(_require_plan(store, branch))
        typer.echo(f"Tasks: {progress.completed_tasks}/{progress.total_tasks} ({progress.progress:.0%})")
        typer.echo(
            f"Duration: {progress.completed_duration}/{progress.total_estimated_duration} min "
            f"({progress.remaining_duration} min remaining)"
        )
        if progress.is_completed:
            typer.echo("All tasks completed.")


if __name__ == "__main__":
    app()
