from __future__ import annotations

import sys
import textwrap
from pathlib import Path
from typing import Iterator

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from lifegit.memory.schema import Branch  # noqa: E402
from lifegit.memory.store import MemoryStore  # noqa: E402


@pytest.fixture()
def store(tmp_path: Path) -> Iterator[MemoryStore]:
    """Fresh SQLite store for a single test."""
    with MemoryStore(tmp_path / "lifegit.sqlite") as memory:
        yield memory


@pytest.fixture()
def goal_branch(store: MemoryStore) -> Branch:
    """Active goal branch owned by the default test user."""
    master = Branch(name="master", is_master=True, owner_user_id="user-1")
    store.create_branch(master)
    branch = Branch(
        name="Learn Spanish",
        description="Hold a 10 minute conversation",
        owner_user_id="user-1",
        parent_branch_id=master.id,
    )
    store.create_branch(branch)
    return branch


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    """Offline configuration file pointing at a temporary data directory."""
    path = tmp_path / "lifegit.yaml"
    path.write_text(
        textwrap.dedent(
            """
            user:
              id: user-1
              name: Tester
            models:
              default: deepseek-offline
            retry:
              max_attempts: 0
              base_delay: 0.0
            logging:
              level: WARNING
            paths:
              data: data
              db_path: data/lifegit.sqlite
              logs: data/logs
            """
        ).lstrip(),
        encoding="utf-8",
    )
    return path
