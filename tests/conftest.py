"""
Shared fixtures for the neuFramework test suite.

The credential store is replaced with an in-memory stand-in for the supabase
query builder, so no test touches the network.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import bcrypt
import pytest

from neufw.core.config import Settings

REPO_ROOT = Path(__file__).resolve().parents[1]
TEMPLATES_DIR = REPO_ROOT / "templates"


def make_hash(password: str) -> str:
    # Low cost factor keeps the suite fast
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("ascii")


@dataclass
class FakeResult:
    data: List[Dict[str, Any]]


@dataclass
class FakeQuery:
    client: "FakeSupabase"
    table_name: str
    columns: Optional[List[str]] = None
    filters: List[tuple] = field(default_factory=list)
    max_rows: Optional[int] = None

    def select(self, columns: str) -> "FakeQuery":
        self.columns = [c.strip() for c in columns.split(",")]
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append((column, value))
        return self

    def limit(self, count: int) -> "FakeQuery":
        self.max_rows = count
        return self

    def execute(self) -> FakeResult:
        self.client.queries.append(self)
        if self.client.error is not None:
            raise self.client.error

        rows = [
            row for row in self.client.tables.get(self.table_name, [])
            if all(row.get(column) == value for column, value in self.filters)
        ]
        if self.max_rows is not None:
            rows = rows[:self.max_rows]
        if self.columns:
            rows = [{column: row.get(column) for column in self.columns} for row in rows]
        return FakeResult(data=rows)


class FakeSupabase:
    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.tables = tables or {}
        self.queries: List[FakeQuery] = []
        self.error: Optional[Exception] = None

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(client=self, table_name=name)


def user_row(username: str = "alice", password: str = "secret", status: int = 1, role: int = 10, user_id: int = 1) -> Dict[str, Any]:
    return {
        "id": user_id,
        "username": username,
        "password": make_hash(password),
        "full_name": f"{username.title()} Example",
        "email": f"{username}@example.com",
        "status": status,
        "role": role,
    }


@pytest.fixture
def fake_supabase():
    return FakeSupabase({"users": [user_row("alice", "secret"), user_row("bob", "hunter2", status=0, user_id=2)]})


@pytest.fixture
def settings(tmp_path):
    """Settings with defaults only, rooted in a temporary directory."""
    return Settings(tmp_path).initialize("none")


@pytest.fixture
def site_root(tmp_path):
    """A document root holding a .env file and a copy of the site templates."""
    import shutil

    shutil.copytree(TEMPLATES_DIR, tmp_path / "templates")
    (tmp_path / ".env").write_text(
        "ENVIRONMENT=dev\n"
        "PROTOCOL=http\n"
        "SESSION_SECRET=test-secret\n"
        "DATABASE_URL=https://db.example.com\n"
        "DATABASE_KEY=service-key\n"
    )
    return tmp_path
