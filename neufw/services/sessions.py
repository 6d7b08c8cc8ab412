"""Session state and login/validation against the ``users`` table."""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, MutableMapping, Optional

import bcrypt
from supabase import Client

from ..core.config import Settings
from ..core.exceptions import InfrastructureError, RedirectRequired
from ..core.http import site_url


logger = logging.getLogger(__name__)

STATUS_ENABLED = 1
STATUS_DISABLED = 0
ROLE_ADMIN = 1
ROLE_NORMAL = 10

USERS_TABLE = "users"
USER_COLUMNS = "id, username, full_name, email, status, role"
LOGIN_PATH = "/auth/login"

# bcrypt ignores everything past 72 bytes
_BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8")[:_BCRYPT_MAX_BYTES], bcrypt.gensalt()).decode("ascii")


def verify_password(password: str, hashed: str) -> bool:
    """Constant-time bcrypt check; ``$2y$`` hashes are read as ``$2b$``."""
    if not hashed:
        return False
    if hashed.startswith("$2y$"):
        hashed = "$2b$" + hashed[4:]
    try:
        return bcrypt.checkpw(password.encode("utf-8")[:_BCRYPT_MAX_BYTES], hashed.encode("ascii"))
    except ValueError:
        logger.warning("Stored password hash is not a valid bcrypt hash")
        return False


class SessionState:
    """Read/write view over one client's session data."""

    def __init__(self, data: MutableMapping[str, Any]):
        self._data = data
        self.invalidated = False

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def clear(self) -> None:
        self._data.clear()

    def invalidate(self) -> None:
        # An emptied Starlette session makes SessionMiddleware expire the cookie
        self.clear()
        self.invalidated = True

    @property
    def username(self) -> Optional[str]:
        return self._data.get("username") or None


@dataclass(frozen=True)
class UserRecord:
    id: int
    username: str
    full_name: str
    email: str
    status: int
    role: int

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "UserRecord":
        return cls(
            id=row["id"],
            username=row["username"],
            full_name=row.get("full_name") or "",
            email=row.get("email") or "",
            status=int(row["status"]),
            role=int(row["role"]),
        )

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def enabled(self) -> bool:
        return self.status == STATUS_ENABLED


def login_url(settings: Settings) -> str:
    return site_url(settings, LOGIN_PATH)


class SessionValidator:
    """Authenticates logins and re-checks the session on every protected request.

    Only enabled accounts (``status = 1``) can log in or stay logged in, so
    disabling a user takes effect on their next request. Any failure while
    querying the credential store is raised as ``InfrastructureError``.
    """

    def __init__(self, session: SessionState, database: Optional[Client], settings: Settings):
        self.session = session
        self.database = database
        self.settings = settings
        self.userdata: Optional[UserRecord] = None

    def _fetch_enabled_user(self, columns: str, username: str) -> Optional[Mapping[str, Any]]:
        if self.database is None:
            raise InfrastructureError("No credential store is configured for sessions")

        try:
            result = (
                self.database
                .table(USERS_TABLE)
                .select(columns)
                .eq("username", username)
                .eq("status", STATUS_ENABLED)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(f"Database query failure during auth for {username}: {e}")
            raise InfrastructureError(f"Database query failure during auth; {e}") from e

        if not result.data:
            return None
        return result.data[0]

    def login(self, username: str, password: str) -> bool:
        row = self._fetch_enabled_user("password", username)
        if row is None:
            return False

        if not verify_password(password, row.get("password") or ""):
            return False

        self.session.set("username", username)
        return True

    def validate(self) -> bool:
        username = self.session.username
        if not username:
            raise RedirectRequired(login_url(self.settings))

        row = self._fetch_enabled_user(USER_COLUMNS, username)
        if row is None:
            # Suspended, deleted or otherwise disabled account
            raise RedirectRequired(login_url(self.settings))

        self.userdata = UserRecord.from_row(row)
        return True

    def logout(self) -> None:
        self.session.invalidate()
        self.userdata = None
