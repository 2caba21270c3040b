# Session store: the signed-in profile, persisted as one JSON snapshot per browser.
import json
import logging
import os
import re
import secrets
import tempfile
from pathlib import Path

import config
from models import Profile

logger = logging.getLogger(__name__)

TOKEN_COOKIE = "grove_session"
TOKEN_STATE_KEY = "browser_token"
TOKEN_PATTERN = re.compile(r"[0-9a-f]{32}")


def new_token() -> str:
    return secrets.token_hex(16)


def valid_token(value) -> bool:
    return isinstance(value, str) and TOKEN_PATTERN.fullmatch(value) is not None


def snapshot_path(token: str) -> Path:
    """Snapshot file for one browser; the token is its only name."""
    if not valid_token(token):
        raise ValueError("Malformed browser token")
    return Path(config.SESSION_DIR) / f"{token}.json"


def browser_token(state, cookies, set_cookie) -> str:
    """Token naming this browser's snapshot.

    Taken from session state on reruns, else from the browser cookie sent at
    connect. A browser without a valid cookie gets a fresh token, handed to
    set_cookie(name, value) so the next visit finds the same snapshot.
    """
    token = state.get(TOKEN_STATE_KEY)
    if valid_token(token):
        return token
    token = cookies.get(TOKEN_COOKIE)
    if not valid_token(token):
        token = new_token()
        set_cookie(TOKEN_COOKIE, token)
        logger.info("Issued a new browser token")
    state[TOKEN_STATE_KEY] = token
    return token


class SessionStore:
    """Holds at most one authenticated Profile for one browser.

    The snapshot file is read by restore() at startup and rewritten on every
    transition. Only the credential gateway should call set_active/clear.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._profile: Profile | None = None

    @property
    def profile(self) -> Profile | None:
        return self._profile

    @property
    def is_authenticated(self) -> bool:
        return self._profile is not None

    @property
    def user_id(self) -> str | None:
        return self._profile.id if self._profile else None

    def restore(self) -> Profile | None:
        self._profile = None
        if not self.path.exists():
            return None
        try:
            self._profile = Profile.from_row(json.loads(self.path.read_text(encoding="utf-8")))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Discarding unreadable session snapshot %s: %s", self.path, e)
            self._remove_snapshot()
        return self._profile

    def set_active(self, profile: Profile) -> None:
        self._write_snapshot(profile)
        self._profile = profile

    def clear(self) -> None:
        self._profile = None
        self._remove_snapshot()

    def _write_snapshot(self, profile: Profile) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".session-", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(profile.as_dict(), f, ensure_ascii=False)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def _remove_snapshot(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
