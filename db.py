# Supabase access: PostgREST tables and RPC over requests, plus an in-memory stand-in.
import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Protocol
from zoneinfo import ZoneInfo

import requests

import config
import crypto
from models import parse_ts

logger = logging.getLogger(__name__)

PROFILES = "profiles"
DIARIES = "diaries"
LIKES = "likes"

UNIQUE_VIOLATION = "23505"
MULTIPLE_ROWS = "PGRST116"
UNKNOWN_FUNCTION = "PGRST202"
RANGE_NOT_SATISFIABLE = 416
FILTER_OPS = ("eq", "neq", "gt", "gte", "lt", "lte", "in")


class RemoteError(Exception):
    """A failed call to the remote service (HTTP error, transport error, bad shape)."""

    def __init__(self, message: str, code: str | None = None, status: int | None = None):
        super().__init__(message)
        self.code = code
        self.status = status

    @property
    def is_unique_violation(self) -> bool:
        return self.code == UNIQUE_VIOLATION


@dataclass
class SelectResult:
    rows: list
    count: Optional[int] = None


class Backend(Protocol):
    """Row-level operations both backends provide. Filters are (column, op, value) tuples."""

    def select(
        self,
        table: str,
        columns: str = "*",
        filters=(),
        *,
        order: str | None = None,
        ascending: bool = True,
        offset: int | None = None,
        limit: int | None = None,
        count: bool = False,
        head: bool = False,
    ) -> SelectResult:
        ...

    def select_one(self, table: str, columns: str = "*", filters=()) -> Optional[dict]:
        ...

    def insert(self, table: str, row: dict) -> list:
        ...

    def update(self, table: str, values: dict, filters) -> list:
        ...

    def delete(self, table: str, filters) -> list:
        ...

    def rpc(self, name: str, params: dict):
        ...


def _format_value(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def _quote(value) -> str:
    text = _format_value(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def _filter_params(filters) -> list:
    params = []
    for column, op, value in filters:
        if op not in FILTER_OPS:
            raise ValueError(f"Unsupported filter operator: {op}")
        if op == "in":
            params.append((column, f"in.({','.join(_quote(v) for v in value)})"))
        elif op == "eq" and value is None:
            params.append((column, "is.null"))
        else:
            params.append((column, f"{op}.{_format_value(value)}"))
    return params


def _content_range_total(header: str | None) -> int | None:
    # "0-8/42", "*/0"
    if not header or "/" not in header:
        return None
    total = header.rsplit("/", 1)[1].strip()
    return int(total) if total.isdigit() else None


def _error_from(response: requests.Response) -> RemoteError:
    code = None
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        code = body.get("code")
        msg = body.get("message") or body.get("error_description") or body.get("error")
        if msg:
            return RemoteError(f"HTTP {response.status_code}: {msg}", code=code, status=response.status_code)
    text = (response.text or "").strip()
    if text:
        return RemoteError(f"HTTP {response.status_code}: {text[:300]}", code=code, status=response.status_code)
    return RemoteError(f"HTTP {response.status_code}: request failed", code=code, status=response.status_code)


class SupabaseClient:
    """PostgREST client for the project's tables and procedures."""

    def __init__(self, url: str, key: str, timeout: float | None = None, http: requests.Session | None = None):
        self.url = url.rstrip("/")
        self.key = key
        self.timeout = timeout
        self.http = http or requests.Session()

    def _headers(self, prefer: str | None = None) -> dict:
        headers = {
            "apikey": self.key,
            "Authorization": f"Bearer {self.key}",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _request(self, method: str, path: str, *, params=None, payload=None, prefer=None, allow_status=()):
        logger.debug("%s %s", method, path)
        try:
            response = self.http.request(
                method,
                f"{self.url}/rest/v1/{path}",
                headers=self._headers(prefer),
                params=params,
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise RemoteError(f"{method} {path}: {exc}") from exc
        if response.status_code >= 300 and response.status_code not in allow_status:
            raise _error_from(response)
        return response

    def select(
        self,
        table,
        columns="*",
        filters=(),
        *,
        order=None,
        ascending=True,
        offset=None,
        limit=None,
        count=False,
        head=False,
    ) -> SelectResult:
        params = [("select", columns)] + _filter_params(filters)
        if order:
            params.append(("order", f"{order}.{'asc' if ascending else 'desc'}"))
        if offset is not None:
            params.append(("offset", str(offset)))
        if limit is not None:
            params.append(("limit", str(limit)))
        response = self._request(
            "HEAD" if head else "GET",
            table,
            params=params,
            prefer="count=exact" if count else None,
            allow_status=(RANGE_NOT_SATISFIABLE,),
        )
        total = _content_range_total(response.headers.get("Content-Range")) if count else None
        # Offset past the last row: PostgREST answers 416 but still reports the total.
        if head or response.status_code == RANGE_NOT_SATISFIABLE:
            return SelectResult([], total)
        rows = response.json()
        if not isinstance(rows, list):
            raise RemoteError(f"Unexpected response shape from {table}")
        return SelectResult(rows, total)

    def select_one(self, table, columns="*", filters=()) -> Optional[dict]:
        rows = self.select(table, columns, filters, limit=2).rows
        if len(rows) > 1:
            raise RemoteError(f"Expected at most one row from {table}", code=MULTIPLE_ROWS, status=406)
        return rows[0] if rows else None

    def insert(self, table, row) -> list:
        return self._request("POST", table, payload=row, prefer="return=representation").json()

    def update(self, table, values, filters) -> list:
        params = _filter_params(filters)
        return self._request("PATCH", table, params=params, payload=values, prefer="return=representation").json()

    def delete(self, table, filters) -> list:
        params = _filter_params(filters)
        return self._request("DELETE", table, params=params, prefer="return=representation").json()

    def rpc(self, name, params):
        response = self._request("POST", f"rpc/{name}", payload=params)
        if not response.content:
            return None
        return response.json()


# --- In-memory stand-in ---

UNIQUE_KEYS = {
    PROFILES: (("email",), ("nickname",)),
    LIKES: (("user_id", "diary_id"),),
}


def _comparable(value):
    if isinstance(value, datetime):
        return parse_ts(value)
    if isinstance(value, str):
        try:
            return parse_ts(value)
        except ValueError:
            return value
    return value


def _matches(row: dict, filters) -> bool:
    for column, op, value in filters:
        cell = row.get(column)
        if op == "eq":
            ok = cell == value
        elif op == "neq":
            ok = cell != value
        elif op == "in":
            ok = cell in list(value)
        elif op in ("gt", "gte", "lt", "lte"):
            if cell is None:
                return False
            a, b = _comparable(cell), _comparable(value)
            ok = {"gt": a > b, "gte": a >= b, "lt": a < b, "lte": a <= b}[op]
        else:
            raise ValueError(f"Unsupported filter operator: {op}")
        if not ok:
            return False
    return True


def _project(row: dict, columns: str) -> dict:
    if columns.strip() == "*":
        return dict(row)
    return {c.strip(): row.get(c.strip()) for c in columns.split(",")}


class InMemoryBackend:
    """Dict-backed tables and procedures for development and tests.

    Mirrors the remote service closely enough for the app: unique constraints on
    profile email/nickname and on like pairs, server-side password hashing in
    signup_user/signin_user, and get_today_diary deciding "today" from its own clock.
    One instance may be shared by every browser session, each running in its own
    thread, so every read and write holds the lock.
    """

    def __init__(self, clock=None, tz: str | None = None):
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.tz = ZoneInfo(tz or config.TIMEZONE)
        self.tables: dict[str, list[dict]] = {PROFILES: [], DIARIES: [], LIKES: []}
        self.passwords: dict[str, str] = {}
        # Reentrant: procedures call insert/select while holding it.
        self.lock = threading.RLock()

    def reset(self) -> None:
        with self.lock:
            for rows in self.tables.values():
                rows.clear()
            self.passwords.clear()

    def _table(self, name: str) -> list:
        if name not in self.tables:
            raise RemoteError(f'relation "public.{name}" does not exist', code="42P01", status=404)
        return self.tables[name]

    def _check_unique(self, table: str, row: dict, existing: list) -> None:
        for key in UNIQUE_KEYS.get(table, ()):
            values = tuple(row.get(c) for c in key)
            for other in existing:
                if tuple(other.get(c) for c in key) == values:
                    raise RemoteError(
                        f'duplicate key value violates unique constraint "{table}_{"_".join(key)}_key"',
                        code=UNIQUE_VIOLATION,
                        status=409,
                    )

    def select(
        self,
        table,
        columns="*",
        filters=(),
        *,
        order=None,
        ascending=True,
        offset=None,
        limit=None,
        count=False,
        head=False,
    ) -> SelectResult:
        with self.lock:
            rows = [r for r in self._table(table) if _matches(r, filters)]
            if order:
                rows.sort(key=lambda r: _comparable(r.get(order)), reverse=not ascending)
            total = len(rows) if count else None
            start = offset or 0
            rows = rows[start:start + limit] if limit is not None else rows[start:]
            if head:
                return SelectResult([], total)
            return SelectResult([_project(r, columns) for r in rows], total)

    def select_one(self, table, columns="*", filters=()) -> Optional[dict]:
        rows = self.select(table, columns, filters, limit=2).rows
        if len(rows) > 1:
            raise RemoteError(f"Expected at most one row from {table}", code=MULTIPLE_ROWS, status=406)
        return rows[0] if rows else None

    def insert(self, table, row) -> list:
        with self.lock:
            rows = self._table(table)
            new = dict(row)
            if table != LIKES:
                new.setdefault("id", str(uuid.uuid4()))
            new.setdefault("created_at", self.clock().isoformat())
            if table == DIARIES:
                new.setdefault("like_count", 0)
            self._check_unique(table, new, rows)
            rows.append(new)
            return [dict(new)]

    def update(self, table, values, filters) -> list:
        with self.lock:
            rows = self._table(table)
            targets = [r for r in rows if _matches(r, filters)]
            others = [r for r in rows if not _matches(r, filters)]
            # Validate every updated row, against each other too, before touching any.
            updated = []
            for row in targets:
                candidate = {**row, **values}
                self._check_unique(table, candidate, others + updated)
                updated.append(candidate)
            for row in targets:
                row.update(values)
            return [dict(r) for r in targets]

    def delete(self, table, filters) -> list:
        with self.lock:
            rows = self._table(table)
            removed = [r for r in rows if _matches(r, filters)]
            rows[:] = [r for r in rows if not _matches(r, filters)]
            return [dict(r) for r in removed]

    def rpc(self, name, params):
        procedures = {
            "signup_user": self._signup_user,
            "signin_user": self._signin_user,
            "get_today_diary": self._get_today_diary,
        }
        if name not in procedures:
            raise RemoteError(f"Could not find the function public.{name}", code=UNKNOWN_FUNCTION, status=404)
        with self.lock:
            return procedures[name](**params)

    def _signup_user(self, p_email: str, p_password: str, p_nickname: str) -> list:
        profile = self.insert(PROFILES, {"email": p_email, "nickname": p_nickname})[0]
        self.passwords[profile["id"]] = crypto.hash_password(p_password)
        return [profile]

    def _signin_user(self, p_email: str, p_password: str) -> list:
        for row in self.tables[PROFILES]:
            if row["email"] == p_email:
                stored = self.passwords.get(row["id"])
                if stored and crypto.verify_password(p_password, stored):
                    return [dict(row)]
                return []
        return []

    def _get_today_diary(self, p_user_id: str) -> list:
        today = self.clock().astimezone(self.tz).date()
        rows = [
            r for r in self.tables[DIARIES]
            if r["user_id"] == p_user_id and parse_ts(r["created_at"]).astimezone(self.tz).date() == today
        ]
        rows.sort(key=lambda r: parse_ts(r["created_at"]), reverse=True)
        return [dict(r) for r in rows[:1]]
