# Row types shared by the gateway, repositories and pages, plus the Result wrapper.
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional


def parse_ts(value) -> datetime:
    """Parse a timestamp as returned by PostgREST; naive values are taken as UTC."""
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass
class Profile:
    id: str
    email: str
    nickname: str
    created_at: str

    @classmethod
    def from_row(cls, row: dict) -> "Profile":
        return cls(
            id=str(row["id"]),
            email=row["email"],
            nickname=row["nickname"],
            created_at=str(row.get("created_at") or ""),
        )

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "nickname": self.nickname,
            "created_at": self.created_at,
        }


@dataclass
class DiaryEntry:
    id: str
    user_id: str
    content: list[str]
    created_at: str
    like_count: int = 0

    @classmethod
    def from_row(cls, row: dict) -> "DiaryEntry":
        return cls(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            content=list(row.get("content") or []),
            created_at=str(row["created_at"]),
            like_count=int(row.get("like_count") or 0),
        )

    @property
    def created(self) -> datetime:
        return parse_ts(self.created_at)


@dataclass
class FeedItem:
    entry: DiaryEntry
    nickname: str

    @property
    def id(self) -> str:
        return self.entry.id


@dataclass
class Page:
    items: list
    total_for_filter: int
    page: int
    per_page: int

    @property
    def total_pages(self) -> int:
        return total_pages(self.total_for_filter, self.per_page)


def total_pages(total: int, per_page: int) -> int:
    if per_page <= 0:
        raise ValueError("per_page must be positive")
    return math.ceil(max(total, 0) / per_page)


@dataclass
class Result:
    ok: bool
    value: Any = None
    error: str = ""
    redirect: Optional[str] = None

    @classmethod
    def success(cls, value=None) -> "Result":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str, redirect: str | None = None) -> "Result":
        return cls(ok=False, error=error, redirect=redirect)

    def __bool__(self) -> bool:
        return self.ok
