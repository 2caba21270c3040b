# Diary repository: owner-scoped CRUD, today's entry, paging and date filters, the line editor.
import calendar
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import config
from db import DIARIES, Backend, RemoteError
from models import DiaryEntry, Page, Result, parse_ts

logger = logging.getLogger(__name__)

MSG_EMPTY = "Write at least one thing you are grateful for."
MSG_TOO_MANY = f"An entry holds at most {config.MAX_LINES} lines."
MSG_TOO_LONG = f"Each line can be at most {config.MAX_LINE_LENGTH} characters."
MSG_ALREADY_TODAY = "You have already written today's entry. Edit it instead."
MSG_SAVE_FAILED = "Could not save your entry."
MSG_DELETE_FAILED = "Could not delete your entry."
MSG_SAVE_IN_PROGRESS = "Your entry is still being saved."
MSG_NOT_FOUND = "This entry no longer exists or is not yours."
MSG_DAY_NEEDS_MONTH = "Pick a month to filter by day."
MSG_NO_SUCH_DATE = "That date does not exist, so all entries are shown."


def clean_content(lines) -> list[str]:
    """Trim each line and drop the empty ones, keeping order."""
    return [line.strip() for line in (lines or []) if line and line.strip()]


def _check_content(content: list[str]) -> str:
    if not content:
        return MSG_EMPTY
    if len(content) > config.MAX_LINES:
        return MSG_TOO_MANY
    if any(len(line) > config.MAX_LINE_LENGTH for line in content):
        return MSG_TOO_LONG
    return ""


def _owned(user_id: str, entry_id: str) -> list:
    return [("id", "eq", entry_id), ("user_id", "eq", user_id)]


@dataclass(frozen=True)
class DateFilter:
    year: int | None = None
    month: int | None = None
    day: int | None = None

    @property
    def active(self) -> bool:
        return any(v is not None for v in (self.year, self.month, self.day))

    def with_year(self, year: int | None) -> "DateFilter":
        return replace(self, year=year)

    def with_month(self, month: int | None) -> "DateFilter":
        # The selected day may not exist in the new month.
        return replace(self, month=month, day=None)

    def with_day(self, day: int | None) -> "DateFilter":
        return replace(self, day=day)

    def cleared(self) -> "DateFilter":
        return DateFilter()

    def _bounds(self, now: datetime, tz: ZoneInfo) -> tuple[datetime, datetime] | None:
        # Raises ValueError for a date that does not exist.
        year, month, day = self.year, self.month, self.day
        if year is None and month is None:
            return None
        if year is None:
            year = now.astimezone(tz).year
        if month is not None and day is not None:
            start = datetime(year, month, day, tzinfo=tz)
            return start, start.replace(hour=23, minute=59, second=59)
        if month is not None:
            last = calendar.monthrange(year, month)[1]
            return datetime(year, month, 1, tzinfo=tz), datetime(year, month, last, 23, 59, 59, tzinfo=tz)
        return datetime(year, 1, 1, tzinfo=tz), datetime(year, 12, 31, 23, 59, 59, tzinfo=tz)

    def resolve(self, now: datetime, tz: ZoneInfo) -> tuple[datetime, datetime] | None:
        """Inclusive (start, end) range in tz, or None when unfiltered or impossible."""
        try:
            return self._bounds(now, tz)
        except ValueError:
            logger.warning("Ignoring impossible date filter %s", self)
            return None

    def notice(self, now: datetime, tz: ZoneInfo) -> str:
        """Why part or all of the selection is not applied, or ""."""
        try:
            self._bounds(now, tz)
        except ValueError:
            return MSG_NO_SUCH_DATE
        if self.day is not None and self.month is None:
            return MSG_DAY_NEEDS_MONTH
        return ""


class DiaryRepository:
    """CRUD and derived views over diary entries, scoped to their owner."""

    def __init__(self, backend: Backend, tz: str | None = None, clock=None):
        self.backend = backend
        self.tz = ZoneInfo(tz or config.TIMEZONE)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def _filters(self, user_id: str, date_filter: DateFilter | None) -> list:
        filters = [("user_id", "eq", user_id)]
        bounds = date_filter.resolve(self.clock(), self.tz) if date_filter else None
        if bounds:
            start, end = bounds
            # Inclusive to the second: anything before the next second belongs to the range.
            filters.append(("created_at", "gte", start.isoformat()))
            filters.append(("created_at", "lt", (end + timedelta(seconds=1)).isoformat()))
        return filters

    def get_today(self, user_id: str) -> DiaryEntry | None:
        try:
            data = self.backend.rpc("get_today_diary", {"p_user_id": user_id})
        except RemoteError:
            logger.exception("Loading today's entry failed")
            return None
        if isinstance(data, dict):
            data = [data]
        return DiaryEntry.from_row(data[0]) if data else None

    def create(self, user_id: str, content) -> Result:
        cleaned = clean_content(content)
        problem = _check_content(cleaned)
        if problem:
            return Result.failure(problem)
        if self.get_today(user_id) is not None:
            return Result.failure(MSG_ALREADY_TODAY)
        try:
            rows = self.backend.insert(DIARIES, {"user_id": user_id, "content": cleaned})
        except RemoteError:
            logger.exception("Creating entry failed")
            return Result.failure(MSG_SAVE_FAILED)
        return Result.success(DiaryEntry.from_row(rows[0]) if rows else None)

    def update(self, user_id: str, entry_id: str, content) -> Result:
        cleaned = clean_content(content)
        problem = _check_content(cleaned)
        if problem:
            return Result.failure(problem)
        try:
            rows = self.backend.update(DIARIES, {"content": cleaned}, _owned(user_id, entry_id))
        except RemoteError:
            logger.exception("Updating entry %s failed", entry_id)
            return Result.failure(MSG_SAVE_FAILED)
        if not rows:
            logger.warning("Update of entry %s matched no row owned by %s", entry_id, user_id)
            return Result.failure(MSG_NOT_FOUND)
        return Result.success(DiaryEntry.from_row(rows[0]))

    def delete(self, user_id: str, entry_id: str) -> Result:
        try:
            rows = self.backend.delete(DIARIES, _owned(user_id, entry_id))
        except RemoteError:
            logger.exception("Deleting entry %s failed", entry_id)
            return Result.failure(MSG_DELETE_FAILED)
        if not rows:
            logger.warning("Delete of entry %s matched no row owned by %s", entry_id, user_id)
            return Result.failure(MSG_NOT_FOUND)
        return Result.success()

    def count(self, user_id: str, date_filter: DateFilter | None = None) -> int:
        try:
            found = self.backend.select(
                DIARIES, "id", self._filters(user_id, date_filter), count=True, head=True
            )
        except RemoteError:
            logger.exception("Counting entries failed")
            return 0
        return found.count or 0

    def list_page(self, user_id: str, page: int, per_page: int = config.PER_PAGE,
                  date_filter: DateFilter | None = None) -> Page:
        page = max(page, 1)
        try:
            found = self.backend.select(
                DIARIES,
                "*",
                self._filters(user_id, date_filter),
                order="created_at",
                ascending=False,
                offset=(page - 1) * per_page,
                limit=per_page,
                count=True,
            )
        except RemoteError:
            logger.exception("Listing entries failed")
            return Page(items=[], total_for_filter=0, page=page, per_page=per_page)
        items = [DiaryEntry.from_row(r) for r in found.rows]
        return Page(items=items, total_for_filter=found.count or 0, page=page, per_page=per_page)

    def timestamps_since(self, user_id: str, since: datetime) -> list[datetime]:
        try:
            found = self.backend.select(
                DIARIES, "created_at", [("user_id", "eq", user_id), ("created_at", "gte", since.isoformat())]
            )
        except RemoteError:
            logger.exception("Loading entry dates failed")
            return []
        return [parse_ts(r["created_at"]) for r in found.rows]

    def is_today(self, entry: DiaryEntry) -> bool:
        return entry.created.astimezone(self.tz).date() == self.clock().astimezone(self.tz).date()


class EditSession:
    """Line editor state for one entry: 1 to MAX_LINES inputs of at most MAX_LINE_LENGTH chars."""

    def __init__(self, lines=None, entry_id: str | None = None):
        self.lines = list(lines) if lines else [""] * config.MAX_LINES
        self.entry_id = entry_id
        self.saving = False

    @classmethod
    def for_entry(cls, entry: DiaryEntry | None) -> "EditSession":
        if entry is None:
            return cls()
        lines = list(entry.content[:config.MAX_LINES])
        lines += [""] * (config.MAX_LINES - len(lines))
        return cls(lines, entry_id=entry.id)

    def set_line(self, index: int, value: str) -> bool:
        if len(value) > config.MAX_LINE_LENGTH:
            return False
        self.lines[index] = value
        return True

    def add_line(self) -> bool:
        if len(self.lines) >= config.MAX_LINES:
            return False
        self.lines.append("")
        return True

    def remove_line(self, index: int) -> bool:
        if len(self.lines) <= 1:
            return False
        del self.lines[index]
        return True

    def content(self) -> list[str]:
        return clean_content(self.lines)

    def can_save(self) -> bool:
        return not self.saving and bool(self.content())

    def begin_save(self) -> bool:
        if not self.can_save():
            return False
        self.saving = True
        return True

    def end_save(self) -> None:
        self.saving = False

    def save(self, repo: DiaryRepository, user_id: str) -> Result:
        if not self.begin_save():
            return Result.failure(MSG_SAVE_IN_PROGRESS if self.saving else MSG_EMPTY)
        try:
            if self.entry_id:
                return repo.update(user_id, self.entry_id, self.content())
            return repo.create(user_id, self.content())
        finally:
            self.end_save()
