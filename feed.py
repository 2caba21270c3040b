# Public feed: newest entries from everyone, with nicknames and the viewer's likes.
import logging

import config
from db import DIARIES, LIKES, PROFILES, Backend, RemoteError
from models import DiaryEntry, FeedItem

logger = logging.getLogger(__name__)

UNKNOWN_AUTHOR = "?"


def truncate(text: str, limit: int = config.PREVIEW_LENGTH) -> str:
    return text[:limit] + "..." if len(text) > limit else text


class FeedCache:
    """Feed items and liked-by-me ids as last shown, plus optimistic like patches."""

    def __init__(self):
        self.items: list[FeedItem] = []
        self.liked: set[str] = set()

    def replace(self, items: list[FeedItem], liked) -> None:
        # A refetch wins outright; no patch survives it.
        self.items = list(items)
        self.liked = set(liked)

    def get(self, diary_id: str) -> FeedItem | None:
        return next((i for i in self.items if i.id == diary_id), None)

    def is_liked(self, diary_id: str) -> bool:
        return diary_id in self.liked

    def apply_like(self, diary_id: str, liked: bool, like_count: int | None = None) -> None:
        """Patch the liked set and the cached count; like_count, when known, is taken as is."""
        changed = liked != (diary_id in self.liked)
        if liked:
            self.liked.add(diary_id)
        else:
            self.liked.discard(diary_id)
        item = self.get(diary_id)
        if item is None:
            return
        if like_count is not None:
            item.entry.like_count = like_count
        elif changed:
            item.entry.like_count = max(0, item.entry.like_count + (1 if liked else -1))


class FeedReader:
    def __init__(self, backend: Backend):
        self.backend = backend

    def fetch(self, limit: int = config.FEED_LIMIT) -> list[FeedItem]:
        try:
            rows = self.backend.select(DIARIES, "*", order="created_at", ascending=False, limit=limit).rows
            entries = [DiaryEntry.from_row(r) for r in rows]
            nicknames = self._nicknames({e.user_id for e in entries})
        except RemoteError:
            logger.exception("Loading the feed failed")
            return []
        return [FeedItem(entry=e, nickname=nicknames.get(e.user_id, UNKNOWN_AUTHOR)) for e in entries]

    def _nicknames(self, user_ids) -> dict:
        if not user_ids:
            return {}
        rows = self.backend.select(PROFILES, "id,nickname", [("id", "in", sorted(user_ids))]).rows
        return {str(r["id"]): r["nickname"] for r in rows}

    def liked_ids(self, user_id: str | None, diary_ids) -> set:
        diary_ids = list(diary_ids)
        if not user_id or not diary_ids:
            return set()
        try:
            rows = self.backend.select(
                LIKES, "diary_id", [("user_id", "eq", user_id), ("diary_id", "in", diary_ids)]
            ).rows
        except RemoteError:
            logger.exception("Loading likes failed")
            return set()
        return {str(r["diary_id"]) for r in rows}

    def load(self, cache: FeedCache, user_id: str | None, limit: int = config.FEED_LIMIT) -> FeedCache:
        items = self.fetch(limit)
        cache.replace(items, self.liked_ids(user_id, [i.id for i in items]))
        return cache
