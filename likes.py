# Like ledger: toggle a user's like on an entry and keep like_count in step.
import logging

import routes
from db import DIARIES, LIKES, Backend, RemoteError
from feed import FeedCache
from models import Result

logger = logging.getLogger(__name__)

MSG_LOGIN_TO_LIKE = "Sign in to like entries."
MSG_LIKE_FAILED = "Could not update your like."


class LikeLedger:
    """Owns like rows and each entry's denormalized like_count.

    After every relation write the counter is rewritten from an exact count of
    like rows, so interleaved toggles converge instead of drifting.
    """

    def __init__(self, backend: Backend, cache: FeedCache | None = None):
        self.backend = backend
        self.cache = cache

    def is_liked(self, user_id: str, diary_id: str) -> bool:
        row = self.backend.select_one(LIKES, "diary_id", [("user_id", "eq", user_id), ("diary_id", "eq", diary_id)])
        return row is not None

    def toggle(self, user_id: str | None, diary_id: str) -> Result:
        if not user_id:
            return Result.failure(MSG_LOGIN_TO_LIKE, redirect=routes.LOGIN)
        pair = [("user_id", "eq", user_id), ("diary_id", "eq", diary_id)]
        try:
            if self.is_liked(user_id, diary_id):
                self.backend.delete(LIKES, pair)
                liked = False
            else:
                self.backend.insert(LIKES, {"user_id": user_id, "diary_id": diary_id})
                liked = True
        except RemoteError as e:
            if e.is_unique_violation:
                # Another toggle inserted the same pair first; it is liked either way.
                liked = True
            else:
                logger.exception("Toggling like on %s failed", diary_id)
                return Result.failure(MSG_LIKE_FAILED)

        total = self.reconcile(diary_id)
        if self.cache is not None:
            self.cache.apply_like(diary_id, liked, total)
        return Result.success(liked)

    def reconcile(self, diary_id: str) -> int | None:
        """Store the exact like count for diary_id; None when the remote call fails."""
        try:
            total = self.backend.select(LIKES, "diary_id", [("diary_id", "eq", diary_id)], count=True, head=True).count or 0
            self.backend.update(DIARIES, {"like_count": total}, [("id", "eq", diary_id)])
        except RemoteError:
            logger.exception("Recounting likes on %s failed", diary_id)
            return None
        return total
