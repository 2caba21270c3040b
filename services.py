# Per-session wiring: backend, session store, gateway, repositories, caches.
import logging
from dataclasses import dataclass, field
from zoneinfo import ZoneInfo

import config
from auth import CredentialGateway
from db import Backend, InMemoryBackend, SupabaseClient
from diary import DateFilter, DiaryRepository, EditSession
from feed import FeedCache, FeedReader
from likes import LikeLedger
from session import SessionStore, new_token, snapshot_path

logger = logging.getLogger(__name__)

STATE_KEY = "services"

_shared_memory_backend: InMemoryBackend | None = None


def get_backend() -> Backend:
    """Supabase when configured, else one in-memory backend shared by every session."""
    global _shared_memory_backend
    if config.USE_IN_MEMORY_BACKEND or not (config.SUPABASE_URL and config.SUPABASE_ANON_KEY):
        if _shared_memory_backend is None:
            logger.warning("Supabase is not configured; using the in-memory backend.")
            _shared_memory_backend = InMemoryBackend()
        return _shared_memory_backend
    return SupabaseClient(config.SUPABASE_URL, config.SUPABASE_ANON_KEY, timeout=config.REQUEST_TIMEOUT)


@dataclass
class Services:
    backend: Backend
    session: SessionStore
    gateway: CredentialGateway
    diaries: DiaryRepository
    feed: FeedReader
    likes: LikeLedger
    cache: FeedCache
    tz: ZoneInfo
    editor: EditSession | None = None
    date_filter: DateFilter = field(default_factory=DateFilter)
    page: int = 1


def build_services(backend: Backend | None = None, session_path=None, tz: str | None = None) -> Services:
    """Wire one browser's services; without session_path the browser gets a fresh snapshot."""
    backend = backend or get_backend()
    session = SessionStore(session_path or snapshot_path(new_token()))
    session.restore()
    cache = FeedCache()
    return Services(
        backend=backend,
        session=session,
        gateway=CredentialGateway(backend, session),
        diaries=DiaryRepository(backend, tz=tz),
        feed=FeedReader(backend),
        likes=LikeLedger(backend, cache),
        cache=cache,
        tz=ZoneInfo(tz or config.TIMEZONE),
    )


def get_services(state) -> Services:
    """Services for this browser session; app.py must have called ensure_services first."""
    try:
        return state[STATE_KEY]
    except KeyError:
        raise RuntimeError("Services requested before app startup created them") from None


def ensure_services(state, token: str) -> Services:
    """Services for this browser session, restored from the snapshot named by token."""
    if STATE_KEY not in state:
        state[STATE_KEY] = build_services(session_path=snapshot_path(token))
    return state[STATE_KEY]
