from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime, timedelta
from threading import Lock

from leadflow.core.clock import Clock, system_clock
from leadflow.core.config import get_settings
from leadflow.metrics import observe_user_cache
from leadflow.users.schemas import UserRead

UserLoader = Callable[[uuid.UUID], "UserRead | None"]


class UserCache:
    """TTL cache of user records keyed by id.

    Missing users are not cached, so a user created after a miss is picked up on the next lookup.
    """

    def __init__(self, ttl_seconds: int | None = None, clock: Clock = system_clock) -> None:
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else get_settings().user_cache_ttl_seconds
        self._clock = clock
        self._entries: dict[uuid.UUID, tuple[UserRead, datetime]] = {}
        self._lock = Lock()

    def get(self, user_id: uuid.UUID | str, loader: UserLoader) -> UserRead | None:
        key = _coerce_id(user_id)
        if key is None:
            observe_user_cache("invalid")
            return None

        now = self._clock.now()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry[1] > now:
                observe_user_cache("hit")
                return entry[0]
            if entry is not None:
                del self._entries[key]

        observe_user_cache("miss")
        user = loader(key)
        if user is not None:
            with self._lock:
                self._entries[key] = (user, now + timedelta(seconds=self.ttl_seconds))
        return user

    def invalidate(self, user_id: uuid.UUID | str) -> None:
        key = _coerce_id(user_id)
        if key is None:
            return
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def _coerce_id(user_id: uuid.UUID | str) -> uuid.UUID | None:
    if isinstance(user_id, uuid.UUID):
        return user_id
    try:
        return uuid.UUID(str(user_id))
    except ValueError:
        return None


user_cache = UserCache()
