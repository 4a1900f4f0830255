"""Per-batch mutual exclusion on top of the cache backend."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import Iterator

from musterroll.core.exceptions import BatchBusyError
from musterroll.core.protocols import ICacheBackend

logger = logging.getLogger(__name__)

DEFAULT_TTL = 120


class BatchLock:
    """SET NX lock keyed by batch id; release only removes our own token."""

    def __init__(self, cache: ICacheBackend, ttl: int = DEFAULT_TTL) -> None:
        self._cache = cache
        self._ttl = ttl

    @staticmethod
    def key(batch_id: str) -> str:
        return f"lock:batch:{batch_id}"

    @contextmanager
    def hold(self, batch_id: str) -> Iterator[str]:
        token = uuid.uuid4().hex
        if not self._cache.set_if_absent(self.key(batch_id), token, self._ttl):
            raise BatchBusyError(batch_id)
        try:
            yield token
        finally:
            if not self._cache.delete_if_equals(self.key(batch_id), token):
                logger.warning("Lock for batch %s expired before release", batch_id)
