# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0


"""In-memory TTL cache for workspace listings, fingerprints and metadata.

Every expensive derivation in the registry (running the workspace
lister, hashing a package directory, assembling a metadata document) is
memoized for a short staleness window. Packages are rebuilt constantly
during development, so the window is small (10 seconds by default):
long enough to absorb the burst of requests a single ``yarn install``
makes, short enough that a rebuilt package is picked up on the next
install.

Design decisions:

- **Owned, injected caches**: there are no module-level singletons.
  :class:`~workspace_registry.registry.LocalRegistry` creates one
  :class:`TTLCache` per derivation and hands it to the component that
  uses it, so tests can drive expiry with a fake clock.
- **Monotonic time**: ages are measured with ``time.monotonic()``.
- **Whole-entry replacement**: an entry is never mutated after it is
  stored; a recomputation replaces it.
- **Failures are never cached**: a sync exception stores nothing and a
  failed async computation is evicted as soon as it completes.
- **Single-flight async misses**: for coroutine functions the cache
  stores the in-flight :class:`asyncio.Task`, so concurrent callers for
  the same key await one computation. Callers await it through
  :func:`asyncio.shield`; a client that disconnects does not cancel the
  work other requests are waiting on.

The entry map is only touched from the event loop thread, so no locks
are taken.

Usage::

    cache = TTLCache(ttl_seconds=10.0, name='fingerprints')


    @cached(cache)
    async def fingerprint(path: Path) -> str: ...
"""

from __future__ import annotations

import asyncio
import dataclasses
import functools
import inspect
import time
from collections.abc import Callable, Hashable
from typing import Any, Final, TypeVar

from workspace_registry.logging import get_logger

log = get_logger('workspace_registry.cache')

#: Staleness window used when none is configured.
DEFAULT_TTL_SECONDS: Final[float] = 10.0

F = TypeVar('F', bound=Callable[..., Any])


@dataclasses.dataclass(frozen=True, slots=True)
class _CacheEntry:
    """A single cached value with the time it was stored.

    Attributes:
        value: The cached result (for async computations, the task).
        stored_at: Clock reading when the entry was stored.
    """

    value: Any
    stored_at: float


class TTLCache:
    """Time-bounded memo table keyed by argument value.

    Args:
        ttl_seconds: Entries older than this are treated as missing.
        clock: Zero-argument callable returning the current time in
            seconds. Defaults to :func:`time.monotonic`.
        name: Label used in log events and :meth:`stats`.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
        name: str = 'cache',
    ) -> None:
        """Initialize an empty cache."""
        self.ttl_seconds = ttl_seconds
        self.name = name
        self._clock = clock
        self._store: dict[Hashable, _CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    @property
    def hits(self) -> int:
        """Total fresh lookups since creation."""
        return self._hits

    @property
    def misses(self) -> int:
        """Total missing or stale lookups since creation."""
        return self._misses

    @property
    def size(self) -> int:
        """Current number of entries, fresh or stale."""
        return len(self._store)

    def stats(self) -> dict[str, Any]:
        """Return a snapshot of cache statistics."""
        return {
            'name': self.name,
            'hits': self._hits,
            'misses': self._misses,
            'size': self.size,
            'ttl_seconds': self.ttl_seconds,
        }

    def lookup(self, key: Hashable) -> tuple[bool, Any]:
        """Return ``(True, value)`` for a fresh entry, else ``(False, None)``."""
        entry = self._store.get(key)
        if entry is None:
            self._misses += 1
            log.debug('cache_miss', cache=self.name, key=str(key))
            return False, None
        if self._clock() - entry.stored_at > self.ttl_seconds:
            self._misses += 1
            log.debug('cache_expired', cache=self.name, key=str(key))
            return False, None
        self._hits += 1
        return True, entry.value

    def get(self, key: Hashable, default: Any = None) -> Any:  # noqa: ANN401 - values are caller-defined
        """Return the fresh value stored under ``key``, or ``default``."""
        found, value = self.lookup(key)
        return value if found else default

    def put(self, key: Hashable, value: Any) -> None:  # noqa: ANN401 - values are caller-defined
        """Store ``value`` under ``key``, replacing any previous entry."""
        self._store[key] = _CacheEntry(value=value, stored_at=self._clock())

    def invalidate(self, key: Hashable) -> bool:
        """Remove ``key``. Returns ``True`` if an entry was removed."""
        return self._store.pop(key, None) is not None

    def discard_if(self, key: Hashable, value: Any) -> bool:  # noqa: ANN401 - values are caller-defined
        """Remove ``key`` only while it still holds ``value`` (by identity)."""
        entry = self._store.get(key)
        if entry is not None and entry.value is value:
            del self._store[key]
            return True
        return False

    def clear(self) -> int:
        """Remove all entries and return how many were removed."""
        count = len(self._store)
        self._store.clear()
        return count


def _evict_failed(cache: TTLCache, key: Hashable, task: asyncio.Future[Any]) -> None:
    """Done-callback dropping a task that failed or was cancelled."""
    if task.cancelled() or task.exception() is not None:
        if cache.discard_if(key, task):
            log.debug('cache_evicted_failure', cache=cache.name, key=str(key))


def cached(cache: TTLCache) -> Callable[[F], F]:
    """Memoize a single-argument callable in ``cache``.

    Works for plain functions and coroutine functions. The argument is
    the cache key, so it must be hashable.

    Args:
        cache: The cache that owns the memoized results.

    Returns:
        A decorator. The wrapped function exposes the cache as
        ``wrapper.cache``.
    """

    def decorator(fn: F) -> F:
        if inspect.iscoroutinefunction(fn):

            @functools.wraps(fn)
            async def async_wrapper(arg: Hashable) -> Any:  # noqa: ANN401 - forwards fn's result
                found, task = cache.lookup(arg)
                if not found:
                    task = asyncio.ensure_future(fn(arg))
                    cache.put(arg, task)
                    task.add_done_callback(functools.partial(_evict_failed, cache, arg))
                return await asyncio.shield(task)

            async_wrapper.cache = cache  # type: ignore[attr-defined]
            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(fn)
        def sync_wrapper(arg: Hashable) -> Any:  # noqa: ANN401 - forwards fn's result
            found, value = cache.lookup(arg)
            if found:
                return value
            value = fn(arg)
            cache.put(arg, value)
            return value

        sync_wrapper.cache = cache  # type: ignore[attr-defined]
        return sync_wrapper  # type: ignore[return-value]

    return decorator


__all__ = [
    'DEFAULT_TTL_SECONDS',
    'TTLCache',
    'cached',
]
