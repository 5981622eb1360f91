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


"""Composition root: one object owning the caches and components.

Dependency graph (arrows point at what a component uses)::

    MetadataAssembler ──► TarballStreamer ──► DependencyRewriter ──► ContentHasher
           │                    │                    │                    │
           └────────────────────┴────────┬───────────┘              [fingerprints]
                                         ▼
                                  WorkspaceIndex ──► WorkspaceLister
                                         │
                                    [workspace]

    [metadata] cache ─ MetadataAssembler

Each ``[bracketed]`` cache is a :class:`~workspace_registry.cache.TTLCache`
owned here and shared by nobody else.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import Any

from workspace_registry.cache import DEFAULT_TTL_SECONDS, TTLCache
from workspace_registry.hashing import ContentHasher
from workspace_registry.metadata import MetadataAssembler
from workspace_registry.tarball import TarballStreamer
from workspace_registry.versioning import DependencyRewriter
from workspace_registry.workspace import WorkspaceIndex, WorkspaceLister


class LocalRegistry:
    """Serves workspace packages as registry metadata and tarballs.

    Args:
        lister: Source of workspace members.
        base_url: Address clients reach this registry at.
        ttl_seconds: Staleness window shared by all caches.
        clock: Time source for the caches (tests pass a fake clock).
    """

    def __init__(
        self,
        lister: WorkspaceLister,
        *,
        base_url: str,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Build the caches and wire the components together."""
        clock_kwargs: dict[str, Any] = {'clock': clock} if clock is not None else {}
        self.workspace_cache = TTLCache(ttl_seconds, name='workspace', **clock_kwargs)
        self.fingerprint_cache = TTLCache(ttl_seconds, name='fingerprints', **clock_kwargs)
        self.metadata_cache = TTLCache(ttl_seconds, name='metadata', **clock_kwargs)

        self.index = WorkspaceIndex(lister, self.workspace_cache)
        self.hasher = ContentHasher(self.fingerprint_cache)
        self.rewriter = DependencyRewriter(self.index, self.hasher)
        self.streamer = TarballStreamer(self.index, self.hasher, self.rewriter)
        self.assembler = MetadataAssembler(
            self.index,
            self.hasher,
            self.rewriter,
            self.streamer,
            self.metadata_cache,
            base_url=base_url,
        )

    async def metadata(self, name: str) -> dict[str, Any]:
        """Return the metadata document for ``name``."""
        return await self.assembler.assemble(name)

    async def open_tarball(self, name: str) -> AsyncIterator[bytes]:
        """Return the archive byte stream for ``name``."""
        return await self.streamer.open(name)

    def cache_stats(self) -> dict[str, dict[str, Any]]:
        """Return statistics for every cache, keyed by cache name."""
        caches = (self.workspace_cache, self.fingerprint_cache, self.metadata_cache)
        return {cache.name: cache.stats() for cache in caches}


__all__ = [
    'LocalRegistry',
]
