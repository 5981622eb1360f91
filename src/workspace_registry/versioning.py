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


"""Synthesized versions and dependency rewriting.

A local package is advertised as ``<declared-version>-<fingerprint>``,
for example ``1.0.0-9d5ed678fe57bcca610140957afab571``. The suffix is a
semver pre-release tag, so every content change yields a new, unique
version that package managers will not confuse with a published one.

Workspace packages usually depend on each other with loose ranges such
as ``"*"`` or ``"workspace:^"``. :class:`DependencyRewriter` pins every
dependency that is itself a workspace member to that member's current
synthesized version, so an install resolves the whole local graph
instead of mixing local and published packages.
"""

from __future__ import annotations

from workspace_registry.hashing import ContentHasher
from workspace_registry.logging import get_logger
from workspace_registry.manifest import Manifest, read_manifest
from workspace_registry.workspace import WorkspaceIndex, WorkspacePackage

log = get_logger('workspace_registry.versioning')


def synthesize_version(declared_version: str, fingerprint: str) -> str:
    """Return ``declared_version`` tagged with a content fingerprint."""
    return f'{declared_version}-{fingerprint}'


class DependencyRewriter:
    """Pins workspace dependencies to their synthesized versions.

    Args:
        index: The workspace members.
        hasher: Source of content fingerprints.
    """

    def __init__(self, index: WorkspaceIndex, hasher: ContentHasher) -> None:
        """Initialize with the workspace index and hasher."""
        self._index = index
        self._hasher = hasher

    async def version_of(self, package: WorkspacePackage) -> str:
        """Return the current synthesized version of a workspace member."""
        manifest = await read_manifest(package.location)
        fingerprint = await self._hasher.fingerprint(package.location)
        return synthesize_version(manifest.version, fingerprint)

    async def rewrite(self, deps: dict[str, str]) -> None:
        """Rewrite ``deps`` in place.

        Every key naming a workspace member gets that member's
        synthesized version; other keys are left as they are.
        """
        packages = await self._index.packages()
        for name in list(deps):
            package = packages.get(name)
            if package is None:
                continue
            version = await self.version_of(package)
            log.debug('dependency_pinned', dep=name, old=deps[name], new=version)
            deps[name] = version

    async def rewrite_manifest(self, manifest: Manifest) -> None:
        """Apply :meth:`rewrite` to each dependency category present."""
        for _category, deps in manifest.dependency_maps():
            await self.rewrite(deps)


__all__ = [
    'DependencyRewriter',
    'synthesize_version',
]
