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


"""Registry metadata documents ("packuments") for workspace packages.

A package manager resolving ``pkg-a`` fetches ``GET /pkg-a`` and reads
``dist-tags.latest``, the matching entry in ``versions`` and its
``dist.tarball`` URL. For a workspace package the document has exactly
one version, the synthesized one::

    {
      "_id": "pkg-a",
      "_rev": "<fingerprint>",
      "name": "pkg-a",
      "description": "...",
      "dist-tags": {"latest": "1.0.0-<fingerprint>"},
      "versions": {
        "1.0.0-<fingerprint>": {
          ...package.json with pinned workspace dependencies...,
          "version": "1.0.0-<fingerprint>",
          "dist": {
            "shasum": "<sha1 of the tarball>",
            "tarball": "http://localhost:4321/pkg-a/-/pkg-a-1.0.0-<fingerprint>.tgz"
          }
        }
      },
      "time": {"modified": "...", "created": "...", "1.0.0-<fingerprint>": "..."}
    }

See: https://github.com/npm/registry/blob/main/docs/REGISTRY-API.md
"""

from __future__ import annotations

import os
import re
import urllib.parse
from datetime import datetime, timezone
from typing import Any, Final

from workspace_registry.cache import TTLCache, cached
from workspace_registry.errors import E, WorkspaceRegistryError
from workspace_registry.hashing import ContentHasher
from workspace_registry.logging import get_logger
from workspace_registry.manifest import read_manifest
from workspace_registry.tarball import TarballStreamer
from workspace_registry.versioning import DependencyRewriter, synthesize_version
from workspace_registry.workspace import WorkspaceIndex

log = get_logger('workspace_registry.metadata')

#: Content type the metadata document is served with.
METADATA_CONTENT_TYPE: Final[str] = 'application/json'

# A package name is one path segment, or two when it carries a scope.
_NAME_PATTERN: Final[str] = r'((?:@[^/]+/)?[^/]+)'
_METADATA_PATH_RE: Final[re.Pattern[str]] = re.compile(rf'^/{_NAME_PATTERN}$')
_TARBALL_PATH_RE: Final[re.Pattern[str]] = re.compile(rf'^/{_NAME_PATTERN}/-/.*?\.tgz$')


def tarball_url(base_url: str, name: str, version: str) -> str:
    """Return the URL a package's archive is advertised under.

    The pattern is ``<base>/<name>/-/<name>-<version>.tgz``;
    :func:`parse_tarball_path` recovers ``name`` from it.
    """
    return f'{base_url.rstrip("/")}/{name}/-/{name}-{version}.tgz'


def parse_metadata_path(path: str) -> str | None:
    """Return the package name addressed by a metadata request path.

    Accepts ``/name``, ``/@scope/name`` and ``/@scope%2fname``.
    """
    match = _METADATA_PATH_RE.match(urllib.parse.unquote(path))
    return match.group(1) if match else None


def parse_tarball_path(path: str) -> str | None:
    """Return the package name addressed by a tarball request path."""
    match = _TARBALL_PATH_RE.match(urllib.parse.unquote(path))
    return match.group(1) if match else None


def isoformat(timestamp: float) -> str:
    """Format a POSIX timestamp like JavaScript's ``Date.toJSON()``."""
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return moment.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


class MetadataAssembler:
    """Builds and memoizes metadata documents.

    Documents are cached by package name. A cached document is shared
    between requests and must be treated as read-only.

    Args:
        index: The workspace members.
        hasher: Source of content fingerprints.
        rewriter: Pins workspace dependencies.
        streamer: Produces the archive whose checksum is advertised.
        cache: The cache holding assembled documents.
        base_url: Address this registry is reachable at, used for
            ``dist.tarball``.
    """

    def __init__(
        self,
        index: WorkspaceIndex,
        hasher: ContentHasher,
        rewriter: DependencyRewriter,
        streamer: TarballStreamer,
        cache: TTLCache,
        *,
        base_url: str,
    ) -> None:
        """Initialize with the components a document is derived from."""
        self._index = index
        self._hasher = hasher
        self._rewriter = rewriter
        self._streamer = streamer
        self._base_url = base_url
        self._assemble = cached(cache)(self._build)

    async def assemble(self, name: str) -> dict[str, Any]:
        """Return the metadata document for ``name``.

        Raises:
            WorkspaceRegistryError: ``UNKNOWN_PACKAGE`` if ``name`` is
                not a workspace member; ``MANIFEST_READ_FAILURE`` or
                ``FILE_READ_FAILURE`` if the package cannot be read.
        """
        return await self._assemble(name)

    async def _build(self, name: str) -> dict[str, Any]:
        package = await self._index.get(name)
        manifest = await read_manifest(package.location)
        await self._rewriter.rewrite_manifest(manifest)

        fingerprint = await self._hasher.fingerprint(package.location)
        version = synthesize_version(manifest.version, fingerprint)
        shasum = await self._streamer.checksum(name)

        try:
            st = os.stat(package.location)
        except OSError as exc:
            raise WorkspaceRegistryError(
                code=E.FILE_READ_FAILURE,
                message=f'Failed to stat {package.location}: {exc}',
            ) from exc

        manifest.version = version
        version_doc = manifest.to_dict()
        version_doc['dist'] = {
            'shasum': shasum,
            'tarball': tarball_url(self._base_url, name, version),
        }

        package_name = manifest.name or name
        document: dict[str, Any] = {
            '_id': package_name,
            '_rev': fingerprint,
            'name': package_name,
        }
        if manifest.description is not None:
            document['description'] = manifest.description
        document['dist-tags'] = {'latest': version}
        document['versions'] = {version: version_doc}
        document['time'] = {
            'modified': isoformat(st.st_mtime),
            'created': isoformat(st.st_ctime),
            version: isoformat(st.st_mtime),
        }
        log.info('metadata_assembled', package=name, version=version, shasum=shasum)
        return document


__all__ = [
    'METADATA_CONTENT_TYPE',
    'MetadataAssembler',
    'isoformat',
    'parse_metadata_path',
    'parse_tarball_path',
    'tarball_url',
]
