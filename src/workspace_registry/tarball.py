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


"""Streaming ``.tgz`` archives of workspace packages.

:class:`TarballStreamer` produces the archive a package manager expects
from ``npm pack``: every file of the package under a ``package/``
prefix, gzip-compressed. The root ``package.json`` is not copied
verbatim; its entry carries the manifest as the registry advertised it
(synthesized version, pinned workspace dependencies), so the installed
package agrees with the metadata document.

The archive is produced incrementally and never held in memory::

    Idle ──► Walking ──► HeaderEmitted ──► BodyStreamed ──┐
                ▲                                         │ next file
                └─────────────────────────────────────────┘
                │ no more files
                ▼
            Finalized (two zero blocks) ──► Compressed-EOF

    any error ──► Failed (raised from the iterator)

Output is byte-for-byte reproducible for an unchanged tree: entry order
comes from :func:`~workspace_registry.walker.walk_files`, headers only
carry stat data, and the gzip header's timestamp is zero. The metadata
document relies on this, since its ``shasum`` is computed from a
separate run of the same stream.
"""

from __future__ import annotations

import contextlib
import hashlib
import os
import stat
import tarfile
import zlib
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Final

import aiofiles

from workspace_registry.errors import E, WorkspaceRegistryError
from workspace_registry.hashing import READ_CHUNK_SIZE, ContentHasher
from workspace_registry.logging import get_logger
from workspace_registry.manifest import MANIFEST_FILENAME, read_manifest
from workspace_registry.versioning import DependencyRewriter, synthesize_version
from workspace_registry.walker import walk_files
from workspace_registry.workspace import WorkspaceIndex, WorkspacePackage

log = get_logger('workspace_registry.tarball')

#: Directory every entry is placed under, as produced by ``npm pack``.
ARCHIVE_ROOT: Final[str] = 'package'

#: Content type the tarball is served with.
TARBALL_CONTENT_TYPE: Final[str] = 'application/tar+gzip'

# wbits=31 selects a gzip container; zlib writes a zero mtime in its header.
_GZIP_WBITS: Final[int] = 16 + zlib.MAX_WBITS

_END_OF_ARCHIVE: Final[bytes] = tarfile.NUL * (2 * tarfile.BLOCKSIZE)


def tar_header(name: str, st: os.stat_result, size: int) -> bytes:
    """Return the header block(s) for a regular-file entry.

    Args:
        name: Entry path inside the archive.
        st: ``stat`` of the source file (mode, mtime, ownership).
        size: Size of the entry body, which may differ from
            ``st.st_size`` for rewritten files.
    """
    info = tarfile.TarInfo(name)
    info.type = tarfile.REGTYPE
    info.size = size
    info.mode = stat.S_IMODE(st.st_mode)
    info.mtime = int(st.st_mtime)
    info.uid = st.st_uid
    info.gid = st.st_gid
    return info.tobuf(format=tarfile.PAX_FORMAT, encoding='utf-8', errors='surrogateescape')


def block_padding(size: int) -> bytes:
    """Return the NUL bytes that pad a body of ``size`` to a block boundary."""
    remainder = size % tarfile.BLOCKSIZE
    return tarfile.NUL * (tarfile.BLOCKSIZE - remainder) if remainder else b''


def _read_error(path: Path, reason: str) -> WorkspaceRegistryError:
    return WorkspaceRegistryError(
        code=E.FILE_READ_FAILURE,
        message=f'Failed to archive {path}: {reason}',
        hint='A file changed while the package was being archived; retry the install.',
    )


class TarballStreamer:
    """Builds package archives on demand.

    Args:
        index: The workspace members.
        hasher: Source of content fingerprints.
        rewriter: Pins workspace dependencies in the archived manifest.
    """

    def __init__(
        self,
        index: WorkspaceIndex,
        hasher: ContentHasher,
        rewriter: DependencyRewriter,
    ) -> None:
        """Initialize with the components the archive depends on."""
        self._index = index
        self._hasher = hasher
        self._rewriter = rewriter

    async def open(self, name: str) -> AsyncIterator[bytes]:
        """Resolve ``name`` and return an iterator over the archive bytes.

        Resolution happens before the first byte is produced, so an
        unknown package is reported here rather than mid-stream.

        Raises:
            WorkspaceRegistryError: ``UNKNOWN_PACKAGE`` if ``name`` is
                not a workspace member. The returned iterator raises
                ``FILE_READ_FAILURE`` or ``MANIFEST_READ_FAILURE`` if
                the package cannot be archived.
        """
        package = await self._index.get(name)
        return self._generate(package)

    async def checksum(self, name: str) -> str:
        """Return the SHA-1 hex digest of the archive for ``name``."""
        digest = hashlib.sha1()  # noqa: S324 - npm's dist.shasum is SHA-1
        async for chunk in await self.open(name):
            digest.update(chunk)
        return digest.hexdigest()

    async def manifest_json(self, package: WorkspacePackage) -> str:
        """Return the package's manifest as it appears inside the archive."""
        manifest = await read_manifest(package.location)
        fingerprint = await self._hasher.fingerprint(package.location)
        manifest.version = synthesize_version(manifest.version, fingerprint)
        await self._rewriter.rewrite_manifest(manifest)
        return manifest.to_json()

    async def _generate(self, package: WorkspacePackage) -> AsyncIterator[bytes]:
        compressor = zlib.compressobj(zlib.Z_DEFAULT_COMPRESSION, zlib.DEFLATED, _GZIP_WBITS)
        entries = 0
        log.debug('tarball_started', package=package.name, location=str(package.location))
        try:
            for path in walk_files(package.location):
                # The entry closes with the stream, releasing its open file.
                async with contextlib.aclosing(self._entry(package, path)) as blocks:
                    async for block in blocks:
                        if out := compressor.compress(block):
                            yield out
                entries += 1
        except OSError as exc:
            log.warning('tarball_failed', package=package.name, error=str(exc))
            raise _read_error(package.location, str(exc)) from exc
        yield compressor.compress(_END_OF_ARCHIVE) + compressor.flush()
        log.info('tarball_streamed', package=package.name, entries=entries)

    async def _entry(self, package: WorkspacePackage, path: Path) -> AsyncIterator[bytes]:
        relative = path.relative_to(package.location).as_posix()
        name = f'{ARCHIVE_ROOT}/{relative}'
        st = path.stat()

        if relative == MANIFEST_FILENAME:
            body = (await self.manifest_json(package)).encode('utf-8')
            yield tar_header(name, st, len(body))
            yield body
            yield block_padding(len(body))
            return

        yield tar_header(name, st, st.st_size)
        remaining = st.st_size
        async with aiofiles.open(path, 'rb') as f:
            while remaining > 0:
                chunk = await f.read(min(READ_CHUNK_SIZE, remaining))
                if not chunk:
                    raise _read_error(path, f'file shrank by {remaining} bytes')
                remaining -= len(chunk)
                yield chunk
            if await f.read(1):
                raise _read_error(path, 'file grew after it was listed')
        yield block_padding(st.st_size)


__all__ = [
    'ARCHIVE_ROOT',
    'TARBALL_CONTENT_TYPE',
    'TarballStreamer',
    'block_padding',
    'tar_header',
]
