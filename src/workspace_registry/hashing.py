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


r"""Content fingerprints for package directories.

A fingerprint is an MD5 over one record per file yielded by
:func:`~workspace_registry.walker.walk_files`, in walk order::

    <posix path relative to the package>\0<md5 hex of the file body>\n

Hashing paths and per-file digests rather than the bare concatenation
of file bodies means an added or removed empty file, a rename, or bytes
moved from one file to the next all change the result. It is a change
detector, not a security control; an untouched tree always hashes the
same.

Files are read in chunks through ``aiofiles`` so hashing a large
package does not stall other requests on the event loop.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Final

import aiofiles

from workspace_registry.cache import TTLCache, cached
from workspace_registry.errors import E, WorkspaceRegistryError
from workspace_registry.logging import get_logger
from workspace_registry.walker import walk_files

log = get_logger('workspace_registry.hashing')

#: Bytes read per chunk when hashing or archiving files.
READ_CHUNK_SIZE: Final[int] = 64 * 1024


async def hash_directory(path: Path) -> str:
    """Return the hex MD5 fingerprint of the files under ``path``.

    Raises:
        WorkspaceRegistryError: ``FILE_READ_FAILURE`` if the directory
            cannot be listed or a file cannot be read.
    """
    root = Path(path).absolute()
    digest = hashlib.md5()  # noqa: S324 - change detection, not security
    try:
        for file_path in walk_files(root):
            body = hashlib.md5()  # noqa: S324
            async with aiofiles.open(file_path, 'rb') as f:
                while chunk := await f.read(READ_CHUNK_SIZE):
                    body.update(chunk)
            relative = file_path.relative_to(root).as_posix()
            digest.update(f'{relative}\0{body.hexdigest()}\n'.encode('utf-8', 'surrogateescape'))
    except OSError as exc:
        raise WorkspaceRegistryError(
            code=E.FILE_READ_FAILURE,
            message=f'Failed to hash {path}: {exc}',
            hint='A file was removed or became unreadable while the package was being hashed.',
        ) from exc
    return digest.hexdigest()


class ContentHasher:
    """Memoized :func:`hash_directory`, keyed on the directory path.

    Args:
        cache: The cache holding fingerprints.
    """

    def __init__(self, cache: TTLCache) -> None:
        """Initialize with the fingerprint cache."""
        self._cache = cache
        self._fingerprint = cached(cache)(self._compute)

    async def _compute(self, path: Path) -> str:
        fingerprint = await hash_directory(path)
        log.debug('package_hashed', path=str(path), fingerprint=fingerprint)
        return fingerprint

    async def fingerprint(self, path: Path) -> str:
        """Return the fingerprint of ``path``, recomputing once stale."""
        return await self._fingerprint(Path(path).absolute())


__all__ = [
    'READ_CHUNK_SIZE',
    'ContentHasher',
    'hash_directory',
]
