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


"""Deterministic traversal of a package directory.

:func:`walk_files` is the single source of file order for both the
content fingerprint and the tarball, so the two always agree on what a
package contains.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path
from typing import Final

#: Directory names whose subtrees never belong to a package's content.
EXCLUDED_DIRS: Final[frozenset[str]] = frozenset({'node_modules'})


def walk_files(root: Path | str) -> Iterator[Path]:
    """Yield every regular file under ``root``, depth first.

    Entries of each directory are visited in sorted name order.
    ``node_modules`` subtrees are skipped at any depth. Symlinks are
    followed; sockets, FIFOs and dangling links are ignored.

    The generator reads the filesystem lazily; calling it again walks
    the current state of the tree.

    Args:
        root: The directory to walk.

    Yields:
        Absolute paths of regular files.

    Raises:
        OSError: If ``root`` or a subdirectory cannot be listed.
    """
    root = Path(root).absolute()
    for name in sorted(os.listdir(root)):
        if name in EXCLUDED_DIRS:
            continue
        path = root / name
        if path.is_dir():
            yield from walk_files(path)
        elif path.is_file():
            yield path


__all__ = [
    'EXCLUDED_DIRS',
    'walk_files',
]
