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


"""Workspace fixtures: package directories on disk and fake listers."""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from workspace_registry.errors import E, WorkspaceRegistryError
from workspace_registry.workspace import WorkspacePackage


def write_package(
    root: Path,
    subdir: str,
    name: str,
    version: str = '1.0.0',
    *,
    files: Mapping[str, str | bytes] | None = None,
    dependencies: Mapping[str, str] | None = None,
    extra: Mapping[str, Any] | None = None,
) -> Path:
    """Write a package directory with a package.json and return it."""
    pkg_dir = root / subdir
    pkg_dir.mkdir(parents=True, exist_ok=True)
    manifest: dict[str, Any] = {'name': name, 'version': version}
    if dependencies is not None:
        manifest['dependencies'] = dict(dependencies)
    manifest.update(extra or {})
    (pkg_dir / 'package.json').write_text(json.dumps(manifest, indent=2) + '\n')
    for rel, content in (files or {}).items():
        path = pkg_dir / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content)
    return pkg_dir


class CountingLister:
    """Static lister that counts how often it is asked."""

    def __init__(self, packages: Mapping[str, Path]) -> None:
        """Initialize with name → location."""
        self.packages = {name: WorkspacePackage(name=name, location=Path(loc)) for name, loc in packages.items()}
        self.calls = 0

    async def list_packages(self) -> dict[str, WorkspacePackage]:
        """Return the members and count the call."""
        self.calls += 1
        return dict(self.packages)


class FailingLister:
    """Lister that fails a configurable number of times, then succeeds."""

    def __init__(self, packages: Mapping[str, Path], *, failures: int = 1) -> None:
        """Initialize with the members served after the failures."""
        self.packages = {name: WorkspacePackage(name=name, location=Path(loc)) for name, loc in packages.items()}
        self.failures = failures
        self.calls = 0

    async def list_packages(self) -> dict[str, WorkspacePackage]:
        """Fail while failures remain, then return the members."""
        self.calls += 1
        if self.calls <= self.failures:
            raise WorkspaceRegistryError(code=E.WORKSPACE_LISTING_FAILURE, message='yarn exited with status 1')
        return dict(self.packages)
