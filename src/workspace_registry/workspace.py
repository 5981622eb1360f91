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


"""Workspace members and where they live on disk.

The :class:`WorkspaceIndex` answers one question for the rest of the
registry: "is this name a local package, and if so, where is it?". It
gets its answer from a :class:`WorkspaceLister` and memoizes it for the
cache window, because listing a workspace means running the package
manager.

Listers::

    ┌──────────────────────────┬──────────────────────────────────────────┐
    │ Lister                   │ Source                                   │
    ├──────────────────────────┼──────────────────────────────────────────┤
    │ YarnWorkspaceLister      │ ``yarn workspaces info --json`` run in   │
    │                          │ the workspace root (non-blocking).       │
    ├──────────────────────────┼──────────────────────────────────────────┤
    │ StaticWorkspaceLister    │ A fixed name → location mapping, for     │
    │                          │ embedding and tests.                     │
    └──────────────────────────┴──────────────────────────────────────────┘

Yarn v1 prints the workspace map between a banner and a timing footer::

    yarn workspaces v1.22.19
    {
      "pkg-a": {
        "location": "packages/pkg-a",
        "workspaceDependencies": ["pkg-b"],
        "mismatchedWorkspaceDependencies": []
      }
    }
    Done in 0.04s.

Some yarn 1.x releases instead wrap it in a single ``{"type": "log",
"data": "..."}`` event line. :func:`parse_workspaces_info` accepts both.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Final, Protocol, runtime_checkable

from workspace_registry.cache import TTLCache, cached
from workspace_registry.errors import E, WorkspaceRegistryError
from workspace_registry.logging import get_logger

log = get_logger('workspace_registry.workspace')

#: Command used to list yarn workspaces.
DEFAULT_LISTER_COMMAND: Final[tuple[str, ...]] = ('yarn', 'workspaces', 'info', '--json')

#: Seconds to wait for the lister before giving up.
DEFAULT_LISTER_TIMEOUT: Final[float] = 60.0

_INDEX_KEY: Final[str] = 'workspace'


@dataclass(frozen=True)
class WorkspacePackage:
    """A workspace member.

    Attributes:
        name: The package name, possibly scoped (``@scope/name``).
        location: Absolute path to the package's root directory.
    """

    name: str
    location: Path


@runtime_checkable
class WorkspaceLister(Protocol):
    """Source of the workspace member list."""

    async def list_packages(self) -> dict[str, WorkspacePackage]:
        """Return all workspace members keyed by package name."""
        ...


def _listing_error(message: str, hint: str = '') -> WorkspaceRegistryError:
    return WorkspaceRegistryError(code=E.WORKSPACE_LISTING_FAILURE, message=message, hint=hint)


def _extract_json_block(text: str) -> str:
    """Return the JSON object embedded in yarn's human-oriented output."""
    for line in text.splitlines():
        try:
            event = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(event, dict) and event.get('type') == 'log' and isinstance(event.get('data'), str):
            return event['data']

    # The banner and footer carry no braces.
    start = text.find('{')
    end = text.rfind('}')
    if start < 0 or end < start:
        raise _listing_error('Workspace lister output contains no JSON object')
    return text[start : end + 1]


def parse_workspaces_info(text: str, root: Path) -> dict[str, WorkspacePackage]:
    """Parse ``yarn workspaces info --json`` output.

    Args:
        text: The command's standard output.
        root: Workspace root; relative locations are resolved against it.

    Returns:
        Members keyed by package name.

    Raises:
        WorkspaceRegistryError: ``WORKSPACE_LISTING_FAILURE`` when the
            output holds no well-formed workspace map.
    """
    block = _extract_json_block(text)
    try:
        data: Any = json.loads(block)
    except json.JSONDecodeError as exc:
        raise _listing_error(f'Failed to parse workspace lister output: {exc}') from exc
    if not isinstance(data, dict):
        raise _listing_error('Workspace lister output is not a JSON object')

    packages: dict[str, WorkspacePackage] = {}
    for name, info in data.items():
        location = info.get('location') if isinstance(info, dict) else None
        if not isinstance(location, str) or not location:
            raise _listing_error(f'Workspace entry {name!r} has no location')
        packages[name] = WorkspacePackage(name=name, location=(root / location).resolve())
    return packages


class YarnWorkspaceLister:
    """Lists members by running the yarn workspace command.

    Args:
        root: The workspace root the command runs in.
        command: The command and its arguments.
        timeout: Seconds to wait for the command.
    """

    def __init__(
        self,
        root: Path,
        *,
        command: Sequence[str] = DEFAULT_LISTER_COMMAND,
        timeout: float = DEFAULT_LISTER_TIMEOUT,
    ) -> None:
        """Initialize with the workspace root and command."""
        self._root = Path(root).resolve()
        self._command = list(command)
        self._timeout = timeout

    async def list_packages(self) -> dict[str, WorkspacePackage]:
        """Run the lister and parse its output.

        Raises:
            WorkspaceRegistryError: ``WORKSPACE_LISTING_FAILURE`` if the
                executable is missing, times out, exits non-zero, or
                prints unparseable output.
        """
        cmd_str = ' '.join(self._command)
        log.debug('run_lister', cmd=cmd_str, cwd=str(self._root))
        try:
            proc = await asyncio.create_subprocess_exec(
                *self._command,
                cwd=self._root,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise _listing_error(
                f'Failed to run {cmd_str!r}: {exc}',
                hint='Install yarn or set WORKSPACE_REGISTRY_LISTER_COMMAND.',
            ) from exc

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise _listing_error(f'{cmd_str!r} timed out after {self._timeout}s') from exc

        if proc.returncode != 0:
            log.warning(
                'lister_failed',
                cmd=cmd_str,
                returncode=proc.returncode,
                stderr=stderr.decode(errors='replace'),
            )
            raise _listing_error(
                f'{cmd_str!r} exited with status {proc.returncode}',
                hint=f"Run '{cmd_str}' in {self._root} to see the error.",
            )
        return parse_workspaces_info(stdout.decode(errors='replace'), self._root)


class StaticWorkspaceLister:
    """Serves a fixed set of members.

    Args:
        packages: Package name → package directory.
    """

    def __init__(self, packages: Mapping[str, Path | str]) -> None:
        """Initialize with a name → location mapping."""
        self._packages = {
            name: WorkspacePackage(name=name, location=Path(location).resolve()) for name, location in packages.items()
        }

    async def list_packages(self) -> dict[str, WorkspacePackage]:
        """Return a copy of the configured members."""
        return dict(self._packages)


class WorkspaceIndex:
    """Memoized view of the workspace members.

    Args:
        lister: Where the member list comes from.
        cache: The cache holding the listing.
    """

    def __init__(self, lister: WorkspaceLister, cache: TTLCache) -> None:
        """Initialize with a lister and its cache."""
        self._lister = lister
        self._list = cached(cache)(self._fetch)

    async def _fetch(self, _key: str) -> Mapping[str, WorkspacePackage]:
        packages = await self._lister.list_packages()
        log.info('workspace_listed', count=len(packages))
        return MappingProxyType(dict(packages))

    async def packages(self) -> Mapping[str, WorkspacePackage]:
        """Return all members keyed by name (read-only)."""
        return await self._list(_INDEX_KEY)

    async def contains(self, name: str) -> bool:
        """Whether ``name`` is a workspace member."""
        return name in await self.packages()

    async def get(self, name: str) -> WorkspacePackage:
        """Return the member called ``name``.

        Raises:
            WorkspaceRegistryError: ``UNKNOWN_PACKAGE`` if there is none.
        """
        package = (await self.packages()).get(name)
        if package is None:
            raise WorkspaceRegistryError(
                code=E.UNKNOWN_PACKAGE,
                message=f'Unknown package {name}',
                hint='Only workspace members are served locally.',
            )
        return package


__all__ = [
    'DEFAULT_LISTER_COMMAND',
    'DEFAULT_LISTER_TIMEOUT',
    'StaticWorkspaceLister',
    'WorkspaceIndex',
    'WorkspaceLister',
    'WorkspacePackage',
    'YarnWorkspaceLister',
    'parse_workspaces_info',
]
