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


"""Typed view of a workspace package's ``package.json``.

The registry rewrites two things in a manifest (``version`` and the
dependency maps) and passes everything else through untouched. The
:class:`Manifest` record therefore names the fields it works with and
keeps every other key in an opaque ``extra`` bag, remembering the
original key order so that :meth:`Manifest.to_dict` reproduces the
document the package author wrote, apart from the rewritten values.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final

import aiofiles

from workspace_registry.errors import E, WorkspaceRegistryError

#: The manifest file name at the root of every package.
MANIFEST_FILENAME: Final[str] = 'package.json'

#: The four dependency categories, in the order npm documents them.
DEPENDENCY_FIELDS: Final[tuple[str, ...]] = (
    'dependencies',
    'devDependencies',
    'optionalDependencies',
    'peerDependencies',
)

_SCALAR_FIELDS: Final[tuple[str, ...]] = ('name', 'version', 'description')


@dataclass
class Manifest:
    """A parsed ``package.json``.

    ``name`` and ``description`` are only typed when they hold strings.
    Any other value (``null``, a number, ...) stays in ``extra`` under
    its own key, so it is written back exactly as it was read.

    Attributes:
        name: Package name, possibly scoped (``@scope/name``), or
            ``None`` when the key is absent or not a string.
        version: Declared version string.
        description: Description, or ``None`` when the key is absent
            or not a string.
        dependencies: Maps keyed by the npm category name
            (``dependencies``, ``devDependencies``, ...). Absent
            categories are not present in the mapping.
        extra: Every other top-level key, passed through untouched.
        key_order: Top-level keys in the order they were read.
    """

    name: str | None
    version: str
    description: str | None = None
    dependencies: dict[str, dict[str, str]] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)
    key_order: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, source: str = MANIFEST_FILENAME) -> Manifest:  # noqa: ANN401 - JSON values
        """Build a manifest from decoded JSON.

        Raises:
            WorkspaceRegistryError: ``MANIFEST_READ_FAILURE`` when the
                version is missing or a dependency category is not an
                object of strings.
        """
        version = data.get('version')
        if not isinstance(version, str) or not version:
            raise WorkspaceRegistryError(
                code=E.MANIFEST_READ_FAILURE,
                message=f'{source} has no "version" string',
                hint='Every served workspace package needs a version.',
            )

        dependencies: dict[str, dict[str, str]] = {}
        for category in DEPENDENCY_FIELDS:
            if category not in data:
                continue
            deps = data[category]
            if not isinstance(deps, dict) or not all(isinstance(v, str) for v in deps.values()):
                raise WorkspaceRegistryError(
                    code=E.MANIFEST_READ_FAILURE,
                    message=f'{source}: "{category}" must map package names to version ranges',
                )
            dependencies[category] = dict(deps)

        name = data.get('name')
        description = data.get('description')
        typed = {'version', *DEPENDENCY_FIELDS}
        if isinstance(name, str):
            typed.add('name')
        if isinstance(description, str):
            typed.add('description')
        return cls(
            name=name if isinstance(name, str) else None,
            version=version,
            description=description if isinstance(description, str) else None,
            dependencies=dependencies,
            extra={k: v for k, v in data.items() if k not in typed},
            key_order=list(data),
        )

    def dependency_maps(self) -> Iterator[tuple[str, dict[str, str]]]:
        """Yield ``(category, mapping)`` for each category that is present."""
        for category in DEPENDENCY_FIELDS:
            deps = self.dependencies.get(category)
            if deps is not None:
                yield category, deps

    def _value(self, key: str) -> tuple[bool, Any]:
        if key == 'name' and self.name is not None:
            return True, self.name
        if key == 'description' and self.description is not None:
            return True, self.description
        if key == 'version':
            return True, self.version
        if key in DEPENDENCY_FIELDS:
            return key in self.dependencies, self.dependencies.get(key)
        return key in self.extra, self.extra.get(key)

    def to_dict(self) -> dict[str, Any]:
        """Return the manifest as JSON-ready data, in original key order.

        Keys that were not in the source document (for example a
        ``version`` on a manifest built in code) are appended after the
        original keys.
        """
        keys = list(self.key_order)
        keys += [k for k in (*_SCALAR_FIELDS, *DEPENDENCY_FIELDS, *self.extra) if k not in keys]
        result: dict[str, Any] = {}
        for key in keys:
            present, value = self._value(key)
            if present:
                result[key] = value
        return result

    def to_json(self) -> str:
        """Serialize like ``JSON.stringify(manifest, null, 2)``."""
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)


def parse_manifest(text: str, source: str = MANIFEST_FILENAME) -> Manifest:
    """Parse manifest JSON text.

    Raises:
        WorkspaceRegistryError: ``MANIFEST_READ_FAILURE`` on invalid
            JSON or a non-object document.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise WorkspaceRegistryError(
            code=E.MANIFEST_READ_FAILURE,
            message=f'Failed to parse {source}: {exc}',
            hint=f'Check that {source} contains valid JSON.',
        ) from exc
    if not isinstance(data, dict):
        raise WorkspaceRegistryError(
            code=E.MANIFEST_READ_FAILURE,
            message=f'{source} is not a JSON object',
            hint=f'Expected a JSON object (dict) at the top level of {source}.',
        )
    return Manifest.from_dict(data, source=source)


async def read_manifest(package_dir: Path) -> Manifest:
    """Read and parse ``package.json`` from a package directory.

    Raises:
        WorkspaceRegistryError: ``MANIFEST_READ_FAILURE`` if the file is
            missing, unreadable or invalid.
    """
    path = Path(package_dir) / MANIFEST_FILENAME
    try:
        async with aiofiles.open(path, encoding='utf-8') as f:
            text = await f.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise WorkspaceRegistryError(
            code=E.MANIFEST_READ_FAILURE,
            message=f'Failed to read {path}: {exc}',
            hint=f'Check that {path} exists and is readable.',
        ) from exc
    return parse_manifest(text, str(path))


__all__ = [
    'DEPENDENCY_FIELDS',
    'MANIFEST_FILENAME',
    'Manifest',
    'parse_manifest',
    'read_manifest',
]
