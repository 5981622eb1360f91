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


"""workspace-registry: serve a local yarn workspace as an npm registry.

Workspace packages are advertised under a synthesized version,
``<declared-version>-<content fingerprint>``, with their workspace
dependencies pinned to each other's synthesized versions. Every other
package is proxied to the upstream registry.

Basic usage::

    from workspace_registry import LocalRegistry, StaticWorkspaceLister

    registry = LocalRegistry(
        StaticWorkspaceLister({'pkg-a': 'packages/pkg-a'}),
        base_url='http://localhost:4321',
    )
    document = await registry.metadata('pkg-a')
"""

from workspace_registry.cache import TTLCache, cached
from workspace_registry.errors import E, ErrorCode, WorkspaceRegistryError
from workspace_registry.registry import LocalRegistry
from workspace_registry.versioning import synthesize_version
from workspace_registry.workspace import (
    StaticWorkspaceLister,
    WorkspaceIndex,
    WorkspaceLister,
    WorkspacePackage,
    YarnWorkspaceLister,
)

__version__ = '0.1.0'

__all__ = [
    'E',
    'ErrorCode',
    'LocalRegistry',
    'StaticWorkspaceLister',
    'TTLCache',
    'WorkspaceIndex',
    'WorkspaceLister',
    'WorkspacePackage',
    'WorkspaceRegistryError',
    'YarnWorkspaceLister',
    '__version__',
    'cached',
    'synthesize_version',
]
