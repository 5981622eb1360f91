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


r"""Command-line entry point.

Startup sequence::

    1. parse_args() + make_settings() + apply_args()
    2. configure_logging()
    3. build the LocalRegistry (yarn lister, caches) and the upstream proxy
    4. list the workspace once, so a broken lister fails at startup
    5. serve the Starlette app with uvicorn

CLI Usage::

    workspace-registry                                  # serve ./ on :4321
    workspace-registry --workspace-root ~/src/monorepo
    workspace-registry --port 4873 --base-url http://registry.local:4873
    workspace-registry --log-format json --log-level debug
    workspace-registry --explain WR-MANIFEST-READ-FAILURE

Then point a package manager at it::

    yarn install --registry http://localhost:4321
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Sequence
from pathlib import Path

import httpx
import uvicorn
from starlette.applications import Starlette

from workspace_registry.app import create_app
from workspace_registry.config import Settings, apply_args, make_settings, parse_args
from workspace_registry.errors import WorkspaceRegistryError, explain, render_error
from workspace_registry.logging import configure_logging, get_logger
from workspace_registry.proxy import UpstreamProxy
from workspace_registry.registry import LocalRegistry
from workspace_registry.workspace import WorkspaceLister, YarnWorkspaceLister

log = get_logger('workspace_registry.main')


def build_registry(settings: Settings, lister: WorkspaceLister | None = None) -> LocalRegistry:
    """Create the registry described by ``settings``.

    Args:
        settings: Loaded settings.
        lister: Overrides the yarn lister built from ``settings``.
    """
    if lister is None:
        lister = YarnWorkspaceLister(
            Path(settings.workspace_root),
            command=settings.lister_argv,
            timeout=settings.lister_timeout,
        )
    return LocalRegistry(lister, base_url=settings.advertised_url, ttl_seconds=settings.cache_ttl)


def build_app(
    settings: Settings,
    registry: LocalRegistry,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Starlette:
    """Create the ASGI app serving ``registry``, proxying to the configured upstream."""
    proxy = UpstreamProxy(settings.upstream_url, timeout=settings.upstream_timeout, transport=transport)
    return create_app(registry, proxy)


async def serve(settings: Settings, registry: LocalRegistry, app: Starlette) -> int:
    """List the workspace, then serve ``app`` until interrupted.

    Returns:
        The process exit code.
    """
    try:
        packages = await registry.index.packages()
    except WorkspaceRegistryError as exc:
        render_error(exc)
        return 1

    log.info(
        'server_starting',
        url=f'http://{settings.host}:{settings.port}',
        advertised=settings.advertised_url,
        upstream=settings.upstream_url,
        packages=len(packages),
    )
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        log_config=None,
    )
    await uvicorn.Server(config).serve()
    return 0


def _explain(code: str) -> int:
    result = explain(code)
    if result is None:
        print(f'Unknown error code: {code}')  # noqa: T201 - CLI output
        return 1
    print(result)  # noqa: T201 - CLI output
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point: parse args, configure, and start the server."""
    args = parse_args(argv)
    if args.explain:
        return _explain(args.explain)

    settings = apply_args(make_settings(env=args.env), args)

    configure_logging(level=settings.log_level, json_log=settings.log_format == 'json')
    if args.env:
        log.info('settings_loaded', env=args.env)

    registry = build_registry(settings)
    app = build_app(settings, registry)
    return asyncio.run(serve(settings, registry, app))


if __name__ == '__main__':
    sys.exit(main())
