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


"""HTTP surface of the registry.

## Key endpoints

    | Method   | Path                        | Handler                        |
    |----------|-----------------------------|--------------------------------|
    | GET      | /-/health                   | Health and cache statistics    |
    | GET/HEAD | /<name>                     | Metadata document              |
    | GET/HEAD | /<name>/-/<file>.tgz        | Tarball stream                 |

``<name>`` may be scoped, written either ``@scope/name`` or
``@scope%2fname``. A name that is not a workspace member is forwarded
to the upstream registry. Other local failures (broken manifest,
vanished file, failing workspace lister) are reported as ``500`` with
the error code, so they are not mistaken for a missing package. Paths
matching neither pattern get ``400 Bad request``.
"""

from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse
from starlette.routing import Route

from workspace_registry.errors import E, WorkspaceRegistryError
from workspace_registry.logging import get_logger
from workspace_registry.metadata import METADATA_CONTENT_TYPE, parse_metadata_path, parse_tarball_path
from workspace_registry.proxy import UpstreamProxy
from workspace_registry.registry import LocalRegistry
from workspace_registry.tarball import TARBALL_CONTENT_TYPE

log = get_logger('workspace_registry.app')


def _raw_path(request: Request) -> str:
    raw = request.scope.get('raw_path')
    if not raw:
        return request.url.path
    return raw.split(b'?', 1)[0].decode('latin-1')


def _error_response(exc: WorkspaceRegistryError, name: str) -> JSONResponse:
    log.error('local_package_failed', package=name, code=exc.code.value, error=exc.info.message)
    return JSONResponse(exc.to_dict(), status_code=500)


def create_app(registry: LocalRegistry, proxy: UpstreamProxy) -> Starlette:
    """Create the ASGI application.

    Args:
        registry: Serves workspace packages.
        proxy: Handles everything the workspace does not provide. It is
            closed when the application shuts down.

    Returns:
        A Starlette application.
    """

    async def health(request: Request) -> JSONResponse:
        return JSONResponse({'status': 'ok', 'caches': registry.cache_stats()})

    async def metadata(request: Request, name: str) -> Response:
        try:
            document = await registry.metadata(name)
        except WorkspaceRegistryError as exc:
            if exc.code == E.UNKNOWN_PACKAGE:
                return await proxy.forward(request)
            return _error_response(exc, name)
        return JSONResponse(document, media_type=METADATA_CONTENT_TYPE)

    async def tarball(request: Request, name: str) -> Response:
        try:
            stream = await registry.open_tarball(name)
        except WorkspaceRegistryError as exc:
            if exc.code == E.UNKNOWN_PACKAGE:
                return await proxy.forward(request)
            return _error_response(exc, name)
        return StreamingResponse(stream, media_type=TARBALL_CONTENT_TYPE)

    async def dispatch(request: Request) -> Response:
        path = _raw_path(request)
        if (name := parse_metadata_path(path)) is not None:
            return await metadata(request, name)
        if (name := parse_tarball_path(path)) is not None:
            return await tarball(request, name)
        log.debug('bad_request', path=path)
        return PlainTextResponse('Bad request', status_code=400)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        try:
            yield
        finally:
            await proxy.aclose()

    routes = [
        Route('/-/health', health, methods=['GET']),
        Route('/{path:path}', dispatch, methods=['GET', 'HEAD']),
    ]
    return Starlette(routes=routes, lifespan=lifespan)


__all__ = [
    'create_app',
]
