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


"""Reverse proxy to the upstream registry.

Anything the local workspace does not provide (every third-party
package a workspace depends on) is fetched from the real registry.
:class:`UpstreamProxy` forwards the request over a pooled
:class:`httpx.AsyncClient` and streams the upstream response back
untouched: status, headers and raw (still content-encoded) body.

Usage::

    proxy = UpstreamProxy('https://registry.npmjs.com/')
    response = await proxy.forward(request)  # a Starlette response
    await proxy.aclose()
"""

from __future__ import annotations

from typing import Final

import httpx
from starlette.background import BackgroundTask
from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse

from workspace_registry.logging import get_logger

log = get_logger('workspace_registry.proxy')

DEFAULT_POOL_SIZE: Final[int] = 10
DEFAULT_TIMEOUT: Final[float] = 30.0

# Connection-scoped headers (RFC 9110 section 7.6.1) plus Host, which
# httpx derives from the upstream URL.
_HOP_BY_HOP_HEADERS: Final[frozenset[str]] = frozenset({
    'connection',
    'host',
    'keep-alive',
    'proxy-authenticate',
    'proxy-authorization',
    'te',
    'trailer',
    'trailers',
    'transfer-encoding',
    'upgrade',
})

_BODYLESS_METHODS: Final[frozenset[str]] = frozenset({'GET', 'HEAD'})


def _forwardable(headers: httpx.Headers | list[tuple[str, str]]) -> list[tuple[str, str]]:
    items = headers.multi_items() if isinstance(headers, httpx.Headers) else headers
    return [(k, v) for k, v in items if k.lower() not in _HOP_BY_HOP_HEADERS]


class UpstreamProxy:
    """Forwards requests to an upstream registry.

    Args:
        upstream_url: Base URL of the upstream registry.
        pool_size: Maximum number of pooled connections.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (tests pass a
            :class:`httpx.MockTransport`).
    """

    def __init__(
        self,
        upstream_url: str,
        *,
        pool_size: int = DEFAULT_POOL_SIZE,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create the pooled client."""
        self._upstream_url = upstream_url.rstrip('/')
        self._client = httpx.AsyncClient(
            limits=httpx.Limits(max_connections=pool_size, max_keepalive_connections=pool_size),
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @property
    def upstream_url(self) -> str:
        """Base URL requests are forwarded to."""
        return self._upstream_url

    def target_url(self, request: Request) -> str:
        """Return the upstream URL for ``request``, keeping its raw path."""
        raw_path = request.scope.get('raw_path') or request.url.path.encode()
        url = self._upstream_url + raw_path.split(b'?', 1)[0].decode('latin-1')
        query = request.scope.get('query_string', b'')
        if query:
            url += '?' + query.decode('latin-1')
        return url

    async def forward(self, request: Request) -> Response:
        """Forward ``request`` upstream and stream the response back.

        Returns a ``502`` JSON response if the upstream cannot be reached.
        """
        url = self.target_url(request)
        upstream_request = self._client.build_request(
            request.method,
            url,
            headers=_forwardable(request.headers.items()),
            content=None if request.method in _BODYLESS_METHODS else request.stream(),
        )
        try:
            response = await self._client.send(upstream_request, stream=True)
        except httpx.HTTPError as exc:
            log.warning('upstream_unreachable', method=request.method, url=url, error=str(exc))
            return JSONResponse(
                {'error': 'upstream_unreachable', 'message': str(exc)},
                status_code=502,
            )

        log.info('proxied', method=request.method, url=url, status=response.status_code)
        return StreamingResponse(
            response.aiter_raw(),
            status_code=response.status_code,
            headers=dict(_forwardable(response.headers)),
            background=BackgroundTask(response.aclose),
        )

    async def aclose(self) -> None:
        """Close the pooled client."""
        await self._client.aclose()


__all__ = [
    'DEFAULT_POOL_SIZE',
    'DEFAULT_TIMEOUT',
    'UpstreamProxy',
]
