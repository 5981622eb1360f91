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


"""Tests for the HTTP surface, driven through httpx's ASGI transport."""

from __future__ import annotations

import hashlib
import io
import json
import tarfile
from collections.abc import AsyncIterator
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from workspace_registry.app import create_app
from workspace_registry.errors import E
from workspace_registry.hashing import hash_directory
from workspace_registry.proxy import UpstreamProxy
from workspace_registry.registry import LocalRegistry
from workspace_registry.workspace import StaticWorkspaceLister

from tests._fakes import FailingLister, FakeClock, streaming_response, write_package

BASE_URL = 'http://localhost:4321'
UPSTREAM_URL = 'https://upstream.test/'


class Upstream:
    """Records forwarded requests and answers like a registry."""

    def __init__(self, *, reachable: bool = True) -> None:
        """Initialize an empty request log."""
        self.requests: list[httpx.Request] = []
        self.reachable = reachable

    def __call__(self, request: httpx.Request) -> httpx.Response:
        """Answer one forwarded request."""
        self.requests.append(request)
        if not self.reachable:
            raise httpx.ConnectError('connection refused', request=request)
        return streaming_response(
            200,
            json_body={'name': 'from-upstream', 'path': request.url.raw_path.decode()},
            headers={'x-upstream': 'yes'},
        )


@pytest.fixture
def workspace(tmp_path: Path) -> dict[str, Path]:
    """pkg-a depends on pkg-b; @scope/pkg-c is scoped."""
    return {
        'pkg-a': write_package(tmp_path, 'a', 'pkg-a', files={'index.js': 'A'}, dependencies={'pkg-b': '*'}),
        'pkg-b': write_package(tmp_path, 'b', 'pkg-b', '2.0.0', files={'index.js': 'B'}),
        '@scope/pkg-c': write_package(tmp_path, 'c', '@scope/pkg-c', '0.1.0'),
    }


@pytest.fixture
def upstream() -> Upstream:
    """A reachable fake upstream."""
    return Upstream()


def _client(registry: LocalRegistry, upstream: Upstream) -> httpx.AsyncClient:
    proxy = UpstreamProxy(UPSTREAM_URL, transport=httpx.MockTransport(upstream))
    app = create_app(registry, proxy)
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=BASE_URL)


@pytest_asyncio.fixture
async def client(workspace: dict[str, Path], upstream: Upstream) -> AsyncIterator[httpx.AsyncClient]:
    """Client for an app serving the fixture workspace."""
    registry = LocalRegistry(StaticWorkspaceLister(workspace), base_url=BASE_URL, clock=FakeClock())
    async with _client(registry, upstream) as c:
        yield c


class TestHealth:
    """Tests for the health endpoint."""

    @pytest.mark.asyncio
    async def test_health(self, client: httpx.AsyncClient) -> None:
        """Health reports ok and per-cache statistics."""
        response = await client.get('/-/health')
        assert response.status_code == 200
        body = response.json()
        assert body['status'] == 'ok'
        assert set(body['caches']) == {'workspace', 'fingerprints', 'metadata'}


class TestMetadataRoute:
    """Tests for GET /<name>."""

    @pytest.mark.asyncio
    async def test_local_package(self, client: httpx.AsyncClient, workspace: dict[str, Path]) -> None:
        """Workspace members are served from disk."""
        response = await client.get('/pkg-a')
        assert response.status_code == 200
        assert response.headers['content-type'].startswith('application/json')
        doc = response.json()
        hash_b = await hash_directory(workspace['pkg-b'])
        (entry,) = doc['versions'].values()
        assert entry['dependencies'] == {'pkg-b': f'2.0.0-{hash_b}'}

    @pytest.mark.asyncio
    @pytest.mark.parametrize('path', ['/@scope/pkg-c', '/@scope%2fpkg-c', '/@scope%2Fpkg-c'])
    async def test_scoped_package(self, client: httpx.AsyncClient, path: str) -> None:
        """Scoped names resolve with or without an encoded slash."""
        response = await client.get(path)
        assert response.status_code == 200
        assert response.json()['name'] == '@scope/pkg-c'

    @pytest.mark.asyncio
    async def test_unknown_package_proxied(self, client: httpx.AsyncClient, upstream: Upstream) -> None:
        """Names outside the workspace are answered by the upstream."""
        response = await client.get('/left-pad', headers={'accept': 'application/vnd.npm.install-v1+json'})
        assert response.status_code == 200
        assert response.json()['name'] == 'from-upstream'
        assert response.headers['x-upstream'] == 'yes'

        (forwarded,) = upstream.requests
        assert str(forwarded.url) == 'https://upstream.test/left-pad'
        assert forwarded.headers['accept'] == 'application/vnd.npm.install-v1+json'
        assert forwarded.headers['host'] == 'upstream.test'

    @pytest.mark.asyncio
    async def test_scoped_unknown_keeps_encoding(self, client: httpx.AsyncClient, upstream: Upstream) -> None:
        """The upstream sees the path exactly as the client sent it."""
        await client.get('/@types%2fnode')
        assert upstream.requests[0].url.raw_path == b'/@types%2fnode'

    @pytest.mark.asyncio
    async def test_upstream_unreachable(self, workspace: dict[str, Path]) -> None:
        """A failing upstream is a 502 with a JSON body."""
        registry = LocalRegistry(StaticWorkspaceLister(workspace), base_url=BASE_URL, clock=FakeClock())
        async with _client(registry, Upstream(reachable=False)) as client:
            response = await client.get('/left-pad')
        assert response.status_code == 502
        assert response.json()['error'] == 'upstream_unreachable'

    @pytest.mark.asyncio
    async def test_broken_manifest_is_server_error(
        self, client: httpx.AsyncClient, workspace: dict[str, Path], upstream: Upstream
    ) -> None:
        """Local failures are reported, not proxied."""
        (workspace['pkg-b'] / 'package.json').write_text('{broken')
        response = await client.get('/pkg-b')
        assert response.status_code == 500
        assert response.json()['error'] == E.MANIFEST_READ_FAILURE.value
        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_listing_failure_is_server_error(self, workspace: dict[str, Path], upstream: Upstream) -> None:
        """A failing workspace lister is a 500, and the next request retries it."""
        lister = FailingLister(workspace, failures=1)
        registry = LocalRegistry(lister, base_url=BASE_URL, clock=FakeClock())
        async with _client(registry, upstream) as client:
            first = await client.get('/pkg-a')
            second = await client.get('/pkg-a')
        assert first.status_code == 500
        assert first.json()['error'] == E.WORKSPACE_LISTING_FAILURE.value
        assert second.status_code == 200

    @pytest.mark.asyncio
    @pytest.mark.parametrize('path', ['/pkg-a/extra', '/a/b/c'])
    async def test_bad_request(self, client: httpx.AsyncClient, path: str) -> None:
        """Paths that name neither a document nor an archive are rejected."""
        response = await client.get(path)
        assert response.status_code == 400
        assert response.text == 'Bad request'

    @pytest.mark.asyncio
    async def test_other_methods_rejected(self, client: httpx.AsyncClient) -> None:
        """Only GET and HEAD are routed."""
        response = await client.put('/pkg-a', content=b'{}')
        assert response.status_code == 405


class TestTarballRoute:
    """Tests for GET /<name>/-/<file>.tgz."""

    @pytest.mark.asyncio
    async def test_advertised_url_serves_archive(self, client: httpx.AsyncClient) -> None:
        """The dist.tarball URL of a document downloads a matching archive."""
        doc = (await client.get('/pkg-a')).json()
        (entry,) = doc['versions'].values()
        url = entry['dist']['tarball']
        assert url.startswith(BASE_URL + '/pkg-a/-/pkg-a-')

        response = await client.get(url)
        assert response.status_code == 200
        assert response.headers['content-type'] == 'application/tar+gzip'

        with tarfile.open(fileobj=io.BytesIO(response.content), mode='r:gz') as tar:
            f = tar.extractfile('package/package.json')
            assert f is not None
            manifest = json.loads(f.read())
        assert manifest['version'] == entry['version']
        assert manifest['dependencies'] == entry['dependencies']

    @pytest.mark.asyncio
    async def test_shasum_matches_download(self, client: httpx.AsyncClient) -> None:
        """The advertised shasum verifies the downloaded bytes."""
        doc = (await client.get('/pkg-b')).json()
        (entry,) = doc['versions'].values()
        response = await client.get(entry['dist']['tarball'])
        assert hashlib.sha1(response.content).hexdigest() == entry['dist']['shasum']  # noqa: S324

    @pytest.mark.asyncio
    async def test_scoped_archive(self, client: httpx.AsyncClient) -> None:
        """Scoped archives are served by their encoded or plain path."""
        response = await client.get('/@scope%2fpkg-c/-/pkg-c-0.1.0.tgz')
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_unknown_archive_proxied(self, client: httpx.AsyncClient, upstream: Upstream) -> None:
        """Archives of non-workspace packages come from the upstream."""
        response = await client.get('/left-pad/-/left-pad-1.3.0.tgz')
        assert response.status_code == 200
        assert str(upstream.requests[0].url) == 'https://upstream.test/left-pad/-/left-pad-1.3.0.tgz'
