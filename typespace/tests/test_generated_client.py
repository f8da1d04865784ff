"""Tests for the generated client against a mocked transport."""

import asyncio
import json

import httpx
import pytest

from .fixtures import REGION_SPEC, generate_package

DISK = {'id': 'b7c1', 'name': 'data', 'size': 1024, 'state': 'attached'}


@pytest.fixture(scope='module')
def package(tmp_path_factory):
    """Fixture providing the generated region client package."""
    return generate_package(REGION_SPEC, tmp_path_factory.mktemp('client'))


def _client(package, handler, **kwargs):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url='http://region.test')
    return package.Client(http_client=http, **kwargs)


def _run(coroutine):
    return asyncio.run(coroutine)


class TestRequests:
    """Tests for the requests sent by resource methods."""

    def test_view(self, package):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=DISK)

        async def call():
            async with _client(package, handler) as client:
                return await client.disks.disk_view('data')

        disk = _run(call())
        assert isinstance(disk, package.types.Disk)
        assert disk.name == 'data'
        assert disk.state is package.types.DiskState.ATTACHED
        assert seen[0].method == 'GET'
        assert seen[0].url.path == '/v1/disks/data'

    def test_path_parameters_encoded(self, package):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=DISK)

        async def call():
            async with _client(package, handler) as client:
                await client.disks.disk_view('a/b')

        _run(call())
        assert seen[0].url.raw_path == b'/v1/disks/a%2Fb'

    def test_query_parameters(self, package):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={'items': [DISK], 'next_page': None})

        async def call():
            async with _client(package, handler) as client:
                return await client.disks.disk_list(project='web', limit=10)

        page = _run(call())
        assert [disk.name for disk in page.items] == ['data']
        assert dict(seen[0].url.params) == {'project': 'web', 'limit': '10'}

    def test_body_serialized(self, package):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(json.loads(request.content))
            return httpx.Response(201, json={'id': 'i1', 'name': 'web'})

        async def call():
            async with _client(package, handler) as client:
                body = package.types.InstanceCreateRequest(name='web')
                return await client.instances.instance_create(body)

        result = _run(call())
        assert seen == [{'name': 'web'}]
        assert result.name == 'web'

    def test_no_content(self, package):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == 'DELETE'
            return httpx.Response(204)

        async def call():
            async with _client(package, handler) as client:
                return await client.disks.disk_delete('data')

        assert _run(call()) is None

    def test_token_header(self, package):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=DISK)

        async def call():
            async with _client(package, handler, token='secret') as client:
                await client.disks.disk_view('data')

        _run(call())
        assert seen[0].headers['Authorization'] == 'Bearer secret'


class TestPagination:
    """Tests for page iterators."""

    def test_follows_next_page(self, package):
        pages = {
            None: {'items': [DISK], 'next_page': 'token-2'},
            'token-2': {'items': [dict(DISK, name='logs')], 'next_page': None},
        }
        tokens = []

        def handler(request: httpx.Request) -> httpx.Response:
            token = request.url.params.get('page_token')
            tokens.append(token)
            return httpx.Response(200, json=pages[token])

        async def call():
            async with _client(package, handler) as client:
                return [disk.name async for disk in client.disks.disk_list_all(project='web')]

        assert _run(call()) == ['data', 'logs']
        assert tokens == [None, 'token-2']


class TestErrors:
    """Tests for error responses."""

    def test_api_error(self, package):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                404,
                json={'message': 'not found', 'error_code': 'ObjectNotFound', 'request_id': 'r1'},
            )

        async def call():
            async with _client(package, handler) as client:
                await client.disks.disk_view('missing')

        with pytest.raises(package.ApiError) as exc_info:
            _run(call())

        error = exc_info.value
        assert error.status_code == 404
        assert error.error_code == 'ObjectNotFound'
        assert error.request_id == 'r1'
        assert not error.retryable
        assert str(error) == 'HTTP 404 [ObjectNotFound] not found (request id r1)'

    def test_text_error_body(self, package):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text='overloaded')

        async def call():
            async with _client(package, handler) as client:
                await client.disks.disk_view('data')

        with pytest.raises(package.ApiError) as exc_info:
            _run(call())
        assert exc_info.value.retryable
        assert exc_info.value.body == 'overloaded'


class TestConfiguration:
    """Tests for client construction."""

    def test_host_required(self, package, monkeypatch):
        monkeypatch.delenv('API_HOST', raising=False)
        with pytest.raises(ValueError, match='API_HOST'):
            package.Client()

    def test_host_from_environment(self, package, monkeypatch):
        monkeypatch.setenv('API_HOST', 'http://env.test/')
        monkeypatch.setenv('API_TOKEN', 'from-env')
        client = package.Client()
        assert client._http.base_url.host == 'env.test'
        assert client._headers['Authorization'] == 'Bearer from-env'
        _run(client.aclose())

    def test_resources_exposed(self, package):
        assert package.Client.env_prefix == 'API'
        assert {'Disks', 'Instances', 'Vpcs'} <= set(package.__all__)
