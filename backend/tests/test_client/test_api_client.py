"""
Tests for the Python API client, run against httpx.MockTransport
"""
import httpx
import pytest

from app.client import (
    ApiClient,
    ApiError,
    AuthService,
    TokenStore,
    WarehousesService,
)
from app.client.api_client import NETWORK_ERROR_MESSAGE

BASE_URL = 'http://wareflow.test/api/v1'


def _client(handler, **tokens):
    return ApiClient(BASE_URL, TokenStore(**tokens), transport=httpx.MockTransport(handler))


class TestTokenRefresh:

    def test_401_refreshes_once_and_retries(self):
        # Arrange
        calls = []

        def handler(request):
            calls.append((request.url.path, request.headers.get('Authorization')))
            if request.url.path.endswith('/auth/refresh-token'):
                return httpx.Response(200, json={'status': 'success', 'data': {
                    'accessToken': 'new-access', 'refreshToken': 'new-refresh'
                }})
            if request.headers.get('Authorization') == 'Bearer new-access':
                return httpx.Response(200, json={'status': 'success', 'data': {'id': 1}})
            return httpx.Response(401, json={'status': 'error', 'error': 'Token has expired'})

        client = _client(handler, access_token='old-access', refresh_token='old-refresh')

        # Act
        result = client.get('/warehouses/1')

        # Assert
        assert result['data'] == {'id': 1}
        assert [path for path, _ in calls] == [
            '/api/v1/warehouses/1', '/api/v1/auth/refresh-token', '/api/v1/warehouses/1'
        ]
        assert calls[1][1] is None
        assert calls[2][1] == 'Bearer new-access'
        assert client.tokens.refresh_token == 'new-refresh'

    def test_failed_refresh_clears_session(self):
        def handler(request):
            if request.url.path.endswith('/auth/refresh-token'):
                return httpx.Response(401, json={'status': 'error', 'error': 'Invalid or expired refresh token'})
            return httpx.Response(401, json={'status': 'error', 'error': 'Token has expired'})

        client = _client(handler, access_token='old-access', refresh_token='old-refresh')

        with pytest.raises(ApiError) as exc_info:
            client.get('/orders/')

        assert exc_info.value.status == 401
        assert client.tokens.access_token is None
        assert client.tokens.refresh_token is None

    def test_no_refresh_token_means_no_refresh_call(self):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(401, json={'status': 'error', 'error': 'Authentication required'})

        client = _client(handler)

        with pytest.raises(ApiError):
            client.get('/orders/')

        assert paths == ['/api/v1/orders/']

    def test_second_401_after_refresh_is_not_retried(self):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            if request.url.path.endswith('/auth/refresh-token'):
                return httpx.Response(200, json={'data': {'accessToken': 'new-access'}})
            return httpx.Response(401, json={'status': 'error', 'error': 'Nope'})

        client = _client(handler, access_token='a', refresh_token='r')

        with pytest.raises(ApiError) as exc_info:
            client.get('/orders/')

        assert exc_info.value.status == 401
        assert len(paths) == 3
        assert client.tokens.access_token is None


class TestErrorMapping:

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError('connection refused', request=request)

        with pytest.raises(ApiError) as exc_info:
            _client(handler).get('/warehouses/')

        assert exc_info.value.status == 0
        assert exc_info.value.message == NETWORK_ERROR_MESSAGE

    def test_envelope_message_and_errors(self):
        def handler(request):
            return httpx.Response(400, json={
                'status': 'error',
                'error': 'Validation failed',
                'code': 'VALIDATION_ERROR',
                'errors': [{'field': 'pincode', 'message': 'Invalid pincode'}],
            })

        with pytest.raises(ApiError) as exc_info:
            _client(handler, access_token='a').post('/warehouses/', json={})

        assert exc_info.value.status == 400
        assert exc_info.value.message == 'Validation failed'
        assert exc_info.value.errors[0]['field'] == 'pincode'

    def test_not_found(self):
        def handler(request):
            return httpx.Response(404, json={'status': 'error', 'error': 'Warehouse not found'})

        with pytest.raises(ApiError) as exc_info:
            _client(handler, access_token='a').get('/warehouses/9')

        assert exc_info.value.status == 404
        assert str(exc_info.value) == 'Warehouse not found'

    def test_non_json_error_body(self):
        def handler(request):
            return httpx.Response(502, text='Bad Gateway')

        with pytest.raises(ApiError) as exc_info:
            _client(handler, access_token='a').get('/warehouses/')

        assert exc_info.value.message == 'Request failed with status 502'


class TestServices:

    def test_list_sends_camel_case_sort_and_drops_none(self):
        seen = {}

        def handler(request):
            seen.update(dict(request.url.params))
            return httpx.Response(200, json={
                'status': 'success', 'data': [{'id': 1}], 'count': 1,
                'pagination': {'page': 1, 'limit': 10, 'total': 1, 'total_pages': 1},
            })

        items, pagination = WarehousesService(_client(handler, access_token='a')).list(
            sort_by='name', status='active', city=None
        )

        assert items == [{'id': 1}]
        assert pagination['total'] == 1
        assert seen == {'page': '1', 'limit': '10', 'sortBy': 'name', 'status': 'active'}

    def test_bulk_delete_counts_failures(self):
        def handler(request):
            if request.url.path.endswith('/2'):
                return httpx.Response(404, json={'status': 'error', 'error': 'Warehouse not found'})
            return httpx.Response(200, json={'status': 'success'})

        result = WarehousesService(_client(handler, access_token='a')).bulk_delete([1, 2, 3])

        assert result == {'success': 2, 'failed': 1}

    def test_export_returns_raw_bytes(self):
        def handler(request):
            assert request.url.params['format'] == 'excel'
            return httpx.Response(200, content=b'PK\x03\x04')

        content = WarehousesService(_client(handler, access_token='a')).export('excel')

        assert content.startswith(b'PK')

    def test_login_stores_session(self):
        def handler(request):
            return httpx.Response(200, json={'status': 'success', 'data': {
                'accessToken': 'acc', 'refreshToken': 'ref', 'user': {'id': 4, 'role': 'staff'}
            }})

        client = _client(handler)
        user = AuthService(client).login('staff@wareflow.test', 'Secret123')

        assert user == {'id': 4, 'role': 'staff'}
        assert client.tokens.is_authenticated

    def test_logout_clears_tokens_even_on_failure(self):
        def handler(request):
            return httpx.Response(500, json={'status': 'error', 'error': 'Internal server error'})

        client = _client(handler, access_token='acc', refresh_token='ref', user={'id': 4})
        AuthService(client).logout()

        assert client.tokens.access_token is None
        assert client.tokens.user is None
