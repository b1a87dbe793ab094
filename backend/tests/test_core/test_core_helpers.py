"""
Tests for core helpers: JWTs, role checks, pagination, error envelope and rate limiting
"""
import pytest
from datetime import timedelta
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel, Field

from app.core import auth
from app.core.auth import (
    ACCESS_TOKEN,
    REFRESH_TOKEN,
    TokenUser,
    create_access_token,
    create_refresh_token,
    decode_token,
    has_role,
    hash_password,
    hash_token,
    verify_password,
)
from app.core.errors import (
    AuthenticationError,
    InsufficientStock,
    NotFound,
    error_body,
    register_exception_handlers,
)
from app.core.pagination import PaginationParams, paginated, pagination_meta
from app.core.rate_limit import RateLimiter

USER = {'id': 7, 'email': 'ops@wareflow.test', 'first_name': 'Ops', 'last_name': 'Lead', 'role': 'manager'}


class TestTokens:

    def test_access_token_round_trip(self):
        payload = decode_token(create_access_token(USER), ACCESS_TOKEN)

        assert payload['sub'] == '7'
        assert payload['name'] == 'Ops Lead'
        assert payload['role'] == 'manager'
        assert payload['type'] == ACCESS_TOKEN

    def test_refresh_token_rejected_as_access(self):
        with pytest.raises(AuthenticationError, match='Invalid token type'):
            decode_token(create_refresh_token(USER), ACCESS_TOKEN)

    def test_expired_token(self):
        token = auth._create_token(USER, ACCESS_TOKEN, timedelta(seconds=-10))

        with pytest.raises(AuthenticationError, match='Token has expired'):
            decode_token(token, ACCESS_TOKEN)

    def test_tampered_token(self):
        token = create_access_token(USER)

        with pytest.raises(AuthenticationError):
            decode_token(token[:-4] + 'abcd', ACCESS_TOKEN)

    def test_tokens_are_unique(self):
        assert create_refresh_token(USER) != create_refresh_token(USER)

    def test_refresh_type(self):
        assert decode_token(create_refresh_token(USER), REFRESH_TOKEN)['type'] == REFRESH_TOKEN


class TestPasswordsAndRoles:

    def test_password_hash_verifies(self):
        hashed = hash_password('Secret123')

        assert hashed != 'Secret123'
        assert verify_password('Secret123', hashed)
        assert not verify_password('Secret124', hashed)

    def test_verify_without_hash(self):
        assert verify_password('anything', None) is False

    def test_hash_token_is_stable(self):
        assert hash_token('abc') == hash_token('abc')
        assert len(hash_token('abc')) == 64

    @pytest.mark.parametrize('user_role,required,expected', [
        ('admin', 'manager', True),
        ('manager', 'manager', True),
        ('staff', 'manager', False),
        ('viewer', 'staff', False),
        ('unknown', 'viewer', False),
    ])
    def test_has_role(self, user_role, required, expected):
        assert has_role(user_role, required) is expected


class TestPagination:

    def _params(self, **kwargs):
        defaults = {'page': 1, 'limit': 10, 'search': None, 'sort_by': None, 'order': 'desc'}
        defaults.update(kwargs)
        return PaginationParams(**defaults)

    def test_offset(self):
        assert self._params(page=3, limit=20).offset == 40

    def test_blank_search_is_none(self):
        assert self._params(search='   ').search is None

    def test_meta_rounds_pages_up(self):
        assert pagination_meta(21, 1, 10) == {'page': 1, 'limit': 10, 'total': 21, 'total_pages': 3}

    def test_paginated_envelope(self):
        body = paginated([{'id': 1}], 1, self._params(), filters={'status': 'active'})

        assert body['status'] == 'success'
        assert body['count'] == 1
        assert body['pagination']['total_pages'] == 1
        assert body['filters'] == {'status': 'active'}


class Item(BaseModel):
    quantity: int = Field(..., ge=1)


@pytest.fixture
def error_client():
    """Small app exercising every registered handler"""
    app = FastAPI()
    register_exception_handlers(app)

    @app.get('/missing')
    async def missing():
        raise NotFound('Warehouse')

    @app.get('/stock')
    async def stock():
        raise InsufficientStock('Rice', 2, 5)

    @app.post('/items')
    async def items(item: Item):
        return item

    @app.get('/boom')
    async def boom():
        raise RuntimeError('database exploded')

    @app.get('/me')
    async def me(user: TokenUser = Depends(auth.get_current_user)):
        return user

    return TestClient(app, raise_server_exceptions=False)


class TestErrorEnvelope:

    def test_error_body(self):
        assert error_body('Nope', 'X') == {'status': 'error', 'error': 'Nope', 'code': 'X', 'errors': []}

    def test_not_found(self, error_client):
        response = error_client.get('/missing')

        assert response.status_code == 404
        assert response.json() == {
            'status': 'error', 'error': 'Warehouse not found', 'code': 'NOT_FOUND', 'errors': []
        }

    def test_business_rule(self, error_client):
        response = error_client.get('/stock')

        assert response.status_code == 400
        assert response.json()['code'] == 'INSUFFICIENT_STOCK'
        assert response.json()['errors'][0]['field'] == 'items'

    def test_request_validation(self, error_client):
        response = error_client.post('/items', json={'quantity': 0})

        body = response.json()
        assert response.status_code == 400
        assert body['error'] == 'Validation failed'
        assert body['code'] == 'VALIDATION_ERROR'
        assert body['errors'][0]['field'] == 'quantity'

    def test_unhandled_error_hides_details(self, error_client):
        response = error_client.get('/boom')

        assert response.status_code == 500
        assert response.json()['error'] == 'Internal server error'
        assert 'exploded' not in response.text

    def test_unknown_route(self, error_client):
        response = error_client.get('/nowhere')

        assert response.status_code == 404
        assert response.json()['status'] == 'error'

    def test_missing_bearer_token(self, error_client):
        response = error_client.get('/me')

        assert response.status_code == 401
        assert response.json()['code'] == 'AUTHENTICATION_ERROR'
        assert response.headers['WWW-Authenticate'] == 'Bearer'

    def test_valid_bearer_token(self, error_client):
        token = create_access_token(USER)

        response = error_client.get('/me', headers={'Authorization': f'Bearer {token}'})

        assert response.status_code == 200
        assert response.json()['id'] == 7


class TestRateLimiter:

    def test_blocks_after_limit(self):
        limiter = RateLimiter()

        results = [limiter.is_allowed('ip:1.2.3.4', 3, 60) for _ in range(4)]

        assert [r[0] for r in results] == [True, True, True, False]
        assert results[2][1] == 0
        assert results[3][2] >= 1

    def test_identifiers_are_independent(self):
        limiter = RateLimiter()
        limiter.is_allowed('a', 1, 60)

        assert limiter.is_allowed('b', 1, 60)[0] is True

    def test_reset(self):
        limiter = RateLimiter()
        limiter.is_allowed('a', 1, 60)
        limiter.reset()

        assert limiter.is_allowed('a', 1, 60)[0] is True
