"""
HTTP client for the WareFlow API

Wraps httpx with bearer authentication and a single transparent token
refresh: a 401 triggers one POST /auth/refresh-token and one retry of the
original request. Anything else surfaces as ApiError.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

NETWORK_ERROR_MESSAGE = "Network error - please check your connection"
REFRESH_PATH = "/auth/refresh-token"


class ApiError(Exception):
    """Failed API call; status 0 means the request never got a response"""

    def __init__(self, status: int, message: str, errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.status = status
        self.message = message
        self.errors = errors or []

    def __repr__(self):
        return f"ApiError(status={self.status}, message={self.message!r})"


class TokenStore:
    """In-memory holder for the current session"""

    def __init__(self, access_token: Optional[str] = None, refresh_token: Optional[str] = None,
                 user: Optional[Dict[str, Any]] = None):
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.user = user

    def set_tokens(self, access_token: str, refresh_token: Optional[str] = None):
        self.access_token = access_token
        if refresh_token:
            self.refresh_token = refresh_token

    def clear(self):
        self.access_token = None
        self.refresh_token = None
        self.user = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.access_token)


def unwrap(payload: Dict[str, Any]) -> Any:
    """Return the `data` member of a success envelope (or the payload itself)"""
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


class ApiClient:
    """
    Synchronous API client.

    Usage:
        client = ApiClient("http://localhost:8000/api/v1", TokenStore())
        client.post("/auth/login", json={"email": ..., "password": ...})
        warehouses = client.get("/warehouses", params={"page": 1})
    """

    def __init__(
        self,
        base_url: str,
        token_store: Optional[TokenStore] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.tokens = token_store or TokenStore()
        self._http = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"}
        )

    def close(self):
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # =========================================================================
    # Verbs
    # =========================================================================

    def get(self, path: str, params: Optional[Dict] = None) -> Any:
        return self.request("GET", path, params=params)

    def post(self, path: str, json: Optional[Any] = None) -> Any:
        return self.request("POST", path, json=json)

    def put(self, path: str, json: Optional[Any] = None) -> Any:
        return self.request("PUT", path, json=json)

    def patch(self, path: str, json: Optional[Any] = None) -> Any:
        return self.request("PATCH", path, json=json)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    def download(self, path: str, params: Optional[Dict] = None) -> bytes:
        """GET a file (export endpoints); returns the raw body"""
        response = self._send("GET", path, params=params)
        return response.content

    # =========================================================================
    # Core
    # =========================================================================

    def request(self, method: str, path: str, params: Optional[Dict] = None, json: Optional[Any] = None) -> Any:
        response = self._send(method, path, params=params, json=json)
        if not response.content:
            return None
        return response.json()

    def _send(self, method: str, path: str, params: Optional[Dict] = None, json: Optional[Any] = None) -> httpx.Response:
        response = self._raw(method, path, params=params, json=json)

        if response.status_code == 401 and not path.startswith(REFRESH_PATH):
            logger.warning("Access token rejected, attempting refresh...")
            if self.refresh_session():
                # Retry exactly once with the new token
                response = self._raw(method, path, params=params, json=json)
                if response.status_code == 401:
                    self.tokens.clear()
            else:
                self.tokens.clear()
                raise ApiError(401, self._message(response, "Session expired - please log in again"),
                               self._errors(response))

        if response.is_error:
            self._raise_for(response)

        return response

    def _raw(self, method: str, path: str, params: Optional[Dict] = None, json: Optional[Any] = None,
             authenticated: bool = True) -> httpx.Response:
        headers = {}
        if authenticated and self.tokens.access_token:
            headers["Authorization"] = f"Bearer {self.tokens.access_token}"

        try:
            return self._http.request(method, path, params=params, json=json, headers=headers)
        except httpx.TransportError as e:
            logger.error(f"API request error: {method} {path}: {e}")
            raise ApiError(0, NETWORK_ERROR_MESSAGE)

    def refresh_session(self) -> bool:
        """
        Exchange the stored refresh token for a new pair.

        Returns:
            True if new tokens were stored, False otherwise
        """
        if not self.tokens.refresh_token:
            logger.error("No refresh token available")
            return False

        try:
            response = self._raw(
                "POST", REFRESH_PATH,
                json={"refreshToken": self.tokens.refresh_token},
                authenticated=False
            )
        except ApiError:
            return False

        if response.status_code != 200:
            logger.warning(f"Token refresh failed: {response.status_code}")
            return False

        data = unwrap(response.json()) or {}
        if not data.get("accessToken"):
            return False

        self.tokens.set_tokens(data["accessToken"], data.get("refreshToken"))
        if data.get("user"):
            self.tokens.user = data["user"]
        logger.info("Access token refreshed")
        return True

    # =========================================================================
    # Error mapping
    # =========================================================================

    @staticmethod
    def _body(response: httpx.Response) -> Dict:
        try:
            body = response.json()
            return body if isinstance(body, dict) else {}
        except ValueError:
            return {}

    def _message(self, response: httpx.Response, default: str) -> str:
        body = self._body(response)
        message = body.get("error") or body.get("message") or body.get("detail")
        return message if isinstance(message, str) and message else default

    def _errors(self, response: httpx.Response) -> List[Dict[str, str]]:
        errors = self._body(response).get("errors")
        return errors if isinstance(errors, list) else []

    def _raise_for(self, response: httpx.Response):
        status = response.status_code
        message = self._message(response, f"Request failed with status {status}")

        if status == 403:
            logger.error(f"Access forbidden: {message}")
        elif status == 404:
            logger.error(f"Resource not found: {response.request.url.path}")
        elif status >= 500:
            logger.error(f"Server error {status}: {message}")

        raise ApiError(status, message, self._errors(response))
