"""Small REST helper for the restaurant backend used by the project.

This module provides a thin client over ``requests`` for the backend API and a
fan-out helper for pages that need several independent resources at once. It
keeps network calls out of import time: nothing talks to the backend until a
view explicitly asks for a client and calls it.

Settings / environment expected:
- BACKEND_API_URL (e.g. http://localhost:8000/api)
- BACKEND_API_TIMEOUT (seconds per request)
- BACKEND_FANOUT_TIMEOUT (seconds for a whole fan-out group)
"""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, Optional

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

SESSION_TOKEN_KEY = "backend_token"


class BackendError(Exception):
    """Raised when the backend could not be reached at all."""

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}


def extract_error_message(payload, default="Request failed"):
    """Best-effort extraction of a human message from an error body."""
    if isinstance(payload, dict):
        for key in ("message", "error", "detail"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
            if isinstance(value, dict) and value.get("message"):
                return str(value["message"])
    if isinstance(payload, str) and payload.strip():
        return payload.strip()
    return default


class ApiResponse:
    """Response-like wrapper mirroring ``{ok, status, json()}``."""

    def __init__(self, status_code: int, payload: Any = None, text: str = "", cookies=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text
        self.cookies = cookies or {}

    @classmethod
    def from_requests(cls, response: requests.Response) -> "ApiResponse":
        try:
            payload = response.json()
        except ValueError:
            payload = None
        return cls(
            status_code=response.status_code,
            payload=payload,
            text=response.text,
            cookies=response.cookies.get_dict(),
        )

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        """Return the decoded body; non-JSON bodies decode to an empty dict."""
        return self._payload if self._payload is not None else {}

    def error_message(self, default="Request failed") -> str:
        return extract_error_message(self._payload if self._payload is not None else self.text, default)

    def __repr__(self):
        return f"<ApiResponse {self.status_code}>"


class BackendClient:
    """Generic CRUD operations against the backend API."""

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: Optional[float] = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout if timeout is not None else settings.BACKEND_API_TIMEOUT
        self.headers = {"Content-Type": "application/json", "Accept": "application/json"}
        self.cookies = {}
        if token:
            self.headers["Authorization"] = f"Bearer {token}"
            self.cookies["token"] = token

    def _url(self, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.base_url}{path}"

    def request(self, method: str, path: str, params=None, data=None, files=None) -> ApiResponse:
        url = self._url(path)
        headers = self.headers
        if files:
            # requests writes the multipart Content-Type with its boundary
            headers = {k: v for k, v in headers.items() if k != "Content-Type"}
        if params:
            # Drop empty filters so the backend applies its own defaults
            params = {k: v for k, v in params.items() if v not in (None, "")}
        try:
            # One standalone request per call; a client may be shared by fan-out threads
            response = requests.request(
                method,
                url,
                params=params or None,
                json=data,
                files=files,
                headers=headers,
                cookies=self.cookies,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Backend {method} {path} failed: {e}")
            raise BackendError(f"Could not reach the backend ({method} {path})") from e

        api_response = ApiResponse.from_requests(response)
        if not api_response.ok:
            logger.warning(f"Backend {method} {path} returned {api_response.status_code}")
        return api_response

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> ApiResponse:
        return self.request("GET", path, params=params)

    def post(self, path: str, data: Any = None) -> ApiResponse:
        return self.request("POST", path, data=data)

    def put(self, path: str, data: Any = None) -> ApiResponse:
        return self.request("PUT", path, data=data)

    def patch(self, path: str, data: Any = None) -> ApiResponse:
        return self.request("PATCH", path, data=data)

    def upload(self, path: str, files: Dict[str, Any]) -> ApiResponse:
        """POST a multipart form, e.g. ``{"image": (name, fileobj, content_type)}``."""
        return self.request("POST", path, files=files)

    def delete(self, path: str) -> ApiResponse:
        return self.request("DELETE", path)


def payload_list(response: Optional[ApiResponse], key: Optional[str] = None) -> list:
    """List held under ``key`` in a response body (or the body itself when it is a list).

    A missing or failed response yields ``[]`` so pages can render an empty state.
    """
    if response is None or not response.ok:
        return []
    payload = response.json()
    if isinstance(payload, list):
        return payload
    if key and isinstance(payload, dict):
        value = payload.get(key)
        if value is None and isinstance(payload.get("data"), dict):
            value = payload["data"].get(key)
        return value if isinstance(value, list) else []
    return []


def payload_dict(response: Optional[ApiResponse]) -> dict:
    """Body of a successful response when it is a JSON object, otherwise ``{}``."""
    if response is None or not response.ok:
        return {}
    payload = response.json()
    return payload if isinstance(payload, dict) else {}


def get_anon_client() -> BackendClient:
    """Return a client without credentials (login / register)."""
    return BackendClient(settings.BACKEND_API_URL)


def get_backend_client(request=None, token=None) -> BackendClient:
    """Return a client carrying the session's backend token (or ``token``) when there is one."""
    if token is None and request is not None:
        token = request.session.get(SESSION_TOKEN_KEY)
    return BackendClient(settings.BACKEND_API_URL, token=token)


def fetch_all(calls: Dict[str, Callable[[], ApiResponse]], timeout: Optional[float] = None) -> Dict[str, Optional[ApiResponse]]:
    """Run independent backend calls concurrently and wait for all of them.

    ``calls`` maps a name to a zero-argument callable. The result maps the same
    names to the ``ApiResponse`` or ``None`` when the call raised or did not
    finish before ``timeout``. Late results are discarded, never merged.
    """
    if not calls:
        return {}
    timeout = timeout if timeout is not None else settings.BACKEND_FANOUT_TIMEOUT
    results: Dict[str, Optional[ApiResponse]] = {name: None for name in calls}

    executor = ThreadPoolExecutor(max_workers=len(calls))
    try:
        futures = {executor.submit(fn): name for name, fn in calls.items()}
        done, not_done = wait(futures, timeout=timeout)

        for future in not_done:
            future.cancel()
            logger.warning(f"Backend call '{futures[future]}' timed out after {timeout}s; result ignored")

        for future in done:
            name = futures[future]
            try:
                results[name] = future.result()
            except Exception as e:
                logger.error(f"Backend call '{name}' failed: {e}", exc_info=True)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    return results


__all__ = [
    "ApiResponse",
    "BackendClient",
    "BackendError",
    "SESSION_TOKEN_KEY",
    "extract_error_message",
    "fetch_all",
    "get_anon_client",
    "get_backend_client",
    "payload_dict",
    "payload_list",
]
