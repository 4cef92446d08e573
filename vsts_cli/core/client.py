"""
Core HTTP client for the VSTS REST API.

Handles authentication, request addressing, request/response and error handling.
"""

from __future__ import annotations

import base64
import json
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from vsts_cli.core.logging import get_logger, redact_sensitive

if TYPE_CHECKING:
    from vsts_cli.core.session import Session

logger = get_logger(__name__)

# Configuration
PLATFORM_DOMAIN = "visualstudio.com"
DEFAULT_API_VERSION = "1.0"
DEFAULT_TIMEOUT = 60

SUPPORTED_METHODS = ("GET", "PUT", "POST", "DELETE", "PATCH")
BODY_METHODS = ("PUT", "POST", "PATCH")

QueryParams = Mapping[str, Any] | Iterable[tuple[str, Any]]


class VSTSError(Exception):
    """Base error class for VSTS client errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        result: dict[str, Any] = {"error": self.message}
        if self.details:
            result["details"] = self.details
        return result


class HttpError(VSTSError):
    """Non-success HTTP status returned by the server."""

    def __init__(self, message: str, status: int = 0, body: Any = None, details: dict | None = None):
        super().__init__(message, details)
        self.status = status
        self.body = body

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        result = super().to_dict()
        if self.status:
            result["status"] = self.status
        return result


class AuthenticationError(HttpError):
    """The server rejected the credentials (401/403)."""


class TransportError(VSTSError):
    """Network, DNS, TLS or timeout failure before any HTTP response."""


class ResponseError(VSTSError):
    """A success response whose body could not be parsed."""


class TimeoutExceeded(VSTSError):
    """A polled condition was not observed within the attempt budget."""

    def __init__(self, description: str, attempts: int):
        super().__init__(
            f"Timed out waiting for {description}",
            details={"attempts": attempts},
        )
        self.description = description
        self.attempts = attempts


class NotFound(VSTSError):
    """A lookup by name matched nothing."""


class ValidationError(VSTSError):
    """Validation error for local input/data issues (not API errors)."""


# =============================================================================
# Authorization and addressing
# =============================================================================


def authorize(user: str, token: str) -> str:
    """Build a Basic ``Authorization`` header value from a user/token pair."""
    raw = f"{user}:{token}".encode("ascii")
    return "Basic " + base64.b64encode(raw).decode("ascii")


def merge_query(query: QueryParams | None, api_version: str) -> list[tuple[str, str]]:
    """
    Merge caller query parameters with the API version.

    Keys are applied in order with last-write-wins semantics. ``None`` values
    are dropped. ``api-version`` is always the final pair and always carries
    ``api_version``, whatever the caller supplied for it.
    """
    merged: dict[str, str] = {}
    if query is not None:
        items = query.items() if isinstance(query, Mapping) else query
        for key, value in items:
            if value is not None:
                merged[key] = str(value)
    merged.pop("api-version", None)
    merged["api-version"] = api_version
    return list(merged.items())


def build_uri(
    session: Session,
    path: str,
    project: str | None = None,
    query: QueryParams | None = None,
    api_version: str = DEFAULT_API_VERSION,
) -> str:
    """
    Build the absolute request URI for a resource path.

    Args:
        session: Connection/auth context
        path: Resource path below ``_apis`` (e.g. ``git/repositories``)
        project: Optional project name or id to scope the request
        query: Optional query parameters (mapping or ordered pairs)
        api_version: Value for the ``api-version`` query parameter

    Returns:
        Absolute URI string

    """
    # Account-qualified hosts always live on the hosted domain; server only
    # applies when no account is set.
    if session.account_name:
        host = f"{session.account_name}.{PLATFORM_DOMAIN}"
    else:
        host = session.server

    path = path.strip("/")
    if project:
        segments = [session.collection, project, "_apis", path]
    else:
        segments = [session.collection, "_apis", path]
    full_path = "/" + "/".join(urllib.parse.quote(s, safe="/$") for s in segments)

    query_string = urllib.parse.urlencode(merge_query(query, api_version))
    return urllib.parse.urlunsplit((session.scheme.value, host, full_path, query_string, ""))


def content_type_for(method: str) -> str:
    """Content type sent for a verb."""
    if method == "PATCH":
        return "application/json-patch+json"
    return "application/json"


def _encode_body(body: Any) -> bytes:
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    return json.dumps(body).encode("utf-8")


def _http_error(e: urllib.error.HTTPError) -> HttpError:
    raw = e.read().decode("utf-8", errors="replace")
    try:
        body: Any = json.loads(raw) if raw else None
    except json.JSONDecodeError:
        body = raw

    message = str(e)
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        message = body["message"]

    details = body if isinstance(body, dict) else {}
    error_class = AuthenticationError if e.code in (401, 403) else HttpError
    return error_class(message, status=e.code, body=body, details=details)


# =============================================================================
# Endpoint invocation
# =============================================================================


def invoke(
    session: Session,
    path: str,
    project: str | None = None,
    query: QueryParams | None = None,
    api_version: str = DEFAULT_API_VERSION,
    method: str = "GET",
    body: Any = None,
    timeout: float | None = None,
) -> Any:
    """
    Make one authenticated request against a VSTS endpoint.

    Args:
        session: Connection/auth context
        path: Resource path below ``_apis``
        project: Optional project scope
        query: Optional query parameters
        api_version: API version for the endpoint
        method: HTTP method (GET, PUT, POST, DELETE, PATCH)
        body: Request body for PUT/POST/PATCH; str/bytes are sent as-is,
            anything else is JSON-encoded. Ignored for GET/DELETE.
        timeout: Request timeout in seconds

    Returns:
        Parsed JSON response, or None for an empty response body

    Raises:
        AuthenticationError: On 401/403
        HttpError: On any other non-2xx status
        TransportError: On connection-level failures
        ResponseError: On an unparseable response body

    """
    method = method.upper()
    if method not in SUPPORTED_METHODS:
        raise ValidationError(f"Unsupported method: {method}", details={"supported": list(SUPPORTED_METHODS)})

    uri = build_uri(session, path, project=project, query=query, api_version=api_version)
    headers = {
        "Authorization": authorize(session.user, session.token),
        "Content-Type": content_type_for(method),
        "Accept": "application/json",
    }
    data = _encode_body(body) if method in BODY_METHODS and body is not None else None
    request_timeout = timeout or DEFAULT_TIMEOUT

    logger.debug(f"Invoke URI [{uri}]")
    logger.debug(f"{method} headers: {redact_sensitive(headers)}")

    try:
        req = urllib.request.Request(uri, data=data, headers=headers, method=method)
        with urllib.request.urlopen(req, timeout=request_timeout) as response:
            raw_response = response.read()

    except urllib.error.HTTPError as e:
        error = _http_error(e)
        logger.debug(f"{method} {uri} failed with status {error.status}")
        raise error from e

    except urllib.error.URLError as e:
        raise TransportError(f"Connection error: {e.reason}", details={"uri": uri}) from e

    except TimeoutError as e:
        raise TransportError(f"Request timed out after {request_timeout} seconds", details={"uri": uri}) from e

    except OSError as e:
        raise TransportError(f"Connection error: {e}", details={"uri": uri}) from e

    if not raw_response:
        return None
    try:
        return json.loads(raw_response.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ResponseError(f"Invalid JSON response: {e}", details={"uri": uri}) from e


class EndpointInvoker:
    """
    Session-bound endpoint invoker.

    Operation groups hold one of these instead of passing the session around.
    """

    def __init__(self, session: Session, timeout: float = DEFAULT_TIMEOUT):
        self.session = session
        self.timeout = timeout

    def __call__(
        self,
        path: str,
        project: str | None = None,
        query: QueryParams | None = None,
        api_version: str = DEFAULT_API_VERSION,
        method: str = "GET",
        body: Any = None,
    ) -> Any:
        return invoke(
            self.session,
            path,
            project=project,
            query=query,
            api_version=api_version,
            method=method,
            body=body,
            timeout=self.timeout,
        )
