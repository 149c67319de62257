# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
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

"""
Small JSON-over-HTTP helper shared by the registry, platform and GitHub clients,
plus the single place where HTTP failures are classified.
"""
import json
import logging
import socket
from typing import Any, Dict, Optional
from dataclasses import dataclass, field
from urllib.request import urlopen, Request
from urllib.error import HTTPError, URLError

from ..MODELS.errors import NotFoundError, RemoteApiError, TransientApiError

logger = logging.getLogger(__name__)

TRANSIENT_STATUSES = {408, 429, 500, 502, 503, 504}


@dataclass
class HttpResponse:
    """Status, body and headers of a completed request."""

    status: int
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)

    def json(self) -> Any:
        if not self.body:
            return {}
        return json.loads(self.body.decode())


def send_request(
    method: str,
    url: str,
    headers: Optional[Dict[str, str]] = None,
    payload: Optional[Any] = None,
    timeout: float = 60,
) -> HttpResponse:
    """
    Send a request, encoding payload as JSON when given.

    HTTPError and URLError propagate unchanged; use classify_error to map them.
    """
    data = None
    request_headers = dict(headers or {})
    if payload is not None:
        data = json.dumps(payload).encode()
        request_headers.setdefault("Content-Type", "application/json")

    request = Request(url, data=data, method=method, headers=request_headers)
    logger.debug("%s %s", method, url)
    with urlopen(request, timeout=timeout) as response:
        return HttpResponse(
            status=response.status,
            body=response.read(),
            headers=dict(response.headers),
        )


def _error_detail(error: HTTPError) -> str:
    try:
        body = error.read().decode(errors="replace")
    except (OSError, ValueError):
        return error.reason or ""
    try:
        # Google APIs wrap errors as {"error": {"message": ...}}
        parsed = json.loads(body)
        if isinstance(parsed, dict) and isinstance(parsed.get("error"), dict):
            return parsed["error"].get("message") or body
        if isinstance(parsed, dict) and parsed.get("message"):
            return parsed["message"]
    except ValueError:
        pass
    return body.strip() or str(error.reason or "")


def classify_error(error: Exception, action: str) -> RemoteApiError:
    """
    Map a transport failure to NotFoundError, TransientApiError or RemoteApiError.

    Args:
        error: The exception raised by send_request.
        action: Short description of what was attempted, used in the message.
    """
    if isinstance(error, HTTPError):
        detail = _error_detail(error)
        message = f"{action} failed with HTTP {error.code}"
        if detail:
            message = f"{message}: {detail}"
        if error.code == 404:
            return NotFoundError(message, status=404)
        if error.code in TRANSIENT_STATUSES:
            return TransientApiError(message, status=error.code)
        return RemoteApiError(message, status=error.code)
    if isinstance(error, (URLError, socket.timeout, ConnectionError)):
        return TransientApiError(f"{action} failed: {error}")
    return RemoteApiError(f"{action} failed: {error}")


def send_authorized(
    method: str,
    url: str,
    auth=None,
    action: Optional[str] = None,
    payload: Optional[Any] = None,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 60,
) -> HttpResponse:
    """
    Send a request with a bearer token and classify any failure.

    A 401 forces one token refresh and a single retry.

    Args:
        auth: Object with an authorization_header(force_refresh) method, or None.
        action: Description used in error messages; defaults to "METHOD url".

    Raises:
        RemoteApiError: NotFoundError, TransientApiError or RemoteApiError.
    """
    action = action or f"{method} {url}"

    def _attempt(force_refresh: bool) -> HttpResponse:
        request_headers = dict(headers or {})
        if auth is not None:
            request_headers.update(auth.authorization_header(force_refresh))
        return send_request(method, url, request_headers, payload, timeout)

    try:
        try:
            return _attempt(False)
        except HTTPError as e:
            if e.code != 401 or auth is None:
                raise
            # Token might have expired
            logger.debug("%s returned 401, refreshing token", url)
            return _attempt(True)
    except (URLError, OSError) as e:
        raise classify_error(e, action) from e
