"""
WMAdmin Admin API Forwarder
===========================
Relays one HTTP call to the WireMock Admin API and hands back the raw
status, headers and body bytes.

Bodies are bytes end to end and are never decoded. Upstream 4xx/5xx are
ordinary results; only failures to get a response at all raise
``TransportError``.
"""

from __future__ import annotations

import logging
import re
import urllib.parse
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

import requests
from urllib3.exceptions import HTTPError as Urllib3HTTPError, ReadTimeoutError

from wmadmin.core.errors import ResponseTooLarge, TransportError, UpstreamTimeout

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"
IDENTITY_ENCODING = "identity"
DEFAULT_MAX_RESPONSE_BYTES = 10 * 1024 * 1024
DEFAULT_TIMEOUT = 30.0
CHUNK_SIZE = 64 * 1024

_PLACEHOLDER = re.compile(r"\{[^{}/]+\}")

Body = Union[bytes, bytearray, str]


# ── Data Models ──────────────────────────────────────────────────────────────

@dataclass
class ProxyRequest:
    """One outbound admin call."""
    method: str
    path_template: str
    path_variables: Tuple[Any, ...] = ()
    body: Optional[bytes] = None
    content_type: Optional[str] = None

    @property
    def path(self) -> str:
        return expand_path(self.path_template, *self.path_variables)


@dataclass
class ProxyResponse:
    """Upstream status, header multimap and body, exactly as received."""
    status_code: int
    headers: List[Tuple[str, str]] = field(default_factory=list)
    body: bytes = b""

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value for a header, case-insensitive."""
        lname = name.lower()
        for k, v in self.headers:
            if k.lower() == lname:
                return v
        return default

    def get_all(self, name: str) -> List[str]:
        """Every value for a header, in received order."""
        lname = name.lower()
        return [v for k, v in self.headers if k.lower() == lname]

    @property
    def content_type(self) -> Optional[str]:
        return self.get_header("Content-Type")

    def summary(self) -> str:
        return f"{self.status_code} ({len(self.body)}B, {self.content_type or 'no content-type'})"


# ── Helpers ──────────────────────────────────────────────────────────────────

def expand_path(template: str, *variables: Any) -> str:
    """Substitute ``{name}`` placeholders positionally, encoding each value."""
    placeholders = _PLACEHOLDER.findall(template)
    if len(placeholders) != len(variables):
        raise ValueError(
            f"Path '{template}' expects {len(placeholders)} variable(s), got {len(variables)}"
        )
    values = iter(variables)
    return _PLACEHOLDER.sub(
        lambda _m: urllib.parse.quote(str(next(values)), safe=""), template
    )


def _encode_body(body: Optional[Body]) -> Optional[bytes]:
    if body is None:
        return None
    if isinstance(body, str):
        return body.encode("utf-8")
    return bytes(body)


def _header_pairs(raw: Any) -> List[Tuple[str, str]]:
    """Header lines in received order, keeping duplicates and case.

    urllib3's ``HTTPHeaderDict`` groups repeated names under the first
    spelling, so the lines are read from the parsed ``http.client`` message
    when it is available.
    """
    original = getattr(raw, "_original_response", None)
    if original is not None and original.msg is not None:
        return [(name, value) for name, value in original.msg.items()]
    return [(name, value) for name, value in raw.headers.items()]


# ── Forwarder ────────────────────────────────────────────────────────────────

class AdminForwarder:
    """
    Byte-transparent client for the WireMock Admin API.

    One ``requests.Session`` is shared by every call; calls carry no other
    shared state and may run concurrently.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        max_response_bytes: int = DEFAULT_MAX_RESPONSE_BYTES,
        session: Optional[requests.Session] = None,
    ):
        """
        Args:
            base_url: WireMock root, e.g. ``http://localhost:8080``.
            timeout: Connect/read timeout in seconds.
            max_response_bytes: Ceiling for a buffered response body.
            session: Optional pre-configured session (tests, custom adapters).
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_response_bytes = max_response_bytes
        self._session = session or requests.Session()

    def url_for(self, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return self.base_url + path

    def forward(
        self,
        method: str,
        path_template: str,
        body: Optional[Body] = None,
        *path_variables: Any,
    ) -> ProxyResponse:
        """Send one call to the admin API and return its raw response.

        Args:
            method: HTTP method.
            path_template: Admin path, e.g. ``/__admin/mappings/{id}``.
            body: Raw bytes or a UTF-8 JSON string; ``None`` sends no body.
            *path_variables: Values for the template placeholders, in order.

        Returns:
            ProxyResponse with upstream status, headers and body bytes.

        Raises:
            TransportError: No response could be obtained.
        """
        payload = _encode_body(body)
        request = ProxyRequest(
            method=method.upper(),
            path_template=path_template,
            path_variables=path_variables,
            body=payload,
            content_type=JSON_CONTENT_TYPE if payload is not None else None,
        )
        return self.execute(request)

    def execute(self, request: ProxyRequest) -> ProxyResponse:
        url = self.url_for(request.path)
        headers: Dict[str, str] = {"Accept-Encoding": IDENTITY_ENCODING}
        if request.content_type:
            headers["Content-Type"] = request.content_type

        try:
            resp = self._session.request(
                request.method,
                url,
                data=request.body,
                headers=headers,
                timeout=self.timeout,
                stream=True,
                allow_redirects=False,
            )
        except requests.Timeout as e:
            raise UpstreamTimeout(
                f"WireMock did not answer within {self.timeout}s: {e}",
                method=request.method, url=url,
            ) from e
        except requests.RequestException as e:
            raise TransportError(
                f"Cannot reach WireMock at {url}: {e}", method=request.method, url=url
            ) from e

        try:
            body = self._read_body(resp, request.method, url)
            result = ProxyResponse(
                status_code=resp.status_code,
                headers=_header_pairs(resp.raw),
                body=body,
            )
        finally:
            resp.close()

        logger.debug(f"{request.method} {url} -> {result.summary()}")
        return result

    def _read_body(self, resp: requests.Response, method: str, url: str) -> bytes:
        """Read the undecoded body, enforcing the size ceiling."""
        buf = bytearray()
        try:
            for chunk in resp.raw.stream(CHUNK_SIZE, decode_content=False):
                buf.extend(chunk)
                if len(buf) > self.max_response_bytes:
                    raise ResponseTooLarge(
                        f"WireMock response exceeds {self.max_response_bytes} bytes",
                        method=method, url=url,
                    )
        except ReadTimeoutError as e:
            raise UpstreamTimeout(
                f"Timed out reading WireMock response: {e}", method=method, url=url
            ) from e
        except (Urllib3HTTPError, OSError) as e:
            raise TransportError(
                f"Broken WireMock response from {url}: {e}", method=method, url=url
            ) from e
        return bytes(buf)

    def close(self) -> None:
        self._session.close()
