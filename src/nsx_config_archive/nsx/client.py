"""NSX Manager REST client.

NSX for vSphere answers its management API in XML. The connection is a
thin wrapper around ``httpx.Client`` with basic auth; every fetch takes the
connection as an explicit argument, there is no module-level session.
"""
import logging
from typing import Optional

import httpx
from lxml import etree

from ..config.settings import ManagerConfig
from ..utils.connection import with_retry
from ..utils.logging_config import timed

logger = logging.getLogger(__name__)

# Cheap authenticated endpoint used to prove the session works
SESSION_CHECK_PATH = "/api/1.0/appliance-management/global/info"

_PARSER = etree.XMLParser(remove_blank_text=True, resolve_entities=False)


class NsxConnection:
    """Authenticated session handle to one NSX Manager."""

    def __init__(self, config: ManagerConfig, transport: Optional[httpx.BaseTransport] = None):
        self.config = config
        self.host = config.host
        self._transport = transport
        self._client: Optional[httpx.Client] = None
        self._connected = False

    @property
    def base_url(self) -> str:
        if self.host.startswith(("http://", "https://")):
            return self.host.rstrip("/")
        return f"https://{self.host}"

    def _ensure_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                auth=(self.config.username, self.config.get_password()),
                verify=self.config.verify_ssl,
                timeout=httpx.Timeout(self.config.timeout),
                headers={"Accept": "application/xml"},
                transport=self._transport,
            )
        return self._client

    @timed("connect")
    @with_retry(max_attempts=3, min_wait=1, max_wait=10)
    def connect(self) -> bool:
        """Open the HTTP session and verify the credentials."""
        logger.info(f"Connecting to NSX Manager at {self.base_url}")
        client = self._ensure_client()
        response = client.get(SESSION_CHECK_PATH)
        if response.status_code in (401, 403):
            raise NsxApiError(
                f"Authentication to {self.host} failed as {self.config.username}",
                status_code=response.status_code,
                path=SESSION_CHECK_PATH,
            )
        _check_response(response, SESSION_CHECK_PATH)

        self._connected = True
        logger.info(f"Connected to NSX Manager {self.host}")
        return True

    def is_active(self) -> bool:
        """True when connect() succeeded and the session is still open."""
        return self._connected and self._client is not None and not self._client.is_closed

    def get_xml(self, path: str, params: Optional[dict] = None) -> etree._Element:
        """GET an API path and parse the XML body.

        Raises:
            NsxApiError: Not connected, HTTP error status, or unparsable body
        """
        if not self.is_active():
            raise NsxApiError(f"No active session to {self.host}", path=path)

        logger.debug(f"GET {path} params={params}")
        response = self._client.get(path, params=params)
        _check_response(response, path)

        try:
            return etree.fromstring(response.content, parser=_PARSER)
        except etree.XMLSyntaxError as e:
            raise NsxApiError(f"Invalid XML from {path}: {e}", path=path) from e

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
        self._client = None
        self._connected = False

    def __enter__(self) -> "NsxConnection":
        self.connect()
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "active" if self.is_active() else "closed"
        return f"NsxConnection({self.host}, {state})"


def _check_response(response: httpx.Response, path: str) -> None:
    if response.status_code >= 400:
        body = response.text[:200].strip()
        raise NsxApiError(
            f"GET {path} returned HTTP {response.status_code}: {body}",
            status_code=response.status_code,
            path=path,
        )


class NsxApiError(Exception):
    """Exception raised for failed NSX Manager API calls."""

    def __init__(self, message: str, status_code: Optional[int] = None, path: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.path = path
