"""HTTP client for the Freemind registry server."""

import requests
from loguru import logger

from freemind.config import REQUEST_TIMEOUT, USER_AGENT, AppConfig
from freemind.core.declaration import UTF8, declared_encoding
from freemind.errors import TransportError

XML_CONTENT_TYPE = "text/xml"


class RegistryApi:
    """Talks to the registry server's XML endpoints.

    Every request is a POST carrying the user name and the secret, the latter
    in a header named after the configured auth method.
    """

    def __init__(self, config: AppConfig, *, timeout: float = REQUEST_TIMEOUT) -> None:
        self.config = config
        self.timeout = timeout
        self._sess: requests.Session | None = None

    @property
    def sess(self) -> requests.Session:
        """The HTTP session, created on first use and reused afterwards."""
        if self._sess is None:
            self._sess = requests.Session()
            self._sess.headers["User-Agent"] = USER_AGENT
        return self._sess

    def _headers(self) -> dict[str, str]:
        return {
            "user": self.config.username,
            self.config.auth_method.value: self.config.secret,
            "content-type": XML_CONTENT_TYPE,
        }

    def call(self, endpoint: str, payload: str = "") -> requests.Response:
        """POST ``payload`` to ``endpoint`` on the configured server.

        Raises:
            TransportError: If the request could not be completed.
        """
        url = self.config.server_address.rstrip("/") + endpoint
        logger.debug("Making request: {!r} ({} bytes)", url, len(payload))
        try:
            return self.sess.post(
                url,
                data=payload.encode("utf-8"),
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            msg = f"Request to {url!r} failed: {e}"
            raise TransportError(msg) from e

    @staticmethod
    def _xml_body(response: requests.Response) -> str:
        """Response text if it is XML; anything else counts as an empty document."""
        content_type = response.headers.get("content-type", "")
        if content_type.split(";")[0].strip().lower() != XML_CONTENT_TYPE:
            logger.debug(
                "Ignoring non-XML response (status {}, content-type {!r})",
                response.status_code,
                content_type,
            )
            return ""
        # requests assumes latin-1 for text/* without a charset; XML defaults to utf-8.
        if "charset" not in content_type.lower():
            head = response.content[:256].decode("ascii", errors="replace")
            response.encoding = declared_encoding(head) or UTF8
        return response.text

    def fetch_all(self) -> str:
        return self._xml_body(self.call("/xml/fetch"))

    def fetch_by_id(self, record_id: int) -> str:
        return self._xml_body(self.call(f"/xml/get_by_id/{record_id}"))

    def update(self, document: str) -> int:
        response = self.call("/xml/update", document)
        logger.debug("Upload answered with status {}", response.status_code)
        return response.status_code
