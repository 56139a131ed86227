"""
Client library entry point for the Electric Imp impCentral API (v5).

Every request is made synchronously; methods return the decoded HTTP
response body or raise:
- InvalidDataError when the library detects a problem itself (missing
  access token, invalid arguments, unknown LogStream id)
- ImpCentralApiError when the server rejects a request; see its
  status_code and body attributes
"""

import logging
from typing import Optional

from impcentral.api.resource_client import ResourceClient
from impcentral.core.log_streams import LogStreams
from impcentral.utils.config import Config

logger = logging.getLogger(__name__)

LIBRARY_LOGGER = "impcentral"


class ImpCentralApi:
    """Wires the resource client and the LogStreams together."""

    def __init__(self, api_endpoint: Optional[str] = None,
                 access_token: Optional[str] = None,
                 config: Optional[Config] = None):
        """
        Args:
            api_endpoint: impCentral API endpoint, the configured one if None
            access_token: Bearer token used for every request
            config: Library configuration, defaults to the user's config file
        """
        self.config = config or Config()

        self._resource_client = ResourceClient(
            api_endpoint=api_endpoint or self.config.api_endpoint,
            access_token=access_token,
            timeout=self.config.get("api.timeout", 30)
        )
        self._log_streams = LogStreams(
            self._resource_client,
            open_timeout=self.config.get("logstreams.open_timeout"),
            reconnect_delay=self.config.get("logstreams.reconnect_delay", 1.0),
            max_reconnect_delay=self.config.get("logstreams.max_reconnect_delay", 30.0)
        )

        self.debug = bool(self.config.get("api.debug", False))

    @property
    def log_streams(self) -> LogStreams:
        """Access to the LogStreams API methods."""
        return self._log_streams

    @property
    def resource_client(self) -> ResourceClient:
        return self._resource_client

    @property
    def api_endpoint(self) -> str:
        return self._resource_client.api_endpoint

    @property
    def access_token(self) -> Optional[str]:
        return self._resource_client.access_token

    @access_token.setter
    def access_token(self, access_token: str):
        self._resource_client.access_token = access_token

    @property
    def debug(self) -> bool:
        return self._debug

    @debug.setter
    def debug(self, value: bool):
        """Enable/disable the library debug output, including request tracing."""
        self._debug = value
        library_logger = logging.getLogger(LIBRARY_LOGGER)
        if value:
            library_logger.setLevel(logging.DEBUG)
            if not library_logger.handlers:
                handler = logging.StreamHandler()
                handler.setFormatter(logging.Formatter(
                    "%(asctime)s %(name)s %(levelname)s: %(message)s"))
                library_logger.addHandler(handler)
        else:
            library_logger.setLevel(logging.NOTSET)

    def close(self):
        """Close all LogStreams and the HTTP session."""
        self._log_streams.close_all()
        self._resource_client.close()
