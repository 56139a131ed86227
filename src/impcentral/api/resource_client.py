"""
Resource client for the impCentral API.

All impCentral resources speak JSON:API over HTTPS and authenticate with a
bearer token. This client performs the requests, builds pagination queries
and turns non-2xx responses into ImpCentralApiError.
"""

import json
import requests
from typing import Dict, Optional, Any
import logging

from impcentral.errors import ImpCentralApiError, InvalidDataError
from impcentral.utils.params_checker import validate_pagination

logger = logging.getLogger(__name__)

API_ENDPOINT_DEFAULT = "https://api.electricimp.com/v5"
PAGE_SIZE_DEFAULT = 20
PAGE_NUMBER_DEFAULT = 1


class ResourceClient:
    """Client for authenticated impCentral API requests."""

    def __init__(self, api_endpoint: Optional[str] = None,
                 access_token: Optional[str] = None, timeout: float = 30,
                 session: Optional[requests.Session] = None):
        self.api_endpoint = (api_endpoint or API_ENDPOINT_DEFAULT).rstrip("/")
        self.timeout = timeout
        self._access_token = access_token
        self.session = session or requests.Session()

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    @access_token.setter
    def access_token(self, access_token: Optional[str]):
        # An empty token never replaces a valid one
        if access_token:
            self._access_token = access_token

    def url_for(self, path: str) -> str:
        """Get the fully qualified URL of an API path."""
        return f"{self.api_endpoint}{path}"

    @staticmethod
    def get_pagination_query(page_number: Optional[int] = None,
                             page_size: Optional[int] = None) -> Optional[Dict[str, int]]:
        """
        Build the JSON:API pagination query.

        Returns None when neither value is given, so the server applies its
        own defaults.
        """
        validate_pagination(page_number, page_size)
        if page_number or page_size:
            return {
                "page[number]": page_number or PAGE_NUMBER_DEFAULT,
                "page[size]": page_size or PAGE_SIZE_DEFAULT,
            }
        return None

    def request(self, method: str, path: str, params: Optional[Dict] = None,
                body: Optional[Any] = None,
                headers: Optional[Dict[str, str]] = None) -> Dict:
        """
        Make an authenticated API request.

        Returns:
            Decoded response body, {} for empty responses

        Raises:
            InvalidDataError: no access token, or the request could not be sent
            ImpCentralApiError: the server answered with a non-2xx status
        """
        if not self._access_token:
            raise InvalidDataError("Library initialization failed: access_token is not set")

        request_headers = {
            "Content-Type": "application/vnd.api+json",
            "Authorization": f"Bearer {self._access_token}",
        }
        if headers:
            request_headers.update(headers)

        method = method.upper()
        url = self.url_for(path)

        if logger.isEnabledFor(logging.DEBUG):
            debug_headers = dict(request_headers, Authorization="[hidden]")
            logger.debug(f"Doing the request: {method} {url} params={params} "
                         f"headers={debug_headers} body={json.dumps(body)}")

        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=body,
                headers=request_headers,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise InvalidDataError(f"Request error: {e}") from e

        response_body = self._decode_body(response)
        logger.debug(f"Response code: {response.status_code}, body: {response_body}")

        if response.status_code < 200 or response.status_code >= 300:
            raise self._get_error(response.status_code, response_body)

        return response_body if response_body is not None else {}

    def get(self, path: str, params: Optional[Dict] = None) -> Dict:
        """Make a GET request."""
        return self.request("GET", path, params=params)

    def post(self, path: str, body: Optional[Any] = None,
             headers: Optional[Dict[str, str]] = None) -> Dict:
        """Make a POST request."""
        return self.request("POST", path, body=body, headers=headers)

    def patch(self, path: str, body: Any,
              headers: Optional[Dict[str, str]] = None) -> Dict:
        """Make a PATCH request."""
        return self.request("PATCH", path, body=body, headers=headers)

    def put(self, path: str, body: Optional[Any] = None) -> Dict:
        """Make a PUT request."""
        return self.request("PUT", path, body=body)

    def delete(self, path: str, body: Optional[Any] = None,
               headers: Optional[Dict[str, str]] = None) -> Dict:
        """Make a DELETE request."""
        return self.request("DELETE", path, body=body, headers=headers)

    def _decode_body(self, response: requests.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            # Proxies and load balancers may answer with plain text or HTML
            return response.text

    @staticmethod
    def _get_error(status_code: int, body: Any) -> ImpCentralApiError:
        """Extract the first structured API error, if the body has one."""
        if isinstance(body, dict):
            errors = body.get("errors") or []
            if errors and isinstance(errors[0], dict):
                error = errors[0]
                if error.get("title") and error.get("detail"):
                    return ImpCentralApiError(
                        f"{error['title']}: {error['detail']}", status_code, body)
        return ImpCentralApiError(
            f"impCentral API error HTTP/{status_code}", status_code, body)

    def close(self):
        """Close the session."""
        self.session.close()
