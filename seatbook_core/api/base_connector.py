"""
Base API Connector Class for the booking backend
Provides the HTTP session, auth header and error translation shared by all connectors
"""
from abc import ABC, abstractmethod
from typing import Optional, Dict, Any
from dataclasses import dataclass

import requests

from seatbook_core.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NetworkError,
    NotFoundError,
    RemoteServiceError,
    SeatBookError,
    ValidationError,
)


DEFAULT_TIMEOUT = 10  # seconds; a timeout is handled like a lost connection


@dataclass
class APIConfig:
    """Configuration for API connection"""
    api_name: str
    base_url: str
    api_key: Optional[str] = None  # bearer token issued at login
    headers: Optional[Dict[str, str]] = None
    timeout: float = DEFAULT_TIMEOUT
    additional_params: Optional[Dict[str, Any]] = None


def error_from_response(response: requests.Response, method: str, endpoint: str) -> SeatBookError:
    """
    Translate an HTTP error response into the SeatBook exception taxonomy

    Args:
        response: Response with a 4xx/5xx status
        method: HTTP method of the request
        endpoint: Request path (used for error details)

    Returns:
        Exception instance matching the status code
    """
    try:
        body = response.json()
        message = body.get("message") if isinstance(body, dict) else None
    except ValueError:
        message = None
    message = message or response.reason or f"HTTP {response.status_code}"
    status = response.status_code
    details = {"method": method, "path": endpoint}

    if status == 400:
        if "already booked" in message.lower():
            return ConflictError(message, details=details, status_code=status)
        return ValidationError(message, details=details, status_code=status)
    if status == 401:
        return AuthenticationError(message, details=details, status_code=status)
    if status == 403:
        return AuthorizationError(message, details=details, status_code=status)
    if status == 404:
        return NotFoundError(message, details=details, status_code=status)
    if status >= 500:
        return RemoteServiceError(message, details=details, status_code=status)
    return SeatBookError(message, code=f"HTTP_{status}", details=details, status_code=status)


class BaseAPIConnector(ABC):
    """Abstract base class for all booking-backend connectors"""

    def __init__(self, config: APIConfig):
        self.config = config
        self.session = requests.Session()

        # Set default headers
        if config.headers:
            self.session.headers.update(config.headers)

        # Add API key to headers if provided
        if config.api_key:
            self._set_auth_header()

    @abstractmethod
    def _set_auth_header(self):
        """Set authentication header based on API requirements"""
        pass

    @abstractmethod
    def request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Issue one call against the backend and return the decoded JSON body

        Raises:
            NetworkError: no response was received (includes timeouts)
            SeatBookError: the server answered with an error status
        """
        pass

    @property
    def probe_url(self) -> Optional[str]:
        """URL whose host the connection monitor probes for reachability"""
        return self.config.base_url

    def set_token(self, token: Optional[str]) -> None:
        """Replace the bearer token after login (or clear it on logout)"""
        self.config.api_key = token
        if token:
            self._set_auth_header()
        else:
            self.session.headers.pop("Authorization", None)

    def _make_request(
        self,
        endpoint: str,
        method: str = "GET",
        params: Optional[Dict] = None,
        data: Optional[Dict] = None
    ) -> requests.Response:
        """
        Make HTTP request with error handling

        Args:
            endpoint: API endpoint (appended to base_url)
            method: HTTP method (GET, POST, etc.)
            params: Query parameters
            data: Request body data

        Returns:
            Response object
        """
        url = f"{self.config.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=data,
                timeout=self.config.timeout
            )
        except requests.exceptions.Timeout as e:
            raise NetworkError(
                f"Request to {self.config.api_name} timed out: {e}",
                method=method, path=endpoint, timed_out=True,
            ) from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(
                f"API request failed for {self.config.api_name}: {e}",
                method=method, path=endpoint,
            ) from e

        if not response.ok:
            raise error_from_response(response, method, endpoint)
        return response

    def test_connection(self) -> Dict[str, Any]:
        """
        Test API connection and return status

        Returns:
            Dict with status and message
        """
        try:
            self.request("GET", "/library/me")
            return {
                "status": "success",
                "message": f"Successfully connected to {self.config.api_name}",
            }
        except NotFoundError:
            # Reachable and authenticated; the manager just has no library yet
            return {
                "status": "success",
                "message": f"Connected to {self.config.api_name} (no library registered)",
            }
        except SeatBookError as e:
            return {
                "status": "error",
                "message": f"Connection failed: {e.message}"
            }
