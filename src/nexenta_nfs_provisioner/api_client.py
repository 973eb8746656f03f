import json
import logging
import time
from typing import Any, Dict, Optional, Type, TypeVar

import requests
from pydantic import BaseModel, ValidationError

from .exceptions import (
    ApiError,
    AuthenticationError,
    CompletionTimeoutError,
    ConfigurationError,
    DecodeError,
    TransportError,
)
from .models import Credentials, ErrorResponse, LoginResponse
from .session import Session

logger = logging.getLogger(__name__)

LOGIN_ENDPOINT = "auth/login"
LOGIN_REQUIRED_MESSAGE = "Please login to continue"
AUTH_FAILURE_CODES = (401, 403)
USER_AGENT = "Nexenta-NFS-Provisioner/0.1.0"

M = TypeVar("M", bound=BaseModel)


class ApiResponse:
    """Status code and decoded JSON body of one appliance reply.

    Error replies are returned like any other so callers can inspect the
    appliance's ``message``; use ``raise_for_error`` to turn them into
    exceptions.
    """

    def __init__(self, status_code: int, data: Dict[str, Any], endpoint: str = ""):
        self.status_code = status_code
        self.data = data
        self.endpoint = endpoint

    def __repr__(self):
        return f"ApiResponse(status_code={self.status_code}, data={self.data!r})"

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    @property
    def error(self) -> Optional[ErrorResponse]:
        if self.ok or "message" not in self.data:
            return None
        code = self.data.get("code")
        return ErrorResponse(
            message=str(self.data["message"]),
            code=str(code) if code is not None else None,
        )

    def parse(self, model: Type[M]) -> M:
        try:
            return model.model_validate(self.data)
        except ValidationError as e:
            raise DecodeError(
                f"Unexpected {model.__name__} payload from {self.endpoint}: {e}"
            ) from e

    def raise_for_error(self) -> "ApiResponse":
        if not self.ok:
            error = self.error
            raise ApiError(self.status_code, error.message if error else None, self.endpoint)
        return self


class ManagementClient:
    """JSON client for the appliance management API.

    Logs in on demand: a request rejected for missing or expired
    authentication triggers one login through the shared ``Session`` and is
    then retried exactly once.
    """

    def __init__(
        self,
        session: Session,
        verify_ssl: bool = True,
        ca_bundle: Optional[str] = None,
        timeout: float = 30.0,
        poll_interval: float = 1.0,
        max_polls: int = 60,
        http: Optional[requests.Session] = None,
    ):
        self.session = session
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.max_polls = max_polls

        self.http = http if http is not None else requests.Session()
        self.http.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})
        if ca_bundle:
            self.http.verify = ca_bundle
        elif not verify_ssl:
            logger.warning(
                f"TLS certificate verification is disabled for {session.base_url}"
            )
            self.http.verify = False

    def request(self, method: str, endpoint: str, body: Any = None) -> ApiResponse:
        if not self.session.base_url:
            raise ConfigurationError("Appliance base URL is not set, unable to issue requests")

        payload = self._encode(body)
        result = self._send_authenticated(method, endpoint, payload)

        if result.status_code == 202:
            result = self._wait_for_completion(endpoint, result)

        logger.debug(f"Got response for ({method}) {endpoint}: {result}")
        return result

    def get(self, endpoint: str) -> ApiResponse:
        return self.request("GET", endpoint)

    def post(self, endpoint: str, body: Any = None) -> ApiResponse:
        return self.request("POST", endpoint, body)

    def put(self, endpoint: str, body: Any = None) -> ApiResponse:
        return self.request("PUT", endpoint, body)

    def delete(self, endpoint: str) -> ApiResponse:
        return self.request("DELETE", endpoint)

    def login(self) -> str:
        """Force a fresh login, replacing any cached token."""
        if not self.session.base_url:
            raise ConfigurationError("Appliance base URL is not set, unable to log in")
        return self.session.renew_token(self.session.token, self._login)

    def _send_authenticated(
        self, method: str, endpoint: str, payload: Optional[str]
    ) -> ApiResponse:
        token = self.session.token
        result = self._send(method, endpoint, payload, token)

        if self._login_required(result):
            logger.debug(f"({method}) {endpoint} needs authentication: {result.status_code}")
            token = self.session.renew_token(token, self._login)
            result = self._send(method, endpoint, payload, token)

        return result

    def _login(self, credentials: Credentials) -> str:
        result = self._send("POST", LOGIN_ENDPOINT, self._encode(credentials), None)
        if not result.ok:
            error = result.error
            raise AuthenticationError(
                f"Could not login to {self.session.base_url} with user "
                f"{credentials.username}: {error.message if error else result.status_code}"
            )
        try:
            return LoginResponse.model_validate(result.data).token
        except ValidationError:
            raise AuthenticationError("Not able to extract token from login response") from None

    def _wait_for_completion(self, endpoint: str, accepted: ApiResponse) -> ApiResponse:
        monitor = self._monitor_endpoint(accepted.data) or endpoint
        logger.info(f"{endpoint} accepted for async processing, polling {monitor}")

        for attempt in range(1, self.max_polls + 1):
            time.sleep(self.poll_interval)
            result = self._send_authenticated("GET", monitor, None)
            if result.status_code != 202:
                logger.debug(f"{monitor} completed after {attempt} polls")
                return result

        raise CompletionTimeoutError(
            f"{endpoint} did not complete after {self.max_polls} polls "
            f"of {self.poll_interval}s"
        )

    def _send(
        self, method: str, endpoint: str, payload: Optional[str], token: Optional[str]
    ) -> ApiResponse:
        url = self._url(endpoint)
        headers = {}
        if payload is not None:
            headers["Content-Type"] = "application/json"
        if token:
            headers["Authorization"] = f"Bearer {token}"

        logger.debug(f"({method}) to {url}")
        try:
            resp = self.http.request(
                method, url, data=payload, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise TransportError(f"({method}) to {url} failed: {e}") from e

        try:
            data = self._decode(resp)
        except DecodeError:
            # auth challenges are not always JSON, the login retry handles them
            if resp.status_code not in AUTH_FAILURE_CODES:
                raise
            data = {}
        return ApiResponse(resp.status_code, data, endpoint)

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        base = self.session.base_url
        if not base.endswith("/"):
            base += "/"
        return base + endpoint.lstrip("/")

    @staticmethod
    def _login_required(result: ApiResponse) -> bool:
        if result.status_code in AUTH_FAILURE_CODES:
            return True
        return result.data.get("message") == LOGIN_REQUIRED_MESSAGE

    @staticmethod
    def _monitor_endpoint(data: Dict[str, Any]) -> Optional[str]:
        for link in data.get("links") or []:
            if isinstance(link, dict) and link.get("rel") == "monitor" and link.get("href"):
                return link["href"]
        return None

    @staticmethod
    def _encode(body: Any) -> Optional[str]:
        if body is None:
            return None
        if isinstance(body, BaseModel):
            return body.model_dump_json(by_alias=True, exclude_none=True)
        return json.dumps(body)

    @staticmethod
    def _decode(resp: requests.Response) -> Dict[str, Any]:
        if not resp.content or not resp.content.strip():
            return {}
        try:
            data = resp.json()
        except ValueError as e:
            raise DecodeError(f"Invalid JSON from {resp.url}: {e}", body=resp.text) from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise DecodeError(
                f"Expected a JSON object from {resp.url}, got {type(data).__name__}",
                body=resp.text,
            )
        return data
