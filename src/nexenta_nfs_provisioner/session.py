import logging
import threading
from typing import Callable, Optional

from .exceptions import AuthenticationError
from .models import Credentials

logger = logging.getLogger(__name__)


class Session:
    """Connection state shared by every request of one provisioner process."""

    def __init__(self, base_url: str, credentials: Optional[Credentials] = None):
        self.base_url = base_url
        self.credentials = credentials
        self._token: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def token(self) -> Optional[str]:
        with self._lock:
            return self._token

    def clear_token(self):
        with self._lock:
            self._token = None

    def renew_token(
        self, stale_token: Optional[str], login: Callable[[Credentials], str]
    ) -> str:
        """Replace ``stale_token`` with a fresh one, logging in at most once.

        Callers pass the token their rejected request was sent with. If another
        caller already swapped it out while this one waited for the lock, the
        newer token is reused and no login is issued.
        """
        with self._lock:
            if self._token is not None and self._token != stale_token:
                logger.debug("Token already renewed by a concurrent request")
                return self._token

            if self.credentials is None:
                raise AuthenticationError(f"No credentials provided for {self.base_url}")

            logger.info(f"Logging in to {self.base_url} as {self.credentials.username}")
            # the rejected token is dropped even if the login below fails
            self._token = None
            self._token = login(self.credentials)
            return self._token
