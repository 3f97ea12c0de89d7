"""Bearer token providers backed by google-auth credentials."""

from __future__ import annotations

import logging
import threading
from typing import Sequence

logger = logging.getLogger(__name__)

ADS_SCOPE = "https://www.googleapis.com/auth/adwords"
CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"
TOKEN_URI = "https://oauth2.googleapis.com/token"


class GoogleTokenProvider:
    """Zero-argument callable returning a fresh access token.

    Uses application default credentials unless explicit credentials are
    passed in. Tokens are refreshed only when they are expired or missing.
    """

    def __init__(self, scopes: Sequence[str], credentials=None):
        self.scopes = list(scopes)
        self._credentials = credentials
        self._lock = threading.Lock()

    @classmethod
    def from_refresh_token(
        cls,
        *,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        scopes: Sequence[str] = (ADS_SCOPE,),
    ) -> "GoogleTokenProvider":
        from google.oauth2.credentials import Credentials

        credentials = Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=TOKEN_URI,
            client_id=client_id,
            client_secret=client_secret,
            scopes=list(scopes),
        )
        return cls(scopes, credentials=credentials)

    @property
    def credentials(self):
        if self._credentials is None:
            import google.auth

            self._credentials, project = google.auth.default(scopes=self.scopes)
            logger.debug("Loaded application default credentials (project=%s)", project)
        return self._credentials

    def __call__(self) -> str:
        with self._lock:
            credentials = self.credentials
            if not credentials.valid:
                from google.auth.transport.requests import Request

                credentials.refresh(Request())
            return credentials.token
