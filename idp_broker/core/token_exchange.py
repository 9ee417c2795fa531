"""Authorization-code token exchange against a provider token endpoint."""
from __future__ import annotations
import logging
import os
from typing import Optional

import requests

from .exceptions import TokenExchangeError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 5
GRANT_TYPE_AUTHORIZATION_CODE = "authorization_code"


class TokenExchangeClient:
    """HTTP client for the OAuth2 code-for-token exchange.

    Issues exactly one POST per call and returns the raw response body.
    There is no retry: an authorization code is single-use, so a second
    attempt needs a fresh redirect from the provider.

    Usage:
        client = TokenExchangeClient()
        body = client.exchange(code, token_url, client_id, client_secret, redirect_uri)
    """

    def __init__(self, timeout: Optional[float] = None):
        """Initialize token exchange client.

        Args:
            timeout: Request timeout in seconds (defaults to TOKEN_EXCHANGE_TIMEOUT env var)
        """
        if timeout is None:
            timeout = float(os.environ.get("TOKEN_EXCHANGE_TIMEOUT", REQUEST_TIMEOUT))
        self.timeout = timeout

    def exchange(
        self,
        code: str,
        token_url: str,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
    ) -> str:
        """Exchange an authorization code for the provider's token response.

        Args:
            code: Authorization code from the callback
            token_url: Provider token endpoint
            client_id: Client id registered with the provider
            client_secret: Client secret registered with the provider
            redirect_uri: Absolute URL of the callback endpoint (must match registration)

        Returns:
            Raw response body, unparsed

        Raises:
            TokenExchangeError: On transport failure, timeout, or HTTP error status
        """
        data = {
            "code": code,
            "client_id": client_id,
            "client_secret": client_secret,
            "redirect_uri": redirect_uri,
            "grant_type": GRANT_TYPE_AUTHORIZATION_CODE,
        }
        try:
            resp = requests.post(
                token_url,
                data=data,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise TokenExchangeError(None, f"timed out after {self.timeout}s", token_url) from exc
        except requests.RequestException as exc:
            raise TokenExchangeError(None, str(exc), token_url) from exc

        self._handle_error(resp, token_url)
        return resp.text

    def _handle_error(self, resp: requests.Response, token_url: str) -> None:
        """Raise TokenExchangeError if response status indicates error."""
        if resp.status_code >= 400:
            logger.warning("Token endpoint %s answered %s", token_url, resp.status_code)
            raise TokenExchangeError(resp.status_code, resp.text, token_url)
