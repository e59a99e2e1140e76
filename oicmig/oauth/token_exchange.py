"""Exchange a signed assertion for an access token (RFC 7523 JWT-bearer grant)."""

import base64
import logging

import httpx
from pydantic import ValidationError

from oicmig.core.errors import AuthenticationRejected, NetworkError
from oicmig.crypto.types import Assertion
from oicmig.oauth.types import (
    ACCESS_TOKEN_DEFAULT_TTL,
    DEFAULT_TOKEN_TYPE,
    AccessToken,
    TokenErrorBody,
)

logger = logging.getLogger(__name__)

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
_NULL_TOKENS = {"", "null"}


def basic_credentials(client_id: str, client_secret: str) -> str:
    """``Basic`` header value for the confidential client."""
    raw = f"{client_id}:{client_secret}".encode()
    return "Basic " + base64.b64encode(raw).decode("ascii")


def _error_fields(response: httpx.Response) -> TokenErrorBody:
    """RFC 6749 error fields of a response, empty when absent."""
    try:
        return TokenErrorBody.model_validate(response.json())
    except (ValueError, ValidationError):
        return TokenErrorBody()


class TokenExchanger:
    """Posts assertions to the identity domain token endpoint."""

    def __init__(self, http: httpx.Client) -> None:
        self._http = http

    def exchange(
        self,
        token_endpoint: str,
        client_id: str,
        client_secret: str,
        assertion: Assertion,
        scope: str,
    ) -> AccessToken:
        """Return an access token or raise AuthenticationRejected / NetworkError."""
        logger.info("Requesting access token from %s", token_endpoint)
        try:
            response = self._http.post(
                token_endpoint,
                headers={
                    "Authorization": basic_credentials(client_id, client_secret),
                    "Accept": "application/json",
                },
                data={
                    "grant_type": JWT_BEARER_GRANT,
                    "assertion": assertion.compact(),
                    "scope": scope,
                },
            )
        except httpx.TransportError as exc:
            raise NetworkError.from_transport(exc) from exc

        if not response.is_success:
            fields = _error_fields(response)
            raise AuthenticationRejected(
                "Token request rejected",
                status_code=response.status_code,
                body=response.text,
                error=fields.error,
                error_description=fields.error_description,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise AuthenticationRejected(
                "Token endpoint returned a non-JSON body",
                status_code=response.status_code,
                body=response.text,
            ) from exc
        if not isinstance(payload, dict):
            raise AuthenticationRejected(
                "Token endpoint returned an unexpected body",
                status_code=response.status_code,
                body=response.text,
            )

        value = payload.get("access_token")
        # The identity domain answers 200 with a null token on some
        # misconfigured apps; only a real string counts.
        if not isinstance(value, str) or value.strip() in _NULL_TOKENS:
            raise AuthenticationRejected(
                "Token endpoint returned no access token",
                status_code=response.status_code,
                body=response.text,
                error=payload.get("error"),
                error_description=payload.get("error_description"),
            )

        expires_in = payload.get("expires_in", ACCESS_TOKEN_DEFAULT_TTL)
        try:
            expires_in = int(expires_in)
        except (TypeError, ValueError, OverflowError):
            expires_in = ACCESS_TOKEN_DEFAULT_TTL
        token_type = payload.get("token_type")
        if not isinstance(token_type, str) or not token_type.strip():
            token_type = DEFAULT_TOKEN_TYPE
        token = AccessToken(value=value, token_type=token_type, expires_in=expires_in)
        logger.info("Access token obtained, expires in %ss", token.expires_in)
        return token
