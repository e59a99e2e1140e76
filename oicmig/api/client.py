"""Typed client for the OIC integration REST API."""

import logging
from collections.abc import Callable
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from oicmig.api.types import (
    ConnectionSummary,
    ImportReport,
    IntegrationSummary,
    PropertyPatch,
)
from oicmig.core.errors import (
    ActivationFailed,
    ArtifactNotFound,
    EmptyArtifact,
    ExportFailed,
    ImportRejected,
    NetworkError,
    PropertyUpdateFailed,
    QueryFailed,
)
from oicmig.core.settings import HttpSettings
from oicmig.oauth.types import AccessToken

logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_NOT_FOUND = 404
LIST_LIMIT_DEFAULT = 1000
OCTET_STREAM = "application/octet-stream"

M = TypeVar("M", bound=BaseModel)


def build_http_client(
    http_settings: HttpSettings,
    base_url: str = "",
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Create an httpx client with explicit timeouts and no redirect following."""
    timeout = httpx.Timeout(
        http_settings.read_timeout, connect=http_settings.connect_timeout
    )
    return httpx.Client(
        base_url=base_url,
        timeout=timeout,
        verify=http_settings.verify_tls,
        follow_redirects=False,
        transport=transport,
    )


def _segment(value: str) -> str:
    """Percent-encode one path segment (``CODE|VERSION`` ids contain ``|``)."""
    return quote(value, safe="")


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    """Response JSON object, or an empty dict for anything else."""
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _text(value: Any) -> str | None:
    """Scalar response field as text; anything else is dropped."""
    if isinstance(value, str):
        return value
    if isinstance(value, int | float) and not isinstance(value, bool):
        return str(value)
    return None


class ResourceClient:
    """One method per OIC operation; each call is an independent request.

    Paths are relative to the client's ``base_url`` so the bearer token is
    only ever sent to the configured resource server.
    """

    def __init__(self, http: httpx.Client) -> None:
        self._http = http

    def _send(
        self,
        method: str,
        path: str,
        token: AccessToken,
        *,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one authorized request; transport errors become NetworkError."""
        request_headers = {"Authorization": token.authorization}
        request_headers.update(headers or {})
        try:
            return self._http.request(method, path, headers=request_headers, **kwargs)
        except httpx.TransportError as exc:
            raise NetworkError.from_transport(exc) from exc

    def export_artifact(self, token: AccessToken, integration_id: str) -> bytes:
        """Download the ``.iar`` archive of ``CODE|VERSION``."""
        logger.info("Exporting integration %s", integration_id)
        response = self._send(
            "GET",
            f"integrations/{_segment(integration_id)}/archive",
            token,
            headers={"Accept": OCTET_STREAM},
        )
        if response.status_code == HTTP_NOT_FOUND:
            raise ArtifactNotFound.from_response(
                f"Integration {integration_id} not found", response
            )
        if not response.is_success:
            raise ExportFailed.from_response(
                f"Export of {integration_id} failed", response
            )
        if not response.content:
            raise EmptyArtifact.from_response(
                f"Export of {integration_id} returned an empty archive", response
            )
        return response.content

    def import_artifact(
        self, token: AccessToken, archive: bytes, replace: bool = False
    ) -> ImportReport:
        """Upload an archive; ``replace`` overwrites an existing integration."""
        method = "PUT" if replace else "POST"
        logger.info("Importing archive (%d bytes) via %s", len(archive), method)
        response = self._send(
            method,
            "integrations/archive",
            token,
            headers={"Content-Type": OCTET_STREAM, "Accept": "application/json"},
            content=archive,
        )
        if not response.is_success:
            raise ImportRejected.from_response("Archive import rejected", response)
        payload = _json_or_empty(response)
        return ImportReport(
            status_code=response.status_code,
            status=_text(payload.get("status")),
            id=_text(payload.get("id")),
            message=_text(payload.get("message")),
            raw=payload,
        )

    def patch_connection_property(
        self,
        token: AccessToken,
        connection_id: str,
        group: str,
        name: str,
        type: str,
        value: str,
    ) -> None:
        """Set one connection property; repeating the same value is a no-op."""
        logger.info("Patching %s.%s on connection %s", group, name, connection_id)
        body = PropertyPatch(
            property_group=group,
            property_name=name,
            property_type=type,
            property_value=value,
        )
        response = self._send(
            "PATCH",
            f"connections/{_segment(connection_id)}",
            token,
            headers={"Accept": "application/json"},
            json=body.model_dump(by_alias=True),
        )
        if not response.is_success:
            raise PropertyUpdateFailed.from_response(
                f"Update of {name} on {connection_id} failed", response
            )

    def test_connection(self, token: AccessToken, connection_id: str) -> bool:
        """Ping a connection; only an exact HTTP 200 counts as success."""
        response = self._send(
            "POST", f"connections/{_segment(connection_id)}/test", token
        )
        if response.status_code != HTTP_OK:
            logger.warning(
                "Connection test for %s failed (HTTP %d)",
                connection_id,
                response.status_code,
            )
            return False
        return True

    def activate_integration(self, token: AccessToken, integration_id: str) -> None:
        """Activate an imported integration."""
        logger.info("Activating integration %s", integration_id)
        response = self._send(
            "POST",
            f"integrations/{_segment(integration_id)}/activate",
            token,
            headers={"Accept": "application/json"},
        )
        if not response.is_success:
            raise ActivationFailed.from_response(
                f"Activation of {integration_id} failed", response
            )

    def _list(
        self,
        token: AccessToken,
        path: str,
        params: dict[str, Any],
        parse: Callable[[dict[str, Any]], M],
    ) -> list[M]:
        """GET a collection and parse each item; bad items raise QueryFailed."""
        response = self._send(
            "GET", path, token, headers={"Accept": "application/json"}, params=params
        )
        if not response.is_success:
            raise QueryFailed.from_response(f"GET {path} failed", response)
        items = _json_or_empty(response).get("items")
        if not isinstance(items, list):
            items = []
        try:
            return [parse(item) for item in items if isinstance(item, dict)]
        except ValidationError as exc:
            raise QueryFailed(
                f"GET {path} returned an unreadable item: {exc.errors()[0]['msg']}",
                status_code=response.status_code,
                body=response.text,
            ) from exc

    def list_integrations(
        self, token: AccessToken, limit: int = LIST_LIMIT_DEFAULT
    ) -> list[IntegrationSummary]:
        """All integrations, up to ``limit``."""
        return self._list(
            token, "integrations", {"limit": limit}, IntegrationSummary.from_api
        )

    def find_integration(
        self, token: AccessToken, code: str
    ) -> IntegrationSummary | None:
        """Latest integration with ``code``, or None when absent."""
        found = self._list(
            token, "integrations", {"q": f"code=={code}"}, IntegrationSummary.from_api
        )
        return found[0] if found else None

    def list_connections(
        self, token: AccessToken, limit: int = LIST_LIMIT_DEFAULT
    ) -> list[ConnectionSummary]:
        """All connections, up to ``limit``."""
        return self._list(
            token, "connections", {"limit": limit}, ConnectionSummary.model_validate
        )
