"""REST mail backend client.

Talks to the mail service's JSON API. Every response is wrapped in an
envelope ``{"success": bool, "data": ..., "msg": str}``; a non-2xx status or
``success == false`` is raised as :class:`BackendError`.
"""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import quote

import aiohttp
import structlog
from pydantic import ValidationError

from email_client_core.config import Settings
from email_client_core.exceptions import BackendError, ConfigurationError, FetchError, SendError
from email_client_core.models import ComposeFields, Folder, Message, SendResult

logger = structlog.get_logger()

_ADDRESS_SPLIT_RE = re.compile(r"[,\n;]+")


def split_addresses(raw: str) -> list[str]:
    return [part.strip() for part in _ADDRESS_SPLIT_RE.split(raw) if part.strip()]


def build_send_body(compose: ComposeFields) -> dict[str, Any]:
    """Translate compose fields into the send endpoint's request body."""
    body: dict[str, Any] = {
        "from_account_id": compose.from_account_id,
        "to": split_addresses(compose.to),
        "subject": compose.subject,
        "body_text": compose.plain_body(),
        "body_html": compose.body_html,
    }
    if compose.cc.strip():
        body["cc"] = split_addresses(compose.cc)
    if compose.bcc.strip():
        body["bcc"] = split_addresses(compose.bcc)
    if compose.attachment_paths:
        body["attachment_vfs_paths"] = list(compose.attachment_paths)
    return body


def unwrap_envelope(status: int, payload: Any) -> Any:
    """Return ``data`` from a response envelope or raise BackendError."""
    if not isinstance(payload, dict):
        raise BackendError(f"Unexpected response payload (HTTP {status})", status=status)
    if status >= 400 or not payload.get("success", False):
        message = payload.get("msg") or f"Request failed with HTTP {status}"
        raise BackendError(str(message), status=status)
    return payload.get("data")


class HttpMailBackend:
    """Async client for the mail REST API."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        *,
        per_page: int | None = None,
        timeout: int | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the backend client.

        Args:
            base_url: API root. If None, uses ``settings.api_base_url``.
            token: Bearer token. If None, uses ``settings.api_token``.
            per_page: Messages requested per folder listing.
            timeout: Total request timeout in seconds.
            settings: Application settings. If None, uses default settings.

        Raises:
            ConfigurationError: If no base URL is given or configured.
        """
        from email_client_core.config import get_settings

        self.settings = settings or get_settings()
        resolved_url = (base_url or self.settings.api_base_url or "").strip()
        if not resolved_url:
            raise ConfigurationError("Mail backend base URL is not configured")
        self.base_url = resolved_url.rstrip("/")
        self._token = token if token is not None else self.settings.api_token
        self.per_page = per_page or self.settings.messages_per_page
        self._timeout = timeout or self.settings.api_timeout
        self._session: aiohttp.ClientSession | None = None
        logger.info("http_backend_initialized", base_url=self.base_url)

    async def connect(self) -> None:
        if self._session is not None and not self._session.closed:
            return
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        self._session = aiohttp.ClientSession(
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=self._timeout),
        )

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> HttpMailBackend:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def fetch_folder_messages(self, folder_id: str) -> list[Message]:
        """Fetch the first page of a folder listing.

        Raises:
            FetchError: If the request fails or the payload is malformed.
        """

        path = f"/api/v1/email/folders/{quote(folder_id, safe='')}/messages"
        try:
            data = await self._request("GET", path, params={"page": 1, "per_page": self.per_page})
            return [Message.model_validate(item) for item in (data or [])]
        except (BackendError, ValidationError) as exc:
            logger.warning("folder_fetch_failed", folder_id=folder_id, error=str(exc))
            raise FetchError(str(exc), status=getattr(exc, "status", None)) from exc

    async def send_message(self, compose: ComposeFields) -> SendResult:
        """Send a message.

        Raises:
            SendError: If the backend rejects the send.
        """

        try:
            data = await self._request("POST", "/api/v1/email/messages/send", json=build_send_body(compose))
            return SendResult.model_validate(data)
        except (BackendError, ValidationError) as exc:
            logger.exception("send_failed", account_id=compose.from_account_id, error=str(exc))
            raise SendError(str(exc)) from exc

    async def list_folders(self, account_id: str) -> list[Folder]:
        path = f"/api/v1/email/accounts/{quote(account_id, safe='')}/folders"
        try:
            data = await self._request("GET", path)
            return [Folder.model_validate(item) for item in (data or [])]
        except ValidationError as exc:
            raise BackendError(str(exc)) from exc

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        await self.connect()
        assert self._session is not None
        url = f"{self.base_url}{path}"
        logger.debug("backend_request", method=method, url=url)
        try:
            async with self._session.request(method, url, **kwargs) as resp:
                try:
                    payload = await resp.json(content_type=None)
                except ValueError:
                    payload = None
                return unwrap_envelope(resp.status, payload)
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise BackendError(f"{method} {path} failed: {exc}") from exc
