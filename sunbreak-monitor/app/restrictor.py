"""Restrictor forwarding restriction changes to a webhook."""
from __future__ import annotations

import asyncio
import logging

import aiohttp

from sunbreak_core import AuthorizationUnavailable, RestrictionMode, Restrictor, RestrictorError

_LOGGER = logging.getLogger(__name__)


class WebhookRestrictor(Restrictor):
    """Post the restriction mode and targets to an enforcement endpoint.

    The endpoint receives ``{"mode": "shield"|"clear", "targets": [...],
    "context": ...}`` on every evaluation and must treat repeats as no-ops.
    """

    def __init__(
        self,
        url: str | None,
        token: str | None = None,
        context_name: str = "monitor",
        timeout: int = 10,
    ) -> None:
        self.url = url
        self.token = token
        self.context_name = context_name
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    def is_authorized(self) -> bool:
        return bool(self.url)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"Content-Type": "application/json"}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._session = aiohttp.ClientSession(
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def async_apply(self, selection: list[str], mode: RestrictionMode) -> None:
        if not self.url:
            raise AuthorizationUnavailable("No webhook URL configured")

        payload = {
            "mode": mode.value,
            "targets": list(selection),
            "context": self.context_name,
        }

        try:
            session = await self._get_session()
            async with session.post(self.url, json=payload) as response:
                _LOGGER.debug(f"Webhook response status: {response.status}")
                response.raise_for_status()

        except aiohttp.ClientResponseError as err:
            if err.status in (401, 403):
                raise AuthorizationUnavailable(f"Webhook rejected credentials ({err.status})") from err
            raise RestrictorError(f"Webhook returned {err.status}") from err
        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            raise RestrictorError(f"Webhook unreachable: {err}") from err

    async def async_cleanup(self) -> None:
        """Close the HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
