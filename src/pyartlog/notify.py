"""Notification channels.

The engine only decides *what* to announce; delivery lives here.
:class:`DiscordNotifier` posts through Discord's REST API with aiohttp,
:class:`LoggingNotifier` just logs and is used when Discord is not configured.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Protocol

import aiohttp

from pyartlog._constants import DISCORD_API_BASE, USER_AGENT
from pyartlog._redact import redact_for_log
from pyartlog.exceptions import NotificationError
from pyartlog.models.notification import Notification, NotificationKind

_logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Structural notifier interface.

    Implementations may raise; the engine logs the failure and continues.
    """

    async def send(self, notification: Notification) -> None: ...


class LoggingNotifier:
    """Write notifications to the log only."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or _logger

    async def send(self, notification: Notification) -> None:
        level = logging.WARNING if notification.urgent else logging.INFO
        if notification.attachment is not None:
            self._logger.log(level, "%s (attachment=%s)", notification.content, notification.attachment)
        else:
            self._logger.log(level, "%s", notification.content)


class DiscordNotifier:
    """Post notifications to Discord channels as a bot.

    Session-start and alert messages go to the alert channel; session-end
    messages carry the trace file and go to the log channel. When only one
    channel is configured it receives everything.

    Usage::

        async with DiscordNotifier(token=..., alert_channel_id=..., log_channel_id=...) as notifier:
            await notifier.send(notification)
    """

    def __init__(
        self,
        *,
        token: str,
        alert_channel_id: str | None = None,
        log_channel_id: str | None = None,
        alert_role_id: str | None = None,
        session: aiohttp.ClientSession | None = None,
        api_base: str = DISCORD_API_BASE,
        logger: logging.Logger | None = None,
    ) -> None:
        if not alert_channel_id and not log_channel_id:
            raise ValueError("at least one Discord channel id is required")
        self._token = token
        self._alert_channel_id = alert_channel_id
        self._log_channel_id = log_channel_id
        self._alert_role_id = alert_role_id
        self._external_session = session is not None
        self._http_session = session
        self._api_base = api_base.rstrip("/")
        self._logger = logger or _logger

    async def __aenter__(self) -> DiscordNotifier:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
        self._http_session = None

    def channel_for(self, notification: Notification) -> str:
        """Pick the destination channel for *notification*."""
        if notification.kind == NotificationKind.SESSION_ENDED:
            return self._log_channel_id or self._alert_channel_id or ""
        return self._alert_channel_id or self._log_channel_id or ""

    def render(self, notification: Notification) -> str:
        """Build the Discord message text, including role mention and timestamp markup."""
        if notification.kind == NotificationKind.SESSION_ENDED:
            stamp = f"<t:{int(notification.occurred_at)}:f>"
            if notification.attachment is not None:
                content = f"Car session ended at {stamp}, download log here:"
            else:
                content = f"Car session ended at {stamp}, but the log could not be written."
        else:
            content = notification.content
        if notification.urgent and self._alert_role_id:
            content = f"<@&{self._alert_role_id}> {content}"
        return content

    async def send(self, notification: Notification) -> None:
        """Deliver *notification*.

        Raises
        ------
        NotificationError
            Network failure, non-2xx response, or unreadable attachment.
        """
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()

        channel_id = self.channel_for(notification)
        url = f"{self._api_base}/channels/{channel_id}/messages"
        headers = {
            "authorization": f"Bot {self._token}",
            "user-agent": USER_AGENT,
        }
        payload: dict[str, Any] = {
            "content": self.render(notification),
            "allowed_mentions": {"parse": ["roles"]},
        }

        body: Any
        if notification.attachment is not None:
            attachment = notification.attachment
            try:
                data = await asyncio.get_running_loop().run_in_executor(None, attachment.read_bytes)
            except OSError as exc:
                raise NotificationError(
                    f"Cannot read attachment {attachment}: {exc}",
                    channel_id=channel_id,
                ) from exc
            payload["attachments"] = [{"id": 0, "filename": attachment.name}]
            form = aiohttp.FormData()
            form.add_field("payload_json", json.dumps(payload), content_type="application/json")
            form.add_field("files[0]", data, filename=attachment.name, content_type="text/plain")
            body = form
        else:
            headers["content-type"] = "application/json"
            body = json.dumps(payload)

        self._logger.debug(
            "POST %s headers=%s payload=%s",
            url,
            redact_for_log(headers),
            redact_for_log(payload),
        )

        try:
            async with self._http_session.post(url, data=body, headers=headers) as resp:
                if resp.status not in (200, 201):
                    text = await resp.text()
                    raise NotificationError(
                        f"HTTP {resp.status} from Discord: {text[:200]}",
                        status_code=resp.status,
                        channel_id=channel_id,
                    )
        except NotificationError:
            raise
        except aiohttp.ClientError as exc:
            raise NotificationError(
                f"Discord request failed: {exc}",
                channel_id=channel_id,
            ) from exc
