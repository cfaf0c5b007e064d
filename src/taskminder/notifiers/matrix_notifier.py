# src/taskminder/notifiers/matrix_notifier.py

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from nio import AsyncClient, RoomSendResponse

from ..core.ports import Clock
from ..reminders.reminder_models import DeliveryResult, Reminder, RenderedMessage
from .matrix_client import create_matrix_client

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], Awaitable[AsyncClient | None]]

DEFAULT_RETRY_AFTER_SECONDS = 300.0


class MatrixNotifier:
    """
    Matrix transport: posts the reminder as an m.text message into the
    recipient's room (the contact for the matrix channel is a room id).

    The client is created lazily on the first send and shared afterwards.
    When creating it fails (not configured, login rejected), no new attempt is
    made for retry_after_seconds; sends in that window fail immediately.
    """

    def __init__(
            self,
            settings=None,
            *,
            client_factory: ClientFactory | None = None,
            retry_after_seconds: float = DEFAULT_RETRY_AFTER_SECONDS,
            clock: Clock = time.monotonic,
    ) -> None:
        if client_factory is None:
            if settings is None:
                raise ValueError("settings or client_factory is required")

            async def client_factory() -> AsyncClient | None:
                return await create_matrix_client(settings)

        self._client_factory = client_factory
        self._client: AsyncClient | None = None
        self._lock = asyncio.Lock()
        self._retry_after = max(0.0, float(retry_after_seconds))
        self._clock = clock
        self._unavailable_until: float | None = None

    async def _get_client(self) -> AsyncClient | None:
        async with self._lock:
            if self._client is not None:
                return self._client
            if self._unavailable_until is not None and self._clock() < self._unavailable_until:
                return None

            try:
                self._client = await self._client_factory()
            except Exception:
                logger.exception("Matrix client bootstrap failed")
                self._client = None

            if self._client is None:
                self._unavailable_until = self._clock() + self._retry_after
                logger.warning("Matrix unavailable; next login attempt in %.0fs", self._retry_after)
            else:
                self._unavailable_until = None
            return self._client

    async def send(self, reminder: Reminder, contact: str, message: RenderedMessage) -> DeliveryResult:
        client = await self._get_client()
        if client is None:
            return DeliveryResult.failure("matrix client unavailable")

        content = {
            "msgtype": "m.text",
            "body": f"{message.subject}\n\n{message.body}",
        }
        try:
            resp = await client.room_send(
                room_id=contact,
                message_type="m.room.message",
                content=content,
                ignore_unverified_devices=True,
            )
        except Exception as e:
            logger.warning("Matrix send raised reminder=%s room=%s: %r", reminder.id, contact, e)
            return DeliveryResult.failure(f"matrix error: {e!r}")

        if not isinstance(resp, RoomSendResponse):
            logger.warning("Matrix send rejected reminder=%s room=%s: %r", reminder.id, contact, resp)
            return DeliveryResult.failure(f"matrix error: {resp!r}")

        return DeliveryResult.success()

    async def close(self) -> None:
        client = self._client
        self._client = None
        if client is not None:
            await client.close()
