"""Cooperative cancellation shared by the loop and the tools it runs."""

from __future__ import annotations

import asyncio

from .errors import CancellationRequestedError


class CancellationToken:
    """Read side of a cancellation signal."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @classmethod
    def none(cls) -> CancellationToken:
        """A token that is never cancelled."""
        return cls()

    @property
    def is_cancellation_requested(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CancellationRequestedError("Delegation was cancelled.")

    async def wait(self) -> None:
        await self._event.wait()

    def _set(self) -> None:
        self._event.set()


class CancellationTokenSource:
    """Owner side of a cancellation signal."""

    def __init__(self) -> None:
        self.token = CancellationToken()

    def cancel(self) -> None:
        self.token._set()
