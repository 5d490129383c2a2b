"""Wallet transport protocol and the binding that owns its listeners."""

from __future__ import annotations

import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import Any

from ..constants import INTERNAL_ERROR_CODE, WALLET_EVENTS
from ..exceptions import ProviderRequestError, ProviderUnavailableError, ValidationError

logger = logging.getLogger(__name__)

Listener = Callable[[Any], Any]


class WalletTransport(ABC):
    """EIP-1193 shaped wallet transport (``window.ethereum`` or a stand-in)."""

    @abstractmethod
    async def request(self, method: str, params: Sequence[Any] | None = None) -> Any:
        """Send a JSON-RPC request; reject with ``ProviderRequestError``."""

    @abstractmethod
    def on(self, event: str, callback: Listener) -> None:
        """Subscribe to a wallet event."""

    @abstractmethod
    def remove_listener(self, event: str, callback: Listener) -> None:
        """Remove one listener for a wallet event."""


class ProviderBinding:
    """Own the injected transport and at most one listener per event class."""

    def __init__(self, transport: WalletTransport | None, *, wallet_flag: str | None = None):
        self._transport = transport
        self._wallet_flag = wallet_flag
        self._listeners: dict[str, Listener] = {}

    @property
    def transport(self) -> WalletTransport | None:
        return self._transport

    def is_available(self) -> bool:
        if self._transport is None:
            return False
        if self._wallet_flag is None:
            return True
        return bool(getattr(self._transport, self._wallet_flag, False))

    async def request(self, method: str, params: Sequence[Any] | None = None) -> Any:
        transport = self._require_transport()
        try:
            return await transport.request(method, list(params) if params is not None else [])
        except ProviderRequestError:
            raise
        except Exception as exc:
            raise ProviderRequestError(INTERNAL_ERROR_CODE, str(exc) or exc.__class__.__name__) from exc

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------
    def subscribe(self, event: str, listener: Listener) -> None:
        """Replace any listener this binding holds for ``event`` with ``listener``."""

        if event not in WALLET_EVENTS:
            raise ValidationError("Unsupported wallet event", field="event", value=event)
        transport = self._require_transport()
        self.unsubscribe(event)
        transport.on(event, listener)
        self._listeners[event] = listener
        logger.debug("Subscribed to wallet event %s", event)

    def unsubscribe(self, event: str) -> None:
        previous = self._listeners.pop(event, None)
        if previous is None or self._transport is None:
            return
        self._transport.remove_listener(event, previous)

    def unsubscribe_all(self) -> None:
        for event in list(self._listeners):
            self.unsubscribe(event)

    def has_listener(self, event: str) -> bool:
        return event in self._listeners

    def _require_transport(self) -> WalletTransport:
        if self._transport is None or not self.is_available():
            raise ProviderUnavailableError(
                "No compatible wallet detected; install a wallet extension to continue"
            )
        return self._transport


async def dispatch_event(listeners: Sequence[Listener], payload: Any) -> None:
    """Invoke wallet listeners, awaiting coroutine results."""

    for listener in list(listeners):
        result = listener(payload)
        if inspect.isawaitable(result):
            await result
