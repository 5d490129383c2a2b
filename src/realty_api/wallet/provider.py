"""web3.py provider that forwards JSON-RPC traffic to the injected wallet."""

from __future__ import annotations

import itertools
import logging
from typing import Any, cast

from web3 import AsyncWeb3
from web3.providers.async_base import AsyncBaseProvider
from web3.types import RPCEndpoint, RPCResponse

from ..constants import ETH_CHAIN_ID
from ..exceptions import ProviderRequestError
from .transport import ProviderBinding

logger = logging.getLogger(__name__)


class InjectedWeb3Provider(AsyncBaseProvider):
    """Route every web3 request through the wallet so the wallet signs."""

    def __init__(self, binding: ProviderBinding, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._binding = binding
        self._request_ids = itertools.count(1)

    async def make_request(self, method: RPCEndpoint, params: Any) -> RPCResponse:
        request_id = next(self._request_ids)
        logger.debug("Wallet request id=%s method=%s", request_id, method)
        result = await self._binding.request(method, params)
        return cast(RPCResponse, {"jsonrpc": "2.0", "id": request_id, "result": result})

    async def is_connected(self, show_traceback: bool = False) -> bool:
        if not self._binding.is_available():
            return False
        try:
            await self._binding.request(ETH_CHAIN_ID, [])
        except ProviderRequestError:
            if show_traceback:
                raise
            return False
        return True


def build_injected_web3(binding: ProviderBinding) -> AsyncWeb3:
    return AsyncWeb3(InjectedWeb3Provider(binding))
