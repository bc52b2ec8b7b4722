"""
Web3 Chain Gateway.

Talks to an EVM node over HTTP (block height, eth_getLogs) and
websocket (eth_subscribe "logs").
"""

from collections.abc import AsyncIterator
from typing import Any

from loguru import logger
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.providers.persistent import WebSocketProvider

from vibesync.config.constants import (
    BLOCKCHAIN_RPC_TIMEOUT,
    BLOCKCHAIN_TIMEOUT,
    BLOCKCHAIN_WS_PING_INTERVAL,
)
from vibesync.utils.exceptions import (
    ConfigurationError,
    InvalidRangeError,
    TransientNetworkError,
)
from vibesync.utils.security import mask_url

from .base import ChainDataSource
from .log_types import LogFilter, RawLogEntry
from .rpc_wrapper import (
    NETWORK_ERRORS,
    classify_network_error,
    rpc_call_with_retry,
    with_timeout,
)


class Web3ChainGateway(ChainDataSource):
    """
    Chain data source backed by web3.py.

    HTTP provider is created once and reused. Every subscription opens
    its own websocket connection, closed when the iterator finishes.
    """

    def __init__(
        self,
        chain_id: int,
        http_url: str,
        ws_url: str | None = None,
        rpc_timeout: float = BLOCKCHAIN_TIMEOUT,
    ):
        """
        Initialize gateway.

        Args:
            chain_id: Expected chain id
            http_url: JSON-RPC HTTP endpoint
            ws_url: JSON-RPC websocket endpoint (live stream)
            rpc_timeout: Timeout per RPC call in seconds
        """
        self.chain_id = chain_id
        self.http_url = http_url
        self.ws_url = ws_url
        self.rpc_timeout = rpc_timeout
        self._w3 = AsyncWeb3(
            AsyncHTTPProvider(
                http_url, request_kwargs={"timeout": BLOCKCHAIN_RPC_TIMEOUT}
            )
        )

    async def verify_chain(self) -> None:
        """
        Check that the node serves the configured chain.

        Raises:
            ConfigurationError: Node serves another chain
            TransientNetworkError: Node unreachable
        """
        remote_chain_id = await with_timeout(
            self._w3.eth.chain_id,
            timeout=self.rpc_timeout,
            operation_name="eth_chainId",
        )
        if remote_chain_id != self.chain_id:
            raise ConfigurationError(
                f"Node {mask_url(self.http_url)} serves chain {remote_chain_id}, "
                f"expected {self.chain_id}"
            )
        logger.info(
            f"[Gateway] Connected to chain {self.chain_id} via {mask_url(self.http_url)}"
        )

    async def current_height(self) -> int:
        """Latest block number known to the node."""
        return await rpc_call_with_retry(
            lambda: self._w3.eth.block_number,
            max_retries=3,
            timeout=self.rpc_timeout,
            operation_name="eth_blockNumber",
        )

    async def query_range(
        self,
        from_block: int,
        to_block: int,
        log_filter: LogFilter,
    ) -> list[RawLogEntry]:
        """
        Fetch matching logs of an inclusive block range.

        Args:
            from_block: First block (inclusive)
            to_block: Last block (inclusive)
            log_filter: Contracts and event signatures

        Returns:
            Log entries ordered by (block_number, log_index)

        Raises:
            InvalidRangeError: Negative bounds or from_block > to_block
            RangeTooLargeError: Node refused the span
            TransientNetworkError: Node failure
        """
        if from_block < 0 or to_block < 0 or from_block > to_block:
            raise InvalidRangeError(from_block, to_block)

        params: dict[str, Any] = log_filter.to_rpc_params()
        params["fromBlock"] = from_block
        params["toBlock"] = to_block

        raw_logs = await with_timeout(
            self._w3.eth.get_logs(params),
            timeout=self.rpc_timeout,
            operation_name=f"eth_getLogs {from_block}-{to_block}",
        )

        entries = []
        for raw_log in raw_logs:
            entry = RawLogEntry.from_rpc(raw_log)
            if entry.removed:
                continue
            entries.append(entry)

        entries.sort(key=lambda e: e.position)
        logger.debug(
            f"[Gateway] Blocks {from_block}-{to_block}: {len(entries)} logs"
        )
        return entries

    async def subscribe(self, log_filter: LogFilter) -> AsyncIterator[RawLogEntry]:
        """
        Stream newly emitted logs over websocket.

        Ends by raising TransientNetworkError when the connection drops.
        Reconnecting is the caller's job.

        Args:
            log_filter: Contracts and event signatures

        Yields:
            RawLogEntry for each matching log
        """
        if not self.ws_url:
            raise TransientNetworkError("No websocket endpoint configured")

        provider = WebSocketProvider(
            self.ws_url,
            websocket_kwargs={"ping_interval": BLOCKCHAIN_WS_PING_INTERVAL},
        )
        try:
            async with AsyncWeb3(provider) as w3:
                subscription_id = await with_timeout(
                    w3.eth.subscribe("logs", log_filter.to_rpc_params()),
                    timeout=self.rpc_timeout,
                    operation_name="eth_subscribe",
                )
                logger.info(
                    f"[Gateway] Subscribed to logs via {mask_url(self.ws_url)} "
                    f"(subscription {subscription_id})"
                )

                async for payload in w3.socket.process_subscriptions():
                    if "result" not in payload:
                        continue
                    entry = RawLogEntry.from_rpc(payload["result"])
                    if entry.removed or not log_filter.matches(entry):
                        continue
                    yield entry

        except NETWORK_ERRORS as e:
            raise classify_network_error(e, "eth_subscribe stream") from e

        # Server closed the stream without an error
        raise TransientNetworkError("Log subscription stream ended")

    async def close(self) -> None:
        """Release the HTTP session."""
        disconnect = getattr(self._w3.provider, "disconnect", None)
        if disconnect is not None:
            await disconnect()
