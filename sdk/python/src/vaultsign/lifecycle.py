"""Connect, sign and reconnect orchestration around a ``SigningClient``.

The handler owns exactly one client at a time through a ``ClientSlot``.
On ``"disconnect"`` the slot is emptied and refilled with a freshly built
client; listeners only carry the slot generation they were registered
for, so a late event from a replaced client is recognised and ignored.
Reconnection is attempted once per disconnect; a failure is logged and
leaves the handler in ``FAILED``.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable

import structlog

from vaultsign.errors import (
    NotConnectedError,
    ProviderConnectionError,
    ReconnectionError,
    VaultSignError,
)
from vaultsign.provider import SigningClient
from vaultsign.types import ConnectInfo, ConnectionState, TypedDataEnvelope

logger = structlog.get_logger("vaultsign.lifecycle")

SIGN_TYPED_DATA_METHOD = "eth_signTypedData_v4"

ClientFactory = Callable[[], SigningClient]
DisconnectCallback = Callable[[Any], Any]


class ClientSlot:
    """Single-owner cell for the live client."""

    def __init__(self) -> None:
        self._client: SigningClient | None = None
        self._generation = 0

    @property
    def client(self) -> SigningClient | None:
        return self._client

    @property
    def generation(self) -> int:
        return self._generation

    def replace(self, client: SigningClient) -> int:
        self._client = client
        self._generation += 1
        return self._generation

    def take(self) -> SigningClient | None:
        client, self._client = self._client, None
        return client


class ConnectionLifecycleHandler:
    """Drive a signing client from first connect through reconnection.

    Parameters
    ----------
    clientFactory:
        Zero-argument callable returning a new, connecting client. It
        captures the static provider configuration and is called once on
        ``start()`` and once per reconnection.
    connectTimeout:
        Seconds to wait for each ``"connect"`` event. ``None`` waits for
        as long as the client does.
    """

    def __init__(
        self, clientFactory: ClientFactory, connectTimeout: float | None = None
    ) -> None:
        self._clientFactory = clientFactory
        self._connectTimeout = connectTimeout

        self._slot = ClientSlot()
        self._state = ConnectionState.IDLE
        self._transitions: list[ConnectionState] = []

        self._connectInfo: ConnectInfo | None = None
        self._clientsCreated = 0

        self._reconnectEnabled = False
        self._disconnectCallback: DisconnectCallback | None = None
        self._subscribedGeneration = 0
        self._handledGeneration = 0
        self._reconnectTask: asyncio.Task[None] | None = None
        self._reconnectError: ReconnectionError | None = None

    # ── Introspection ────────────────────────────────────────────

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def transitions(self) -> list[ConnectionState]:
        return list(self._transitions)

    @property
    def client(self) -> SigningClient | None:
        return self._slot.client

    @property
    def connectInfo(self) -> ConnectInfo | None:
        return self._connectInfo

    @property
    def clientsCreated(self) -> int:
        return self._clientsCreated

    @property
    def reconnectError(self) -> ReconnectionError | None:
        return self._reconnectError

    def _setState(self, state: ConnectionState) -> None:
        self._state = state
        self._transitions.append(state)
        logger.debug("lifecycle.state", state=state.value)

    # ── Connection ───────────────────────────────────────────────

    async def start(self) -> ConnectInfo:
        if self._state is not ConnectionState.IDLE:
            raise VaultSignError(f"Handler already started ({self._state.value})")

        self._setState(ConnectionState.AWAITING_CONNECTION)

        try:
            info = await self._connectNewClient()
        except Exception as error:
            self._setState(ConnectionState.FAILED)
            logger.error("lifecycle.connect_failed", error=repr(error))
            await self._discardClient()
            raise ProviderConnectionError(
                f"Initial connection failed: {error!r}"
            ) from error

        self._setState(ConnectionState.CONNECTED)
        logger.info("lifecycle.connected", chain_id=info.chainIdInt)

        return info

    async def _connectNewClient(self) -> ConnectInfo:
        client = self._clientFactory()
        self._clientsCreated += 1

        generation = self._slot.replace(client)
        if self._reconnectEnabled:
            self._subscribe(client, generation)

        payload = await client.waitForEvent("connect", self._connectTimeout)

        self._connectInfo = ConnectInfo.model_validate(payload)
        return self._connectInfo

    async def _discardClient(self) -> None:
        client = self._slot.take()
        if client is None:
            return

        try:
            await client.close()
        except Exception as error:
            logger.warning("lifecycle.close_failed", error=repr(error))

    # ── Signing ──────────────────────────────────────────────────

    async def signOnce(self, envelope: TypedDataEnvelope, signerAddress: str) -> str:
        """Request one ``eth_signTypedData_v4`` signature over *envelope*.

        Errors reported by the client propagate unchanged; nothing is
        retried.
        """
        client = self._slot.client
        if self._state is not ConnectionState.CONNECTED or client is None:
            raise NotConnectedError(
                f"Cannot sign while {self._state.value}; call start() first"
            )

        logger.info(
            "lifecycle.sign_request",
            primary_type=envelope.primaryType,
            signer=signerAddress,
        )

        signature = await client.request(
            {
                "method": SIGN_TYPED_DATA_METHOD,
                "params": [signerAddress, envelope.toJSON()],
            }
        )

        logger.info("lifecycle.signed", signer=signerAddress)
        return signature

    # ── Reconnection ─────────────────────────────────────────────

    def onDisconnect(self, callback: DisconnectCallback | None = None) -> None:
        """Rebuild the client once whenever the current one disconnects.

        *callback*, if given, receives the disconnect payload before the
        new client is created. It may be a coroutine function.

        Only one attempt is made per disconnect. Without a
        ``connectTimeout`` that attempt waits for ``"connect"`` as long as
        the client does; ``lifecycle.reconnecting`` is logged when it starts.
        """
        self._reconnectEnabled = True
        self._disconnectCallback = callback

        client = self._slot.client
        if client is not None:
            self._subscribe(client, self._slot.generation)

    def _subscribe(self, client: SigningClient, generation: int) -> None:
        if generation <= self._subscribedGeneration:
            return
        self._subscribedGeneration = generation

        def handleDisconnect(payload: Any) -> None:
            self._handleDisconnect(generation, payload)

        client.on("disconnect", handleDisconnect)

    def _handleDisconnect(self, generation: int, payload: Any) -> None:
        if (
            generation != self._slot.generation
            or generation <= self._handledGeneration
            or self._state is not ConnectionState.CONNECTED
        ):
            logger.debug("lifecycle.disconnect_ignored", generation=generation)
            return
        self._handledGeneration = generation

        logger.warning("lifecycle.disconnected", reason=str(payload))

        self._setState(ConnectionState.AWAITING_RECONNECTION)
        self._reconnectTask = asyncio.get_running_loop().create_task(
            self._reconnect(payload)
        )

    async def _reconnect(self, payload: Any) -> None:
        if self._disconnectCallback is not None:
            try:
                result = self._disconnectCallback(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as error:
                logger.error("lifecycle.disconnect_callback_failed", error=repr(error))

        await self._discardClient()
        self._connectInfo = None

        logger.info(
            "lifecycle.reconnecting",
            connect_timeout=self._connectTimeout,
            attempt=self._clientsCreated + 1,
        )

        try:
            info = await self._connectNewClient()
        except Exception as error:
            self._reconnectError = ReconnectionError(f"Reconnection failed: {error!r}")
            self._reconnectError.__cause__ = error
            self._setState(ConnectionState.FAILED)
            logger.error("lifecycle.reconnect_failed", error=repr(error))
            await self._discardClient()
            return

        self._setState(ConnectionState.CONNECTED)
        logger.info("lifecycle.reconnected", chain_id=info.chainIdInt)

    async def waitForReconnect(self) -> ConnectionState:
        """Wait for a pending reconnection, if any, and return the state."""
        if self._reconnectTask is not None:
            await self._reconnectTask
        return self._state

    async def close(self) -> None:
        if self._reconnectTask is not None and not self._reconnectTask.done():
            self._reconnectTask.cancel()
            try:
                await self._reconnectTask
            except asyncio.CancelledError:
                pass

        await self._discardClient()
        self._connectInfo = None
        self._setState(ConnectionState.IDLE)
