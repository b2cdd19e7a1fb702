"""Shared fixtures: fake signing clients, provider config and signing keys."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from web3 import Web3

from vaultsign.events import EventEmitter
from vaultsign.types import ProviderConfig

SIGNER_ADDRESS = Web3.to_checksum_address("0x8bfcf9e2764bc84de4bbd0a0f5aaf19f47027a73")
BASE_CHAIN_ID = 8453


class FakeSigningClient:
    """In-memory ``SigningClient`` driven by the test."""

    def __init__(
        self,
        autoConnect: bool = True,
        chainId: int = BASE_CHAIN_ID,
        signature: str = "0xfeedface",
        error: Exception | None = None,
        connectError: Exception | None = None,
    ) -> None:
        self.events = EventEmitter()
        self.autoConnect = autoConnect
        self.chainId = chainId
        self.signature = signature
        self.error = error
        self.connectError = connectError
        self.requests: list[dict[str, Any]] = []
        self.closed = False
        self.connectRequested = asyncio.Event()

    async def waitForEvent(self, name: str, timeout: float | None = None) -> Any:
        if name == "connect":
            self.connectRequested.set()
            if self.connectError is not None:
                raise self.connectError
            if self.autoConnect:
                return {"chainId": hex(self.chainId)}
        return await self.events.waitForEvent(name, timeout)

    async def request(self, args: dict[str, Any]) -> Any:
        self.requests.append(args)
        if self.error is not None:
            raise self.error
        return self.signature

    def on(self, name, callback) -> None:
        self.events.on(name, callback)

    def off(self, name, callback) -> None:
        self.events.off(name, callback)

    async def close(self) -> None:
        self.closed = True

    def connect(self) -> None:
        self.events.emit("connect", {"chainId": hex(self.chainId)})

    def disconnect(self, payload: Any = None) -> None:
        self.events.emit("disconnect", payload)


class RecordingFactory:
    """Client factory handing out pre-built clients in order."""

    def __init__(self, *clients: FakeSigningClient) -> None:
        self._pending = list(clients)
        self.created: list[FakeSigningClient] = []

    def __call__(self) -> FakeSigningClient:
        client = self._pending.pop(0) if self._pending else FakeSigningClient()
        self.created.append(client)
        return client


@pytest.fixture
def ec_private_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture
def pem_private_key(ec_private_key: ec.EllipticCurvePrivateKey) -> str:
    return ec_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture
def provider_config(pem_private_key: str) -> ProviderConfig:
    return ProviderConfig(
        chainId=BASE_CHAIN_ID,
        address=SIGNER_ADDRESS,
        apiUserToken="test-user-token",
        apiPayloadSignKey=pem_private_key,
        rpcUrl="http://localhost:8545",
        apiBaseUrl="https://vault.example.test",
    )
