import asyncio
import json
from base64 import b64decode
from typing import Any, Callable, Protocol

import aiohttp
import structlog
from pydantic import BaseModel, ConfigDict, PrivateAttr, validate_call
from web3 import AsyncWeb3, Web3

from vaultsign.api import API
from vaultsign.errors import ProviderRpcError
from vaultsign.events import EventEmitter
from vaultsign.types import ProviderConfig

logger = structlog.get_logger("vaultsign.provider")

VAULTS_ENDPOINT = "api/v1/vaults"
CREATE_AND_WAIT_ENDPOINT = "api/v1/transactions/create-and-wait"

REJECTED_STATES = frozenset({"aborted", "cancelled"})
FAILED_STATES = frozenset({"error", "stuck"})


class SigningClient(Protocol):
    """What the lifecycle handler needs from a wallet provider."""

    async def waitForEvent(self, name: str, timeout: float | None = None) -> Any: ...

    async def request(self, args: dict[str, Any]) -> Any: ...

    def on(self, name: str, callback: Callable[[Any], Any]) -> None: ...

    def off(self, name: str, callback: Callable[[Any], Any]) -> None: ...

    async def close(self) -> None: ...


class VaultProvider(BaseModel):
    """EIP-1193 style provider backed by a remote MPC vault.

    Connecting starts as soon as the provider is created, so it must be
    created from inside a running event loop. Observe the outcome with
    ``waitForEvent("connect")``.
    """

    _config: ProviderConfig = PrivateAttr()

    _apiBaseConfig: dict[str, str] = PrivateAttr()
    _ethereumProvider: AsyncWeb3 = PrivateAttr()

    _api: API = PrivateAttr()
    _events: EventEmitter = PrivateAttr()

    _vaultId: str | None = PrivateAttr(default=None)
    _connectInfo: dict[str, str] | None = PrivateAttr(default=None)
    _connectError: ProviderRpcError | None = PrivateAttr(default=None)
    _disconnected: bool = PrivateAttr(default=False)
    _connectTask: asyncio.Task | None = PrivateAttr(default=None)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __init__(self, config: ProviderConfig, **data):
        super().__init__(**data)

        self._config = config

        self._ethereumProvider = AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(config.rpcUrl))

        self._apiBaseConfig = {
            "serverURL": config.apiBaseUrl.rstrip("/"),
            "apiUserToken": config.apiUserToken.get_secret_value(),
            "apiPayloadSignKey": config.apiPayloadSignKey.get_secret_value(),
        }

        self._api = API()
        self._events = EventEmitter()

        self._connectTask = asyncio.get_running_loop().create_task(self._connect())

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def connected(self) -> bool:
        return self._connectInfo is not None and not self._disconnected

    # ── Events ───────────────────────────────────────────────────

    def on(self, name: str, callback: Callable[[Any], Any]) -> None:
        self._events.on(name, callback)

    def off(self, name: str, callback: Callable[[Any], Any]) -> None:
        self._events.off(name, callback)

    async def waitForEvent(self, name: str, timeout: float | None = None) -> Any:
        if name == "connect":
            if self._connectInfo is not None:
                return self._connectInfo
            if self._connectError is not None:
                raise self._connectError

        return await self._events.waitForEvent(name, timeout)

    # ── Connection ───────────────────────────────────────────────

    async def _connect(self):
        try:
            chainId = await self._ethereumProvider.eth.chain_id
            if chainId != self._config.chainId:
                raise ProviderRpcError(
                    ProviderRpcError.CHAIN_DISCONNECTED,
                    f"RPC serves chain {chainId}, expected {self._config.chainId}",
                )

            self._vaultId = await self._resolveVaultId()
        except ProviderRpcError as error:
            self._failConnect(error)
            return
        except Exception as error:
            self._failConnect(
                ProviderRpcError(
                    ProviderRpcError.DISCONNECTED, f"Failed to connect: {error}"
                )
            )
            return

        self._connectInfo = {"chainId": hex(chainId)}

        logger.info(
            "provider.connected",
            chain_id=chainId,
            address=self._config.address,
            vault_id=self._vaultId,
        )

        self._events.emit("connect", self._connectInfo)

    async def _resolveVaultId(self) -> str:
        response = await self._api.getApi(
            self._apiBaseConfig, VAULTS_ENDPOINT, {"vault_types": "evm"}
        )

        for vault in response.get("vaults", []):
            address = vault.get("address")
            if address and address.lower() == self._config.address.lower():
                return vault["id"]

        raise ProviderRpcError(
            ProviderRpcError.UNAUTHORIZED,
            f"No vault found for address {self._config.address}",
        )

    def _failConnect(self, error: ProviderRpcError):
        self._connectError = error
        logger.error("provider.connect_failed", code=error.code, error=error.message)
        self._events.fail("connect", error)

    def _disconnect(self, error: ProviderRpcError):
        if self._disconnected:
            return

        self._disconnected = True
        self._connectInfo = None

        logger.warning("provider.disconnected", code=error.code, error=error.message)

        self._events.emit("disconnect", error)

    # ── Requests ─────────────────────────────────────────────────

    async def request(self, args: dict[str, Any]) -> Any:
        method = args.get("method")
        if not isinstance(method, str):
            raise ProviderRpcError(
                ProviderRpcError.INVALID_PARAMS, "Request is missing a method"
            )
        params = list(args.get("params") or [])

        logger.debug("provider.request", method=method)

        if method == "eth_chainId":
            return hex(self._config.chainId)

        if method == "eth_accounts":
            return [self._config.address]

        if not self.connected:
            raise ProviderRpcError(
                ProviderRpcError.DISCONNECTED, "Provider is not connected"
            )

        if method == "eth_signTypedData_v4":
            address, typedData = self._expectParams(method, params)
            if not isinstance(typedData, str):
                typedData = json.dumps(typedData)

            self._checkSigner(address)
            return await self._signMessage("typed_message_type", typedData)

        if method == "personal_sign":
            message, address = self._expectParams(method, params)

            self._checkSigner(address)
            return await self._signMessage("personal_message_type", message)

        raise ProviderRpcError(
            ProviderRpcError.UNSUPPORTED_METHOD, f"Unsupported method {method}"
        )

    def _expectParams(self, method: str, params: list[Any]) -> list[Any]:
        if len(params) != 2:
            raise ProviderRpcError(
                ProviderRpcError.INVALID_PARAMS,
                f"{method} expects 2 params, got {len(params)}",
            )
        return params

    def _checkSigner(self, address: Any):
        try:
            signer = Web3.to_checksum_address(address)
        except (TypeError, ValueError) as error:
            raise ProviderRpcError(
                ProviderRpcError.INVALID_PARAMS, f"Invalid signer address {address!r}"
            ) from error

        if signer != self._config.address:
            raise ProviderRpcError(
                ProviderRpcError.UNAUTHORIZED,
                f"Address {address} is not managed by this provider",
            )

    async def _signMessage(self, messageType: str, rawData: str) -> str:
        body = {
            "vault_id": self._vaultId,
            "signer_type": "api_signer",
            "type": "evm_message",
            "details": {
                "type": messageType,
                "chain": f"evm_{self._config.chainId}",
                "raw_data": rawData,
            },
            "skip_prediction": self._config.skipPrediction,
        }

        try:
            response = await self._api.postApi(
                self._apiBaseConfig, CREATE_AND_WAIT_ENDPOINT, body
            )
        except aiohttp.ClientResponseError as error:
            code = (
                ProviderRpcError.UNAUTHORIZED
                if error.status in (401, 403)
                else ProviderRpcError.INTERNAL_ERROR
            )
            raise ProviderRpcError(
                code, f"Vault API request failed: {error.status} {error.message}"
            ) from error
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as error:
            rpcError = ProviderRpcError(
                ProviderRpcError.DISCONNECTED, f"Vault API unreachable: {error}"
            )
            self._disconnect(rpcError)
            raise rpcError from error

        state = response.get("state")
        if state in REJECTED_STATES:
            raise ProviderRpcError(
                ProviderRpcError.USER_REJECTED,
                f"Signing request {state}",
                data=response.get("id"),
            )

        if state in FAILED_STATES:
            raise ProviderRpcError(
                ProviderRpcError.INTERNAL_ERROR,
                f"Signing request {state}",
                data=response.get("id"),
            )

        signatures = response.get("signatures") or []
        if not signatures or not signatures[0].get("data"):
            raise ProviderRpcError(
                ProviderRpcError.INTERNAL_ERROR, "Vault returned no signature"
            )

        return "0x" + b64decode(signatures[0]["data"]).hex()

    async def close(self):
        if self._connectTask is not None and not self._connectTask.done():
            self._connectTask.cancel()

        self._events.clear()
        await self._api.close()


@validate_call
def createProvider(config: ProviderConfig) -> VaultProvider:
    return VaultProvider(config)
