import json
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, SecretStr, field_validator
from web3 import Web3


class ConnectionState(str, Enum):
    IDLE = "idle"
    AWAITING_CONNECTION = "awaiting_connection"
    CONNECTED = "connected"
    AWAITING_RECONNECTION = "awaiting_reconnection"
    FAILED = "failed"


class DomainDescriptor(BaseModel):
    name: str
    version: str
    chainId: int
    verifyingContract: str

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("verifyingContract")
    @classmethod
    def checkContract(cls, value: str) -> str:
        # validated only; serialized exactly as given
        Web3.to_checksum_address(value)
        return value


class TypeField(BaseModel):
    name: str
    type: str

    model_config = ConfigDict(extra="forbid", frozen=True)


TypeSchema = dict[str, list[TypeField]]


class TypedDataEnvelope(BaseModel):
    domain: DomainDescriptor
    types: TypeSchema
    primaryType: str
    message: dict[str, Any]

    model_config = ConfigDict(extra="forbid")

    def toJSON(self) -> str:
        return json.dumps(self.model_dump())


class ConnectInfo(BaseModel):
    chainId: str

    model_config = ConfigDict(extra="allow")

    @property
    def chainIdInt(self) -> int:
        return int(self.chainId, 16)


class ProviderConfig(BaseModel):
    chainId: int
    address: str
    apiUserToken: SecretStr
    apiPayloadSignKey: SecretStr
    rpcUrl: str
    skipPrediction: bool = False
    apiBaseUrl: str = "https://api.fordefi.com"
    connectTimeout: float | None = None

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("address")
    @classmethod
    def checksumAddress(cls, value: str) -> str:
        return Web3.to_checksum_address(value)
