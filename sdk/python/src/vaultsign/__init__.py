from .errors import (
    NotConnectedError,
    ProviderConnectionError,
    ProviderRpcError,
    ReconnectionError,
    StartupConfigurationError,
    TypedDataError,
    VaultSignError,
)
from .lifecycle import ClientSlot, ConnectionLifecycleHandler
from .logger import setupLogging
from .provider import SigningClient, VaultProvider, createProvider
from .settings import Settings, loadProviderConfig
from .typed_data import (
    EIP712_DOMAIN_TYPE,
    EXAMPLE_PRIMARY_TYPE,
    EXAMPLE_TYPES,
    buildTypedData,
    validateTypedData,
)
from .types import (
    ConnectInfo,
    ConnectionState,
    DomainDescriptor,
    ProviderConfig,
    TypedDataEnvelope,
    TypeField,
)

__all__ = [
    "ClientSlot",
    "ConnectInfo",
    "ConnectionLifecycleHandler",
    "ConnectionState",
    "DomainDescriptor",
    "EIP712_DOMAIN_TYPE",
    "EXAMPLE_PRIMARY_TYPE",
    "EXAMPLE_TYPES",
    "NotConnectedError",
    "ProviderConfig",
    "ProviderConnectionError",
    "ProviderRpcError",
    "ReconnectionError",
    "Settings",
    "SigningClient",
    "StartupConfigurationError",
    "TypedDataEnvelope",
    "TypedDataError",
    "TypeField",
    "VaultProvider",
    "VaultSignError",
    "buildTypedData",
    "createProvider",
    "loadProviderConfig",
    "setupLogging",
    "validateTypedData",
]
