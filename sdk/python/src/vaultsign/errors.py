from typing import Any


class VaultSignError(Exception):
    pass


class StartupConfigurationError(VaultSignError):
    """A required secret or setting is missing; raised before any connection."""


class ProviderConnectionError(VaultSignError):
    pass


class NotConnectedError(VaultSignError):
    pass


class ReconnectionError(VaultSignError):
    pass


class TypedDataError(VaultSignError, ValueError):
    pass


class ProviderRpcError(VaultSignError):
    """EIP-1193 style provider error.

    Codes used by this package: 4001 user rejected, 4100 unauthorized,
    4200 unsupported method, 4900 disconnected, 4901 wrong chain,
    -32602 invalid params, -32603 internal error.
    """

    USER_REJECTED = 4001
    UNAUTHORIZED = 4100
    UNSUPPORTED_METHOD = 4200
    DISCONNECTED = 4900
    CHAIN_DISCONNECTED = 4901
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(f"[{code}] {message}")
        self.code = code
        self.message = message
        self.data = data

