from typing import Any, Callable

from vaultsign import (
    EXAMPLE_PRIMARY_TYPE,
    EXAMPLE_TYPES,
    ConnectionLifecycleHandler,
    ProviderConfig,
    Settings,
    SigningClient,
    buildTypedData,
    createProvider,
    loadProviderConfig,
    setupLogging,
)

VERIFYING_CONTRACT = "0x1fF1Da912b679b6fddF8900ddB8E7A10111762f2"

exampleMessage = {
    "someValue": "12345",
    "someString": "Hello EIP-712!",
}


def exampleDomain(chainId: int) -> dict[str, Any]:
    return {
        "name": "HelloDapp",
        "version": "1",
        "chainId": chainId,
        "verifyingContract": VERIFYING_CONTRACT,
    }


def createHandler(
    config: ProviderConfig,
    clientFactory: Callable[[], SigningClient] | None = None,
) -> ConnectionLifecycleHandler:
    if clientFactory is None:

        def clientFactory():
            return createProvider(config)

    return ConnectionLifecycleHandler(clientFactory, config.connectTimeout)


async def begin(
    settings: Settings | None = None,
    clientFactory: Callable[[], SigningClient] | None = None,
    reconnect: bool = True,
    quiet: bool = False,
):
    if settings is None:
        settings = Settings()

    setupLogging(settings.APP_ENV, settings.LOG_LEVEL)

    config = loadProviderConfig(settings)
    handler = createHandler(config, clientFactory)

    if not quiet:
        print(f"🔌 Connecting vault {config.address}...")

    info = await handler.start()

    if not quiet:
        print(f"✅ Connected to chain {info.chainIdInt}")

    if reconnect:

        def onDisconnect(error):
            print("⚠️ Provider disconnected, reconnecting:", error)

        handler.onDisconnect(onDisconnect)

    return handler, config


async def signExampleMessage(
    handler: ConnectionLifecycleHandler, config: ProviderConfig
) -> str:
    typedData = buildTypedData(
        exampleDomain(config.chainId),
        EXAMPLE_TYPES,
        EXAMPLE_PRIMARY_TYPE,
        exampleMessage,
    )

    return await handler.signOnce(typedData, config.address)


async def end(handler: ConnectionLifecycleHandler):
    await handler.close()
