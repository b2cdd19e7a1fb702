import asyncio
import sys

import structlog

from __PLAYGROUND__.helper import begin, end, signExampleMessage

logger = structlog.get_logger("playground.sign_typed_data")


async def signTypedData() -> int:
    handler = None
    try:
        handler, config = await begin()

        print("Signing typed data...")

        signature = await signExampleMessage(handler, config)

        print("Signature:", signature)
        return 0
    except Exception as e:
        logger.error("playground.sign_typed_data_failed", error=repr(e))
        print("signTypedData failed:", e)
        return 1
    finally:
        if handler is not None:
            await end(handler)


if __name__ == "__main__":
    sys.exit(asyncio.run(signTypedData()))
