import asyncio
import json
import time
from base64 import b64encode
from typing import Any
from urllib.parse import urlparse

import aiohttp
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from pydantic import BaseModel, ConfigDict, PrivateAttr


def signPayload(pemPrivateKey: str, path: str, timestamp: str, body: str) -> str:
    privateKey = serialization.load_pem_private_key(
        pemPrivateKey.encode(), password=None
    )
    if not isinstance(privateKey, ec.EllipticCurvePrivateKey):
        raise ValueError("API::Payload signing key must be an EC private key")

    payload = f"{path}|{timestamp}|{body}".encode()
    signature = privateKey.sign(payload, ec.ECDSA(hashes.SHA256()))

    return b64encode(signature).decode()


class API(BaseModel):
    _session: aiohttp.ClientSession | None = PrivateAttr(default=None)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __del__(self):
        if self._session and not self._session.closed:
            try:
                loop = asyncio.get_running_loop()
                loop.create_task(self._session.close())
            except RuntimeError:
                # no running loop at interpreter exit
                asyncio.run(self._session.close())

    def build_headers(self, baseConfig: dict[str, str]) -> dict[str, str]:
        if not baseConfig.get("apiUserToken"):
            raise ValueError("API::Invalid authentication credentials")

        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {baseConfig['apiUserToken']}",
        }

    def build_signed_headers(
        self, baseConfig: dict[str, str], path: str, body: str
    ) -> dict[str, str]:
        headers = self.build_headers(baseConfig)

        if not baseConfig.get("apiPayloadSignKey"):
            raise ValueError("API::Missing payload signing key")

        timestamp = str(int(time.time() * 1000))

        headers["x-timestamp"] = timestamp
        headers["x-signature"] = signPayload(
            baseConfig["apiPayloadSignKey"], path, timestamp, body
        )

        return headers

    async def _get_session(self):
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def getApi(
        self, baseConfig: dict[str, str], endpoint: str, params: dict[str, Any] = {}
    ) -> dict[str, Any]:
        session = await self._get_session()

        headers = self.build_headers(baseConfig)

        async with session.get(
            f"{baseConfig['serverURL']}/{endpoint}", headers=headers, params=params
        ) as response:
            response.raise_for_status()
            return await response.json()

    async def postApi(
        self, baseConfig: dict[str, str], endpoint: str, body: dict[str, Any]
    ) -> dict[str, Any]:
        session = await self._get_session()

        url = f"{baseConfig['serverURL']}/{endpoint}"
        payload = json.dumps(body)
        headers = self.build_signed_headers(baseConfig, urlparse(url).path, payload)

        async with session.post(url, headers=headers, data=payload) as response:
            response.raise_for_status()
            return await response.json()

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()
