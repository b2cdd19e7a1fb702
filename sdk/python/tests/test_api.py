"""Tests for vaultsign/api.py header construction and payload signing."""

from __future__ import annotations

from base64 import b64decode

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec

from vaultsign.api import API, signPayload


def verify(private_key: ec.EllipticCurvePrivateKey, signature: str, payload: str) -> None:
    private_key.public_key().verify(
        b64decode(signature), payload.encode(), ec.ECDSA(hashes.SHA256())
    )


class TestSignPayload:

    def test_signature_verifies(self, ec_private_key, pem_private_key) -> None:
        signature = signPayload(pem_private_key, "/api/v1/x", "1700000000000", "{}")
        verify(ec_private_key, signature, "/api/v1/x|1700000000000|{}")

    def test_rejects_non_ec_key(self) -> None:
        from cryptography.hazmat.primitives import serialization
        from cryptography.hazmat.primitives.asymmetric import ed25519

        pem = (
            ed25519.Ed25519PrivateKey.generate()
            .private_bytes(
                serialization.Encoding.PEM,
                serialization.PrivateFormat.PKCS8,
                serialization.NoEncryption(),
            )
            .decode()
        )
        with pytest.raises(ValueError, match="EC private key"):
            signPayload(pem, "/", "0", "")


class TestHeaders:

    def test_bearer_token(self) -> None:
        headers = API().build_headers({"serverURL": "https://x", "apiUserToken": "tok"})

        assert headers["Authorization"] == "Bearer tok"
        assert headers["Content-Type"] == "application/json"

    def test_missing_token(self) -> None:
        with pytest.raises(ValueError, match="credentials"):
            API().build_headers({"serverURL": "https://x"})

    def test_signed_headers(self, ec_private_key, pem_private_key) -> None:
        baseConfig = {
            "serverURL": "https://x",
            "apiUserToken": "tok",
            "apiPayloadSignKey": pem_private_key,
        }
        body = '{"vault_id": "v"}'

        headers = API().build_signed_headers(baseConfig, "/api/v1/tx", body)

        assert headers["Authorization"] == "Bearer tok"
        verify(
            ec_private_key,
            headers["x-signature"],
            f"/api/v1/tx|{headers['x-timestamp']}|{body}",
        )

    def test_signed_headers_need_key(self) -> None:
        with pytest.raises(ValueError, match="signing key"):
            API().build_signed_headers(
                {"serverURL": "https://x", "apiUserToken": "tok"}, "/", "{}"
            )
