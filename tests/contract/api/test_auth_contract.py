"""
Contract tests for authentication API endpoints.
Tests API contracts, request/response schemas, and error handling.
"""

import pytest
from eth_account import Account

from src.core.service.auth.jwt_service import JWTService
from tests.doubles import sign_nonce


class TestAuthAPIContract:
    """Contract tests for authentication API."""

    @pytest.mark.asyncio
    async def test_nonce_contract(self, client, wallet):
        response = await client.get("/api/v1/auth/nonce", params={"wallet_address": wallet.address})

        assert response.status_code == 200
        data = response.json()
        assert set(data) == {"nonce"}
        assert isinstance(data["nonce"], str)
        assert len(data["nonce"]) == 36

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [{}, {"wallet_address": ""}, {"wallet_address": "0x123"}])
    async def test_nonce_invalid_address(self, client, params):
        response = await client.get("/api/v1/auth/nonce", params=params)

        assert response.status_code == 400
        error = response.json()["error"]
        assert response.json()["success"] is False
        assert error["code"] == "INVALID_FORMAT"
        assert "timestamp" in error

    @pytest.mark.asyncio
    async def test_signin_contract(self, client, wallet):
        nonce = (await client.get("/api/v1/auth/nonce", params={"wallet_address": wallet.address})).json()["nonce"]

        response = await client.post("/api/v1/auth/signin", json={
            "wallet_address": wallet.address,
            "signature": sign_nonce(wallet, nonce),
        })

        assert response.status_code == 200
        data = response.json()
        assert set(data) == {"message", "wallet_address", "access_token", "token_type", "expires_in"}
        assert data["message"] == "Sign-in successful"
        assert data["wallet_address"] == wallet.address
        assert data["token_type"] == "bearer"
        assert isinstance(data["expires_in"], int)
        assert JWTService().verify_access_token(data["access_token"]).wallet_address == wallet.address

    @pytest.mark.asyncio
    async def test_signin_replay_is_unauthorized(self, client, wallet):
        nonce = (await client.get("/api/v1/auth/nonce", params={"wallet_address": wallet.address})).json()["nonce"]
        body = {"wallet_address": wallet.address, "signature": sign_nonce(wallet, nonce)}

        first = await client.post("/api/v1/auth/signin", json=body)
        second = await client.post("/api/v1/auth/signin", json=body)

        assert first.status_code == 200
        assert second.status_code == 401
        assert second.json()["error"]["code"] == "NONCE_NOT_FOUND"
        assert second.headers["WWW-Authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_signin_wrong_signer_is_unauthorized(self, client, wallet):
        nonce = (await client.get("/api/v1/auth/nonce", params={"wallet_address": wallet.address})).json()["nonce"]

        response = await client.post("/api/v1/auth/signin", json={
            "wallet_address": wallet.address,
            "signature": sign_nonce(Account.create(), nonce),
        })

        assert response.status_code == 401
        assert response.json()["error"]["message"] == "Invalid signature"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {},
        {"wallet_address": "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"},
        {"wallet_address": "0x742d35Cc6634C0532925a3b844Bc454e4438f44e", "signature": "0xabc"},
        {"wallet_address": "not-an-address", "signature": "0x" + "ab" * 65},
    ])
    async def test_signin_malformed_input_is_bad_request(self, client, body):
        response = await client.post("/api/v1/auth/signin", json=body)

        assert response.status_code == 400
        assert response.json()["success"] is False

    @pytest.mark.asyncio
    async def test_nonce_store_outage_is_service_unavailable(self, client, redis_client, wallet):
        redis_client.fail = True

        response = await client.get("/api/v1/auth/nonce", params={"wallet_address": wallet.address})

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "SERVICE_UNAVAILABLE"
