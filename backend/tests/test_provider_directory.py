"""
Unit Tests for the HTTP Provider Directory

Uses httpx.MockTransport; no network access.

Run with: pytest tests/test_provider_directory.py -v
"""

import json

import httpx
import pytest

from identity.errors import ProviderUnavailable
from identity.provider import HttpProviderDirectory, expected_label


def directory_with(handler, token="svc-token"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpProviderDirectory("https://provider.test/", "proj-1", token=token, client=client)


class TestHttpProviderDirectory:

    @pytest.mark.asyncio
    async def test_account_found(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"users": [{
                "localId": "052",
                "email": "052@deer-lab.local",
                "displayName": "Kim",
            }]})

        async with directory_with(handler) as directory:
            account = await directory.get_account("052")

        assert account.uid == "052"
        assert account.email == "052@deer-lab.local"
        assert account.display_name == "Kim"
        assert account.disabled is False
        assert seen["url"] == "https://provider.test/v1/projects/proj-1/accounts:lookup"
        assert seen["auth"] == "Bearer svc-token"
        assert seen["body"] == {"localId": ["052"]}

    @pytest.mark.asyncio
    async def test_missing_account(self):
        async with directory_with(lambda request: httpx.Response(200, json={})) as directory:
            assert await directory.get_account("ghost") is None

    @pytest.mark.asyncio
    async def test_not_found_status(self):
        async with directory_with(lambda request: httpx.Response(404)) as directory:
            assert await directory.get_account("ghost") is None

    @pytest.mark.asyncio
    async def test_server_error(self):
        async with directory_with(lambda request: httpx.Response(503, text="busy")) as directory:
            with pytest.raises(ProviderUnavailable) as exc_info:
                await directory.get_account("052")

        assert exc_info.value.context["status_code"] == 503

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        async with directory_with(lambda request: httpx.Response(200, text="<html>gateway</html>")) as directory:
            with pytest.raises(ProviderUnavailable):
                await directory.get_account("052")

    @pytest.mark.parametrize("body", [[1, 2], {"users": "052"}, {"users": ["052"]}])
    @pytest.mark.asyncio
    async def test_unexpected_body_shape(self, body):
        async with directory_with(lambda request: httpx.Response(200, json=body)) as directory:
            with pytest.raises(ProviderUnavailable):
                await directory.get_account("052")

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with directory_with(handler) as directory:
            with pytest.raises(ProviderUnavailable):
                await directory.get_account("052")

    @pytest.mark.asyncio
    async def test_no_token_sends_no_authorization(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={})

        async with directory_with(handler, token="") as directory:
            await directory.get_account("052")

        assert seen["auth"] is None


def test_expected_label():
    assert expected_label("052", "deer-lab.local") == "052@deer-lab.local"
