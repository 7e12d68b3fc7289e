import base64

import aiohttp
import pytest

from class_checker.auth import ClientCredentialsTokenProvider, StaticTokenProvider
from class_checker.errors import TokenError


async def test_static_token():
    provider = StaticTokenProvider("abc")
    await provider.refresh_if_stale()
    assert await provider.get_token() == "abc"


async def test_client_credentials_request_and_cache(catalog_server):
    async with aiohttp.ClientSession() as session:
        provider = ClientCredentialsTokenProvider(session, str(catalog_server.make_url("/token")), "key", "secret")
        assert provider.is_stale

        assert await provider.get_token() == "fresh-token"
        assert await provider.get_token() == "fresh-token"

    requests = catalog_server.app["token_requests"]
    assert len(requests) == 1
    auth, body = requests[0]
    assert auth == "Basic " + base64.b64encode(b"key:secret").decode()
    assert body == "grant_type=client_credentials&scope=PRODUCTION"
    assert not provider.is_stale


async def test_rejected_credentials(catalog_server):
    async with aiohttp.ClientSession() as session:
        provider = ClientCredentialsTokenProvider(session, str(catalog_server.make_url("/no-such-endpoint")), "k", "s")
        with pytest.raises(TokenError):
            await provider.get_token()
