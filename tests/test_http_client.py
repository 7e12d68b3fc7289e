import asyncio

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from class_checker.auth import StaticTokenProvider
from class_checker.errors import Unreachable
from class_checker.http_client import CatalogAPIClient, LegacyCatalogClient, build_section_path
from tests.conftest import make_section, seats_body


def test_full_section_path():
    path = build_section_path("2460", "ENG", "EECS", "281", "002")
    assert path == "/Terms/2460/Schools/ENG/Subjects/EECS/CatalogNbrs/281/Sections/002"


def test_path_stops_at_first_empty_identifier():
    assert build_section_path("2460") == "/Terms/2460"
    assert build_section_path("2460", "ENG", "", "281") == "/Terms/2460/Schools/ENG"


async def test_legacy_url_concatenates_subject_number_section():
    async with aiohttp.ClientSession() as session:
        client = LegacyCatalogClient(
            session, "http://www.lsa.umich.edu/cg/cg_sections.aspx", "1960", "f_13_1960", timeout=5,
        )
        url = client.build_url(make_section("002", subject="MATH", number="217"))
    assert url == "http://www.lsa.umich.edu/cg/cg_sections.aspx?content=1960MATH217002&termArray=f_13_1960"


async def test_api_fetch_sends_bearer_token(catalog_server):
    catalog_server.app["bodies"]["002"] = (200, seats_body("3"))
    async with aiohttp.ClientSession() as session:
        client = CatalogAPIClient(session, str(catalog_server.make_url("/")), StaticTokenProvider("abc"), timeout=5)
        body = await client.fetch(make_section("002"))

    assert "AvailableSeats" in body
    assert catalog_server.app["auth"] == ["Bearer abc"]


async def test_error_status_with_body_is_returned(catalog_server):
    catalog_server.app["bodies"]["002"] = (404, '{"error": "Section information is currently not available"}')
    async with aiohttp.ClientSession() as session:
        client = CatalogAPIClient(session, str(catalog_server.make_url("/")), StaticTokenProvider("abc"), timeout=5)
        body = await client.fetch(make_section("002"))
    assert "not available" in body


async def test_error_status_without_body_is_unreachable(catalog_server):
    catalog_server.app["bodies"]["002"] = (503, "")
    async with aiohttp.ClientSession() as session:
        client = CatalogAPIClient(session, str(catalog_server.make_url("/")), StaticTokenProvider("abc"), timeout=5)
        with pytest.raises(Unreachable):
            await client.fetch(make_section("002"))


async def test_timeout_is_unreachable():
    async def slow(request):
        await asyncio.sleep(2)
        return web.Response(text="late")

    app = web.Application()
    app.router.add_get("/cg", slow)
    server = TestServer(app)
    await server.start_server()
    try:
        async with aiohttp.ClientSession() as session:
            client = LegacyCatalogClient(session, str(server.make_url("/cg")), "1960", "f_13_1960", timeout=0.1)
            with pytest.raises(Unreachable):
                await client.fetch(make_section())
    finally:
        await server.close()


async def test_connection_refused_is_unreachable(unused_tcp_port):
    async with aiohttp.ClientSession() as session:
        client = CatalogAPIClient(session, f"http://127.0.0.1:{unused_tcp_port}", StaticTokenProvider("t"), timeout=2)
        with pytest.raises(Unreachable):
            await client.fetch(make_section())
