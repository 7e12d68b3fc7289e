import json

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from class_checker.errors import NotifyError, Unreachable
from class_checker.models import TrackedSection

SECTION_ROUTE = "/Terms/{term}/Schools/{school}/Subjects/{subject}/CatalogNbrs/{number}/Sections/{section}"


def seats_body(seats: str) -> str:
    return json.dumps({"getSOCSectionDetailResponse": {"SectionNumber": "002", "AvailableSeats": seats}})


def make_section(section: str = "002", status: bool = False, subject: str = "EECS", number: str = "281") -> TrackedSection:
    return TrackedSection(
        term="2460", school="ENG", subject=subject, number=number,
        section=section, subscriber="student@umich.edu", status=status,
    )


class FakeCatalogClient:
    """Returns canned bodies (or raises canned errors) keyed by section number."""

    def __init__(self, responses: dict[str, object]) -> None:
        self.responses = responses
        self.calls: list[str] = []

    async def fetch(self, section: TrackedSection) -> str:
        self.calls.append(section.section)
        result = self.responses[section.section]
        if isinstance(result, Exception):
            raise result
        return result


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[str, bool]] = []
        self.fail = fail

    async def notify(self, section: TrackedSection, is_open: bool) -> None:
        if self.fail:
            raise NotifyError("smtp down")
        self.sent.append((section.section, is_open))


@pytest.fixture
def unreachable() -> Unreachable:
    return Unreachable("timeout after 10s")


@pytest_asyncio.fixture
async def catalog_server():
    """
    A fake SOC catalog API. Tests fill `server.app["bodies"]` with
    section number → (status, body) and read `server.app["auth"]`.
    """
    async def section_detail(request: web.Request) -> web.Response:
        request.app["auth"].append(request.headers.get("Authorization"))
        status, body = request.app["bodies"].get(request.match_info["section"], (404, ""))
        return web.Response(status=status, text=body, content_type="application/json")

    async def token(request: web.Request) -> web.Response:
        request.app["token_requests"].append((request.headers.get("Authorization"), await request.text()))
        return web.json_response({"access_token": "fresh-token", "expires_in": 3600})

    app = web.Application()
    app["bodies"] = {}
    app["auth"] = []
    app["token_requests"] = []
    app.router.add_get(SECTION_ROUTE, section_detail)
    app.router.add_post("/token", token)

    server = TestServer(app)
    await server.start_server()
    yield server
    await server.close()
