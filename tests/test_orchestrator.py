import asyncio

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from class_checker.config import CheckerConfig
from class_checker.errors import NotFound
from class_checker.models import Outcome
from class_checker.orchestrator import ClassChecker
from class_checker.store import InMemoryStatusStore
from tests.conftest import RecordingNotifier, make_section

ROW = "<table border=1 cellspacing=0 cellpadding=3><tr><td><b>{section}<br>"


@pytest_asyncio.fixture
async def course_guide():
    """Legacy course guide page; `statuses` maps section number → span text."""
    async def sections_page(request: web.Request) -> web.Response:
        request.app["queries"].append(dict(request.query))
        rows = "".join(
            ROW.format(section=sec) + f"Lecture</td><td><span class=status>{text}</span></td></tr></table>"
            for sec, text in request.app["statuses"].items()
        )
        if not rows:
            rows = "<p>Section information is currently not available</p>"
        return web.Response(text=f"<html><body>{rows}</body></html>", content_type="text/html")

    app = web.Application()
    app["statuses"] = {}
    app["queries"] = []
    app.router.add_get("/cg/cg_sections.aspx", sections_page)
    server = TestServer(app)
    await server.start_server()
    yield server
    await server.close()


def legacy_config(server, **kwargs) -> CheckerConfig:
    return CheckerConfig(
        catalog_mode="legacy",
        legacy_url=str(server.make_url("/cg/cg_sections.aspx")),
        request_timeout=5,
        **kwargs,
    )


async def test_legacy_pass_end_to_end(course_guide):
    course_guide.app["statuses"].update({"001": "Open", "002": "Closed"})
    store = InMemoryStatusStore([make_section("001", status=False), make_section("002", status=False)])
    notifier = RecordingNotifier()

    async with ClassChecker(legacy_config(course_guide), store=store, notifier=notifier) as checker:
        report = await checker.check_once()

    assert {r.section.section: r.outcome for r in report.sections} == {
        "001": Outcome.CHANGED,
        "002": Outcome.UNCHANGED,
    }
    assert notifier.sent == [("001", True)]
    assert {"content": "1960EECS281001", "termArray": "f_13_1960"} in course_guide.app["queries"]


async def test_register_uses_current_status(course_guide):
    course_guide.app["statuses"]["005"] = "Open"
    store = InMemoryStatusStore()

    async with ClassChecker(legacy_config(course_guide), store=store, notifier=RecordingNotifier()) as checker:
        tracked = await checker.register(make_section("005"))

    assert tracked.status is True
    assert store.get(tracked.key).status is True


async def test_register_unknown_section(course_guide):
    store = InMemoryStatusStore()
    async with ClassChecker(legacy_config(course_guide), store=store, notifier=RecordingNotifier()) as checker:
        with pytest.raises(NotFound):
            await checker.register(make_section("404"))
    assert await store.list_tracked() == []


async def test_run_forever_polls_until_stopped(course_guide):
    course_guide.app["statuses"]["001"] = "Open"
    store = InMemoryStatusStore([make_section("001", status=True)])
    config = legacy_config(course_guide, poll_interval=0.01)

    async with ClassChecker(config, store=store, notifier=RecordingNotifier()) as checker:
        task = asyncio.create_task(checker.run_forever())
        while len(course_guide.app["queries"]) < 3:
            await asyncio.sleep(0.01)
        checker.stop()
        await asyncio.wait_for(task, timeout=2)

    assert task.done() and task.exception() is None


async def test_check_once_requires_start():
    checker = ClassChecker(CheckerConfig(), store=InMemoryStatusStore(), notifier=RecordingNotifier())
    with pytest.raises(RuntimeError):
        await checker.check_once()
