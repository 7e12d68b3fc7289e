
# Inbound HTTP trigger.
#
#   GET|POST /checkClasses        run one pass, reply with the per-section summary
#                                 (JSON by default, ?format=text for plain text)
#   POST     /addClassToTrack     register a section (JSON body or form fields)
#
# Meant to be hit by an external scheduler (cron, a cloud scheduler job...)
# instead of, or as well as, the built-in poll loop.

import logging

from aiohttp import web

from class_checker.errors import CatalogError, NotFound, PersistError, StoreLoadError, TokenError
from class_checker.models import TrackedSection
from class_checker.orchestrator import ClassChecker

log = logging.getLogger(__name__)

CHECKER_KEY = web.AppKey("checker", ClassChecker)

_REQUIRED_FIELDS = ("term", "school", "subject", "number", "section", "subscriber")


async def check_classes(request: web.Request) -> web.StreamResponse:
    checker = request.app[CHECKER_KEY]
    try:
        report = await checker.check_once()
    except StoreLoadError as exc:
        log.error("checkClasses: could not load tracked sections: %s", exc)
        return web.json_response({"error": str(exc)}, status=500)
    except TokenError as exc:
        log.error("checkClasses: no catalog API token: %s", exc)
        return web.json_response({"error": str(exc)}, status=502)

    if request.query.get("format") == "text":
        return web.Response(text=report.to_text(), content_type="text/plain")
    return web.json_response(report.to_dict())


async def add_class(request: web.Request) -> web.StreamResponse:
    checker = request.app[CHECKER_KEY]
    if request.content_type == "application/json":
        try:
            data = await request.json()
        except ValueError:
            return web.json_response({"error": "invalid JSON body"}, status=400)
        if not isinstance(data, dict):
            return web.json_response({"error": "expected a JSON object"}, status=400)
    else:
        data = dict(await request.post())

    values = {name: str(data.get(name, "")).strip() for name in _REQUIRED_FIELDS}
    missing = [name for name, value in values.items() if not value]
    if missing:
        return web.json_response({"error": f"missing field(s): {', '.join(missing)}"}, status=400)
    values["subject"] = values["subject"].upper()

    try:
        tracked = await checker.register(TrackedSection(**values))
    except NotFound as exc:
        return web.json_response({"error": f"couldn't find that class in the catalog: {exc}"}, status=404)
    except (CatalogError, TokenError) as exc:
        return web.json_response({"error": str(exc), "kind": exc.kind}, status=502)
    except PersistError as exc:
        return web.json_response({"error": f"there was a problem storing your class: {exc}"}, status=500)

    return web.json_response(
        {**values, "status": "open" if tracked.status else "closed"},
        status=201,
    )


def create_app(checker: ClassChecker) -> web.Application:
    """The checker must already be started; its lifetime is the caller's."""
    app = web.Application()
    app[CHECKER_KEY] = checker
    app.router.add_route("GET", "/checkClasses", check_classes)
    app.router.add_route("POST", "/checkClasses", check_classes)
    app.router.add_post("/addClassToTrack", add_class)
    return app
