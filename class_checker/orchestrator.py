
# ClassChecker: the top-level orchestrator.

# Responsibilities:
#   - Own the shared aiohttp session and connection pool
#   - Wire config → token provider → catalog client → parser → loop
#   - Run one pass on demand, or a pass every poll_interval seconds
#   - Register new sections after checking them against the catalog
#   - Provide a clean stop() method for graceful shutdown

import asyncio
import logging

import aiohttp

from class_checker.auth import ClientCredentialsTokenProvider, StaticTokenProvider
from class_checker.config import CheckerConfig
from class_checker.errors import StoreLoadError, TokenError
from class_checker.handlers import ConsoleNotifier, EmailNotifier
from class_checker.http_client import CatalogAPIClient, LegacyCatalogClient
from class_checker.models import PassReport, TrackedSection
from class_checker.parser import make_parser
from class_checker.reconciler import ReconciliationLoop
from class_checker.store import SqliteStatusStore

log = logging.getLogger(__name__)

USER_AGENT = "ClassChecker/1.0 (seat-tracker)"


def make_notifier(config: CheckerConfig):
    if config.notifier == "console":
        return ConsoleNotifier()
    return EmailNotifier(
        sender=config.mail_sender,
        subject=config.mail_subject,
        host=config.smtp_host,
        port=config.smtp_port,
        username=config.smtp_user,
        password=config.smtp_password,
        timeout=config.notify_timeout,
    )


class ClassChecker:
    """
    Use as an async context manager so the HTTP session is always closed:

        async with ClassChecker(config) as checker:
            report = await checker.check_once()

    store and notifier default to the ones named in config; pass your own
    to swap them out.
    """

    def __init__(self, config: CheckerConfig, store=None, notifier=None) -> None:
        self.config = config
        self._owns_store = store is None
        self.store = SqliteStatusStore(config.database_path) if store is None else store
        self.notifier = notifier if notifier is not None else make_notifier(config)
        self.parser = make_parser(config.catalog_mode)
        self._session: aiohttp.ClientSession | None = None
        self._tokens = None
        self._client = None
        self.loop: ReconciliationLoop | None = None
        self._stopped = asyncio.Event()

    async def __aenter__(self) -> "ClassChecker":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def start(self) -> None:
        connector = aiohttp.TCPConnector(limit=self.config.pool_limit)
        self._session = aiohttp.ClientSession(
            connector=connector,
            headers={"User-Agent": USER_AGENT},
        )
        self._client = self._make_client(self._session)
        self.loop = ReconciliationLoop(
            client=self._client,
            parser=self.parser,
            store=self.store,
            notifier=self.notifier,
            max_concurrency=self.config.max_concurrency,
            notify_timeout=self.config.notify_timeout,
        )

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None
        if self._owns_store:
            self.store.close()

    def _make_client(self, session: aiohttp.ClientSession):
        cfg = self.config
        if cfg.catalog_mode == "legacy":
            return LegacyCatalogClient(
                session,
                page_url=cfg.legacy_url,
                content_marker=cfg.legacy_content_marker,
                term_array=cfg.legacy_term_array,
                timeout=cfg.request_timeout,
            )

        if cfg.consumer_key and cfg.consumer_secret:
            self._tokens = ClientCredentialsTokenProvider(
                session, cfg.token_url, cfg.consumer_key, cfg.consumer_secret, timeout=cfg.request_timeout,
            )
        else:
            self._tokens = StaticTokenProvider(cfg.access_token)
        return CatalogAPIClient(session, cfg.api_base, self._tokens, timeout=cfg.request_timeout)

    def _require_started(self) -> ReconciliationLoop:
        if self.loop is None:
            raise RuntimeError("ClassChecker.start() has not been called")
        return self.loop

    async def check_once(self) -> PassReport:
        """Run exactly one reconciliation pass (refreshing the API token first if stale)."""
        loop = self._require_started()
        if self._tokens is not None:
            await self._tokens.refresh_if_stale()
        return await loop.run_pass()

    async def register(self, section: TrackedSection) -> TrackedSection:
        """
        Start tracking a section.

        The section is looked up in the catalog first; its current status
        becomes the stored starting point, so the subscriber is only told
        about changes from here on.

        Raises:
            CatalogError  when the section can't be found or read
            PersistError  when it can't be stored
        """
        self._require_started()
        if self._tokens is not None:
            await self._tokens.refresh_if_stale()
        body = await self._client.fetch(section)
        observed = self.parser.parse(body, section)
        tracked = section.with_status(observed.open)
        await self.store.add(tracked)
        log.info(
            "Now tracking %s for %s (currently %s)",
            tracked.label, tracked.subscriber, "open" if tracked.status else "closed",
        )
        return tracked

    async def run_forever(self) -> None:
        loop = self._require_started()
        log.info(
            "ClassChecker running: %s catalog, pass every %ss. Press Ctrl+C to stop.",
            self.config.catalog_mode, self.config.poll_interval,
        )
        while not self._stopped.is_set():
            try:
                report = await self.check_once()
                log.debug("Pass summary:\n%s", report.to_text())
            except StoreLoadError as exc:
                log.error("Pass aborted, could not load tracked sections: %s", exc)
            except TokenError as exc:
                log.error("Pass aborted, no catalog API token: %s", exc)
            except asyncio.CancelledError:
                log.info("ClassChecker cancelled.")
                raise
            except Exception as exc:
                log.exception("Unexpected error during pass: %s", exc)

            if loop.stopping:
                break
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.config.poll_interval)
            except asyncio.TimeoutError:
                pass

    def stop(self) -> None:
        """Finish in-flight sections, skip the rest, and leave run_forever()."""
        self._stopped.set()
        if self.loop is not None:
            self.loop.stop()
