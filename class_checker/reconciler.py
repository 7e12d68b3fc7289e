
# ReconciliationLoop: one pass over every tracked section.

# per section:
#   - fetch the catalog entry and parse it into open/closed
#   - compare with the stored status
#   - on a change: notify the subscriber, then save the new status
#   - record one outcome: unchanged | changed | query_failed | persist_error
#
# sections are independent, so a pass checks them concurrently behind a
# semaphore. A section's failure never affects another section; only a
# failure to load the tracked set aborts the pass.

import asyncio
import logging

from class_checker.differ import detect_transition
from class_checker.errors import CatalogError, NotifyError, PersistError, TokenError
from class_checker.models import Outcome, PassReport, SectionReport, TrackedSection, utcnow

log = logging.getLogger(__name__)


class ReconciliationLoop:
    """
    Runs reconciliation passes. Passes never overlap: a second run_pass()
    waits for the first to finish.

    stop() lets in-flight sections finish (including their notification and
    save) and marks every section that hasn't started yet as SKIPPED.
    """

    def __init__(
        self,
        client,
        parser,
        store,
        notifier,
        max_concurrency: int = 8,
        notify_timeout: float = 15,
    ) -> None:
        self._client = client
        self._parser = parser
        self._store = store
        self._notifier = notifier
        self._max_concurrency = max_concurrency
        self._notify_timeout = notify_timeout
        self._pass_lock = asyncio.Lock()
        self._stopping = asyncio.Event()

    def stop(self) -> None:
        self._stopping.set()

    @property
    def stopping(self) -> bool:
        return self._stopping.is_set()

    async def run_pass(self) -> PassReport:
        """
        Check every tracked section once.

        Raises:
            StoreLoadError  when the tracked sections cannot be listed
        """
        async with self._pass_lock:
            report = PassReport()
            sections = await self._store.list_tracked()
            log.info("Pass started, %d tracked section(s)", len(sections))

            semaphore = asyncio.Semaphore(self._max_concurrency)
            report.sections = list(await asyncio.gather(
                *(self._run_one(section, semaphore) for section in sections)
            ))
            report.finished_at = utcnow()

            counts = report.counts()
            log.info(
                "Pass finished: changed=%d unchanged=%d query_failed=%d persist_error=%d skipped=%d",
                counts["changed"], counts["unchanged"], counts["query_failed"],
                counts["persist_error"], counts["skipped"],
            )
            return report

    async def _run_one(self, section: TrackedSection, semaphore: asyncio.Semaphore) -> SectionReport:
        async with semaphore:
            if self._stopping.is_set():
                return SectionReport(section=section, outcome=Outcome.SKIPPED)
            return await self.check_section(section)

    async def check_section(self, section: TrackedSection) -> SectionReport:
        try:
            body = await self._client.fetch(section)
            observed = self._parser.parse(body, section)

        except (CatalogError, TokenError) as exc:
            log.warning("Query failed for %s (%s): %s", section.label, exc.kind, exc)
            return SectionReport(section=section, outcome=Outcome.QUERY_FAILED, error=exc.kind)

        except asyncio.CancelledError:
            raise

        except Exception as exc:
            log.exception("Unexpected error checking %s: %s", section.label, exc)
            return SectionReport(section=section, outcome=Outcome.QUERY_FAILED, error="unexpected")

        transition = detect_transition(section, observed)
        if transition is None:
            log.debug("%s unchanged (%s)", section.label, "open" if observed.open else "closed")
            return SectionReport(section=section, outcome=Outcome.UNCHANGED, detected=observed.open)

        log.info(
            "%s changed %s → %s, notifying %s",
            section.label,
            "open" if transition.was_open else "closed",
            "open" if transition.now_open else "closed",
            section.subscriber,
        )
        # notify first, then persist: if the save fails the transition is
        # rediscovered (and re-notified) on the next pass
        notified = await self._notify(section, observed.open)

        section.status = observed.open
        try:
            await self._store.save(section, observed.open)
        except PersistError as exc:
            log.error("Could not save new status for %s: %s", section.label, exc)
            return SectionReport(
                section=section, outcome=Outcome.PERSIST_ERROR,
                detected=observed.open, error=exc.kind, notified=notified,
            )

        return SectionReport(section=section, outcome=Outcome.CHANGED, detected=observed.open, notified=notified)

    async def _notify(self, section: TrackedSection, is_open: bool) -> bool:
        try:
            await asyncio.wait_for(self._notifier.notify(section, is_open), timeout=self._notify_timeout)
            return True
        except NotifyError as exc:
            log.warning("Notification for %s dropped: %s", section.label, exc)
        except asyncio.TimeoutError:
            log.warning("Notification for %s timed out after %ss", section.label, self._notify_timeout)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            log.exception("Unexpected error notifying %s: %s", section.subscriber, exc)
        return False
