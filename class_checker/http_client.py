
# Catalog clients: one GET per tracked section, raw body back.
#
# Two deployment generations of the catalog exist:
#   - CatalogAPIClient:    REST gateway, bearer token, JSON body
#   - LegacyCatalogClient: LSA course guide HTML page, no auth
# Both share one aiohttp.ClientSession and never retry: a failed section is
# simply checked again on the next scheduled pass.

import asyncio
import logging
from urllib.parse import quote

import aiohttp

from class_checker.errors import Unreachable
from class_checker.models import TrackedSection

log = logging.getLogger(__name__)


def build_section_path(term: str, school: str = "", subject: str = "", number: str = "", section: str = "") -> str:
    """
    /Terms/{term}/Schools/{school}/Subjects/{subject}/CatalogNbrs/{number}/Sections/{section}

    Segments stop at the first empty identifier, so a partial path addresses
    the enclosing collection (all schools of a term, all sections of a course...).
    """
    path = "/Terms"
    parts = [("", term), ("Schools", school), ("Subjects", subject), ("CatalogNbrs", number), ("Sections", section)]
    for name, value in parts:
        if not value:
            break
        if name:
            path += f"/{name}"
        path += f"/{quote(value, safe='')}"
    return path


class _BaseCatalogClient:

    def __init__(self, session: aiohttp.ClientSession, timeout: float) -> None:
        self._session = session
        self._timeout = timeout

    def build_url(self, section: TrackedSection) -> str:
        raise NotImplementedError

    async def _headers(self) -> dict[str, str]:
        return {}

    async def fetch(self, section: TrackedSection) -> str:
        """
        GET the catalog entry for one section.

        Returns the body text. A non-2xx response that still carries a body is
        returned too, so the parser can recognise error pages.

        Raises:
            Unreachable  on connection errors, timeouts and empty error responses
        """
        url = self.build_url(section)
        headers = await self._headers()
        try:
            async with self._session.get(
                url,
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                body = await resp.text(errors="replace")
                if resp.status >= 400 and not body.strip():
                    log.warning("HTTP %s with empty body fetching %s", resp.status, url)
                    raise Unreachable(f"HTTP {resp.status} from {url}")
                if resp.status >= 400:
                    log.debug("HTTP %s fetching %s, handing body to parser", resp.status, url)
                return body

        except aiohttp.ClientError as exc:
            log.warning("Transport error fetching %s: %r", url, exc)
            raise Unreachable(f"{exc!r} fetching {url}") from exc
        except asyncio.TimeoutError as exc:
            log.warning("Timeout fetching %s", url)
            raise Unreachable(f"timeout after {self._timeout}s fetching {url}") from exc


class CatalogAPIClient(_BaseCatalogClient):

    def __init__(self, session: aiohttp.ClientSession, api_base: str, token_provider, timeout: float) -> None:
        super().__init__(session, timeout)
        self._base = api_base.rstrip("/")
        self._tokens = token_provider

    def build_url(self, section: TrackedSection) -> str:
        return self._base + build_section_path(
            section.term, section.school, section.subject, section.number, section.section,
        )

    async def _headers(self) -> dict[str, str]:
        token = await self._tokens.get_token()
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }


class LegacyCatalogClient(_BaseCatalogClient):

    def __init__(
        self,
        session: aiohttp.ClientSession,
        page_url: str,
        content_marker: str,
        term_array: str,
        timeout: float,
    ) -> None:
        super().__init__(session, timeout)
        self._page_url = page_url
        self._marker = content_marker
        self._term_array = term_array

    def build_url(self, section: TrackedSection) -> str:
        # order matters: marker + subject + number + section, as the course guide expects
        content = f"{self._marker}{section.subject}{section.number}{section.section}"
        return f"{self._page_url}?content={quote(content, safe='')}&termArray={quote(self._term_array, safe='')}"
