
# notification dispatchers: the output layer of a reconciliation pass.

# each dispatcher receives the section whose status flipped plus the new
# status and tells the subscriber about it. All wording lives here; the
# TrackedSection model carries no display logic.

# to add a new output target, implement a class with:
#     async def notify(self, section: TrackedSection, is_open: bool) -> None: ...
# raising NotifyError on failure, and select it in orchestrator.py.


import asyncio
import logging
import smtplib
from datetime import datetime, timezone
from email.message import EmailMessage

from class_checker.errors import NotifyError
from class_checker.models import TrackedSection

log = logging.getLogger(__name__)

_R = "\033[0m"   # reset

_STATUS_COLOR: dict[bool, str] = {
    True:  "\033[32m",   # green: seats available
    False: "\033[31m",   # red: full
}

OPENED_MESSAGE = " opened up! Register as soon as you can!"
FILLED_MESSAGE = " filled up! Crap. Sorry."


def _ts() -> str:
    """ISO 8601 UTC timestamp, e.g. 2026-02-21T12:39:08Z"""
    return datetime.now(tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def status_message(is_open: bool) -> str:
    return OPENED_MESSAGE if is_open else FILLED_MESSAGE


def build_body(section: TrackedSection, is_open: bool) -> str:
    return (
        "Hey!\n\n"
        f"The Umich Class Checker noticed that {section.label}{status_message(is_open)}\n\n"
        "Have a good one!"
    )


class EmailNotifier:
    """
    Sends the status-change mail over SMTP (STARTTLS when credentials are set).

    smtplib is blocking, so the send runs in a worker thread and the event
    loop keeps serving other sections meanwhile.
    """

    def __init__(
        self,
        sender: str,
        subject: str,
        host: str,
        port: int,
        username: str = "",
        password: str = "",
        timeout: float = 15,
    ) -> None:
        self._sender = sender
        self._subject = subject
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._timeout = timeout

    def build_message(self, section: TrackedSection, is_open: bool) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self._sender
        msg["To"] = section.subscriber
        msg["Subject"] = self._subject
        msg.set_content(build_body(section, is_open))
        return msg

    def _send_sync(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
            if self._username:
                smtp.starttls()
                smtp.login(self._username, self._password)
            smtp.send_message(msg)

    async def notify(self, section: TrackedSection, is_open: bool) -> None:
        msg = self.build_message(section, is_open)
        try:
            await asyncio.to_thread(self._send_sync, msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotifyError(f"mail to {section.subscriber} failed: {exc!r}") from exc
        log.info("Mailed %s about %s", section.subscriber, section.label)


class ConsoleNotifier:
    """
    Prints one line per status change to stdout instead of sending mail.

    Format:
        [2026-02-21T12:39:08Z] EECS 281, section 002 | OPEN | To=student@umich.edu | opened up! Register as soon as you can!
    """

    async def notify(self, section: TrackedSection, is_open: bool) -> None:
        print(self._format(section, is_open), flush=True)

    def _format(self, section: TrackedSection, is_open: bool) -> str:
        color = _STATUS_COLOR[is_open]
        status = f"{color}{'OPEN' if is_open else 'CLOSED'}{_R}"
        return (
            f"[{_ts()}] "
            f"{section.label} | "
            f"{status} | "
            f"To={section.subscriber} | "
            f"{status_message(is_open).strip()}"
        )
