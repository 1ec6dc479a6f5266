"""Assignment notifier — emails assignees when a task is created for them.

Learn: Notifications are fire-and-forget. TaskService hands the notifier
plain snapshots (names, emails, task fields) and schedule() starts an
independent asyncio task, so:
- the create request returns without waiting on the mail server
- the background task never touches the request's database session
- one recipient failing (error or timeout) doesn't stop the others

Failures are logged and never reach the API caller.
"""

import asyncio
import html
import smtplib
from dataclasses import dataclass
from datetime import datetime
from email.message import EmailMessage
from typing import Optional, Protocol

import structlog

from taskmate.config import settings

logger = structlog.get_logger()

SUBJECT = "New Task Assignment"


@dataclass(frozen=True)
class Recipient:
    name: str
    email: str


@dataclass(frozen=True)
class TaskSnapshot:
    title: str
    description: str
    priority: str
    due_date: Optional[datetime]


@dataclass
class NotifyResult:
    sent: list[str]
    failed: list[str]


# ─── Transports ──────────────────────────────────────────


class MailTransport(Protocol):
    async def send(self, to: str, subject: str, html_body: str) -> None: ...


class SmtpMailTransport:
    """Sends mail through an SMTP relay.

    smtplib is blocking, so each message is sent from a worker thread.
    """

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    async def send(self, to: str, subject: str, html_body: str) -> None:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML-capable mail client.")
        msg.add_alternative(html_body, subtype="html")
        await asyncio.to_thread(self._send_sync, msg)

    def _send_sync(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password)
            smtp.send_message(msg)


class LoggingMailTransport:
    """Development transport: logs instead of sending."""

    async def send(self, to: str, subject: str, html_body: str) -> None:
        logger.info("notifier.mail_logged", to=to, subject=subject)


# ─── Message composition ─────────────────────────────────


def format_due_date(due_date: Optional[datetime]) -> str:
    if due_date is None:
        return "No due date"
    return due_date.strftime("%Y-%m-%d")


def compose_assignment_email(creator: Recipient, task: TaskSnapshot) -> str:
    """HTML body for one assignment email. All user text is escaped."""
    e = html.escape
    return (
        "<h2>New Task Assigned</h2>\n"
        f"<p><strong>{e(creator.name)}</strong> has assigned you a new task:</p>\n"
        f"<h3>{e(task.title)}</h3>\n"
        f"<p>{e(task.description or '')}</p>\n"
        f"<p>Priority: {e(task.priority)}</p>\n"
        f"<p>Due Date: {format_due_date(task.due_date)}</p>\n"
    )


# ─── Notifier ────────────────────────────────────────────


class AssignmentNotifier:
    """Composes and dispatches assignment emails off the request path."""

    def __init__(self, transport: MailTransport, timeout: float = 10.0):
        self.transport = transport
        self.timeout = timeout
        self._pending: set[asyncio.Task] = set()

    async def notify(
        self,
        creator: Recipient,
        assignees: list[Recipient],
        task: TaskSnapshot,
    ) -> NotifyResult:
        """Send one email per assignee. Never raises for delivery failures."""
        body = compose_assignment_email(creator, task)
        result = NotifyResult(sent=[], failed=[])

        for assignee in assignees:
            try:
                await asyncio.wait_for(
                    self.transport.send(assignee.email, SUBJECT, body),
                    timeout=self.timeout,
                )
                result.sent.append(assignee.email)
            except asyncio.TimeoutError:
                logger.warning(
                    "notifier.send_timeout", to=assignee.email, timeout=self.timeout
                )
                result.failed.append(assignee.email)
            except Exception as e:
                logger.warning("notifier.send_failed", to=assignee.email, error=str(e))
                result.failed.append(assignee.email)

        logger.info(
            "notifier.done",
            title=task.title,
            sent=len(result.sent),
            failed=len(result.failed),
        )
        return result

    def schedule(
        self,
        creator: Recipient,
        assignees: list[Recipient],
        task: TaskSnapshot,
    ) -> asyncio.Task:
        """Start notify() as an independent task and return immediately."""
        bg = asyncio.create_task(self.notify(creator, assignees, task))
        self._pending.add(bg)
        bg.add_done_callback(self._on_done)
        return bg

    def _on_done(self, bg: asyncio.Task) -> None:
        self._pending.discard(bg)
        if bg.cancelled():
            return
        exc = bg.exception()
        if exc is not None:
            logger.error("notifier.crashed", error=str(exc))

    async def drain(self) -> None:
        """Wait for every scheduled notification to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def build_transport() -> MailTransport:
    if not settings.smtp_host:
        return LoggingMailTransport()
    return SmtpMailTransport(
        host=settings.smtp_host,
        port=settings.smtp_port,
        sender=settings.mail_from,
        username=settings.smtp_username,
        password=settings.smtp_password,
        use_tls=settings.smtp_use_tls,
        timeout=settings.mail_timeout_seconds,
    )


_notifier: Optional[AssignmentNotifier] = None


def get_notifier() -> AssignmentNotifier:
    """FastAPI dependency: one notifier per process."""
    global _notifier
    if _notifier is None:
        _notifier = AssignmentNotifier(
            build_transport(), timeout=settings.mail_timeout_seconds
        )
    return _notifier
