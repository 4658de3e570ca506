"""
services/notifications.py

알림(이메일) 발송 큐 서비스.

이 파일은 서비스 계층이 이메일 발송을 "요청"만 하고
실제 발송은 백그라운드 스레드가 처리하도록 하는 outbox를 제공한다.

주요 기능:
- 알림 종류별 메일 템플릿 렌더링 (verification / password-reset / task-assignment)
- 인메모리 큐 + 워커 스레드 기반 비동기 발송
- SMTP 설정이 없으면 경고 로그만 남기고 건너뜀
- SMTP 연결은 SMTP_TIMEOUT, 종료는 stop(timeout) 안에서 끝남

설계 원칙:
- enqueue()는 절대 예외를 던지지 않는다 (호출 측 트랜잭션과 완전히 분리)
- 재시도하지 않는다 (at-least-once 보장 불필요)
- 발송 실패는 로그로만 남긴다

관련 파일:
- app.services.accounts  : 인증 / 재설정 메일 요청
- app.services.tasks     : 작업 배정 메일 요청
- app.main               : outbox 시작 / 종료 (lifespan)

"""

import logging
import queue
import smtplib
import threading
import time
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from urllib.parse import quote

from app.core.config import Settings

logger = logging.getLogger(__name__)

VERIFICATION = "verification"
PASSWORD_RESET = "password-reset"
TASK_ASSIGNMENT = "task-assignment"


@dataclass
class Notification:
    kind: str
    recipient: str
    template_data: dict = field(default_factory=dict)


@dataclass
class RenderedEmail:
    subject: str
    text: str
    html: str


def render_email(notification: Notification, settings: Settings) -> RenderedEmail:
    data = notification.template_data
    app_name = settings.APP_NAME
    base_url = settings.FRONTEND_URL.rstrip("/")

    if notification.kind == VERIFICATION:
        url = f"{base_url}/verify-email?token={quote(data['token'])}"
        return RenderedEmail(
            subject=f"{app_name} - Verify your email",
            text="\n".join([
                f"Welcome to {app_name}!",
                "",
                "Please verify your email address by opening the link below:",
                "",
                url,
                "",
                "This link expires in 24 hours.",
                "",
                "If you did not create an account, you can safely ignore this email.",
            ]),
            html=(
                f"<h2>Welcome to {app_name}!</h2>"
                "<p>Please verify your email address by clicking the button below:</p>"
                f'<p><a href="{url}">Verify Email</a></p>'
                "<p>This link expires in 24 hours.</p>"
            ),
        )

    if notification.kind == PASSWORD_RESET:
        url = f"{base_url}/reset-password?token={quote(data['token'])}"
        return RenderedEmail(
            subject=f"{app_name} - Reset your password",
            text="\n".join([
                "You requested a password reset.",
                "",
                "Open the link below to set a new password:",
                "",
                url,
                "",
                "This link expires in 15 minutes.",
                "",
                "If you did not request this, you can safely ignore this email.",
            ]),
            html=(
                "<h2>Password Reset</h2>"
                f'<p><a href="{url}">Reset Password</a></p>'
                "<p>This link expires in 15 minutes.</p>"
            ),
        )

    if notification.kind == TASK_ASSIGNMENT:
        url = f"{base_url}/dashboard/groups?task={quote(str(data['task_id']))}"
        assigner = data.get("assigner_name", "Someone")
        title = data.get("task_title", "")
        return RenderedEmail(
            subject=f"{app_name} - You've been assigned a task",
            text="\n".join([
                f'{assigner} assigned you a task: "{title}"',
                "",
                "View and accept the task:",
                "",
                url,
            ]),
            html=(
                f"<p><strong>{assigner}</strong> assigned you a task: <em>{title}</em></p>"
                f'<p><a href="{url}">View Task</a></p>'
            ),
        )

    raise ValueError(f"unknown notification kind: {notification.kind}")


class NotificationSink:
    """알림 수신 인터페이스. enqueue는 예외 없이 즉시 반환해야 한다."""

    def enqueue(self, kind: str, recipient: str, template_data: dict) -> None:
        raise NotImplementedError

    def start(self) -> None:
        pass

    def stop(self) -> None:
        pass


class EmailOutbox(NotificationSink):
    def __init__(self, settings: Settings, maxsize: int = 1000):
        self.settings = settings
        self._queue: queue.Queue[Notification | None] = queue.Queue(maxsize=maxsize)
        self._worker: threading.Thread | None = None

    def enqueue(self, kind: str, recipient: str, template_data: dict) -> None:
        try:
            self._queue.put_nowait(Notification(kind=kind, recipient=recipient, template_data=template_data))
            logger.debug("Email job enqueued kind=%s", kind)
        except Exception:
            # 큐 적재 실패가 API 요청을 실패시키면 안 됨
            logger.exception("Failed to enqueue email job kind=%s", kind)

    def start(self) -> None:
        if self._worker is not None:
            return
        self._worker = threading.Thread(target=self._run, name="email-outbox", daemon=True)
        self._worker.start()
        logger.info("Email outbox worker started")

    def stop(self, timeout: float = 5.0) -> None:
        # 종료 신호 적재와 워커 대기 모두 timeout 안에서 끝낸다
        if self._worker is None:
            return
        deadline = time.monotonic() + timeout
        try:
            self._queue.put(None, timeout=timeout)
        except queue.Full:
            logger.warning("Email outbox queue full on shutdown, dropping %d pending jobs", self._queue.qsize())
        self._worker.join(timeout=max(0.0, deadline - time.monotonic()))
        if self._worker.is_alive():
            logger.warning("Email outbox worker did not stop within %.1fs", timeout)
        self._worker = None

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is None:
                break
            try:
                self.send(item)
            except Exception:
                logger.exception("Failed to send email kind=%s", item.kind)

    def send(self, notification: Notification) -> bool:
        s = self.settings
        if not s.SMTP_SERVER or not s.SMTP_USERNAME:
            logger.warning("SMTP not configured, skipping %s email", notification.kind)
            return False

        rendered = render_email(notification, s)

        msg = MIMEMultipart("alternative")
        msg["Subject"] = rendered.subject
        msg["From"] = f"{s.APP_NAME} <{s.SMTP_FROM}>"
        msg["To"] = notification.recipient
        msg.attach(MIMEText(rendered.text, "plain"))
        msg.attach(MIMEText(rendered.html, "html"))

        with smtplib.SMTP(s.SMTP_SERVER, s.SMTP_PORT, timeout=s.SMTP_TIMEOUT) as server:
            server.ehlo()
            server.starttls()
            server.ehlo()
            server.login(s.SMTP_USERNAME, s.SMTP_PASSWORD or "")
            server.sendmail(s.SMTP_FROM, notification.recipient, msg.as_string())

        logger.info("Email sent kind=%s", notification.kind)
        return True
