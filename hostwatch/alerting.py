"""
告警汇总与邮件发送模块。

筛选出所有 alert=True 的巡检结果，渲染为一封多行邮件，
通过 aiosmtplib 提交到配置的 SMTP 中继。发送失败时按配置重试，
全部失败后抛出 AlertDeliveryError。
"""
import asyncio
import logging
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List

import aiosmtplib

from hostwatch.config import SMTPConfig
from hostwatch.errors import AlertDeliveryError
from hostwatch.models import HostResult

logger = logging.getLogger(__name__)

NO_ALERT_MESSAGE = "All hosts are within the CPU threshold. No alert sent."


@dataclass
class AlertOutcome:
    """一次告警分发的结果。"""
    batch: List[HostResult]
    body: str = ""
    sent: bool = False
    attempts: int = 0

    @property
    def message(self) -> str:
        if not self.batch:
            return NO_ALERT_MESSAGE
        if self.sent:
            return f"Alert email sent for {len(self.batch)} host(s)."
        return f"Alert for {len(self.batch)} host(s) not sent (dry run)."


def alert_batch(results: List[HostResult]) -> List[HostResult]:
    """筛选需要告警的结果，保持原有顺序。"""
    return [r for r in results if r.alert]


def render_alert_body(batch: List[HostResult]) -> str:
    """每台告警主机一行：'<host>: <details>'。"""
    return "\n".join(f"{r.host}: {r.details}" for r in batch)


def build_message(smtp: SMTPConfig, body: str) -> MIMEMultipart:
    msg = MIMEMultipart()
    msg["From"] = smtp.sender
    msg["To"] = ", ".join(smtp.recipients)
    msg["Subject"] = smtp.subject
    msg.attach(MIMEText(body, "plain", "utf-8"))
    return msg


async def send_alert_email(smtp: SMTPConfig, body: str) -> int:
    """提交告警邮件，返回实际尝试次数。

    Raises:
        AlertDeliveryError: 未配置收件人，或重试耗尽仍失败时抛出。
    """
    if not smtp.recipients:
        raise AlertDeliveryError("No alert recipients configured (smtp.to)")

    msg = build_message(smtp, body)
    kwargs = {"hostname": smtp.server, "port": smtp.port}
    if smtp.username:
        kwargs["username"] = smtp.username
        kwargs["password"] = smtp.password
    if smtp.use_tls:
        kwargs["use_tls"] = True
    elif smtp.start_tls:
        kwargs["start_tls"] = True

    last_error = ""
    # 带重试的发送逻辑
    for attempt in range(smtp.retries):
        try:
            await aiosmtplib.send(msg, **kwargs)
            logger.info(f"Alert email sent to {msg['To']} via {smtp.server}:{smtp.port}")
            return attempt + 1
        except (aiosmtplib.SMTPException, OSError) as e:
            last_error = str(e)[:500]
            logger.warning(f"Alert email attempt {attempt + 1}/{smtp.retries} failed: {last_error}")
            if attempt + 1 < smtp.retries:
                await asyncio.sleep(smtp.retry_delay)

    raise AlertDeliveryError(
        f"Failed to send alert email after {smtp.retries} attempt(s): {last_error}"
    )


async def dispatch_alerts(
    results: List[HostResult],
    smtp: SMTPConfig,
    dry_run: bool = False,
) -> AlertOutcome:
    """汇总全部结果；有告警时发送一封邮件，否则不发送。"""
    batch = alert_batch(results)
    outcome = AlertOutcome(batch=batch)
    if not batch:
        logger.info("No alerting hosts")
        return outcome

    outcome.body = render_alert_body(batch)
    if dry_run:
        logger.info(f"Dry run: skipping alert email for {len(batch)} host(s)")
        return outcome

    outcome.attempts = await send_alert_email(smtp, outcome.body)
    outcome.sent = True
    return outcome
