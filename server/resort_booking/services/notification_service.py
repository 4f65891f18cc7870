"""Transactional booking emails over an HTTP email API."""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from html import escape
from typing import Optional

import httpx

from ..core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookingNotice:
    """Everything an email about one booking needs, captured before the request ends."""

    tenant_name: str
    reference_number: str
    guest_name: str
    guest_email: str
    accommodation_name: str
    room_number: str
    check_in_date: date
    check_out_date: date
    total_amount: Decimal
    cancellation_reason: Optional[str] = None


def _stay_lines(notice: BookingNotice) -> str:
    return (
        f"<p>Reference: <strong>{escape(notice.reference_number)}</strong></p>"
        f"<p>Accommodation: {escape(notice.accommodation_name)} (room {escape(notice.room_number)})</p>"
        f"<p>Check-in: {notice.check_in_date.isoformat()}<br>"
        f"Check-out: {notice.check_out_date.isoformat()}</p>"
        f"<p>Total: {notice.total_amount:,.2f}</p>"
    )


class NotificationService:
    """
    Sends booking emails.

    Without an API key the emails are logged instead of sent. Delivery failures
    are logged and never raised, so callers can fire and forget.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        sender: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        self.api_url = api_url or settings.email_api_url
        self.api_key = api_key if api_key is not None else settings.email_api_key
        self.sender = sender or settings.email_from
        self.transport = transport
        self.timeout = timeout

    async def send(self, to: str, subject: str, html: str) -> bool:
        """Send one email; return True when it was accepted or logged."""
        if not self.api_key:
            logger.info(
                "Email API key not configured, logging email instead",
                extra={"to": to, "subject": subject, "body_preview": html[:200]}
            )
            return True

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.post(
                    self.api_url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={"from": self.sender, "to": to, "subject": subject, "html": html},
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Email API rejected message",
                extra={"to": to, "subject": subject, "status_code": e.response.status_code, "body": e.response.text[:500]}
            )
            return False
        except httpx.HTTPError as e:
            logger.error(
                "Failed to send email",
                exc_info=True,
                extra={"to": to, "subject": subject, "error": str(e)}
            )
            return False

        logger.info("Email sent", extra={"to": to, "subject": subject})
        return True

    async def send_booking_confirmation(self, notice: BookingNotice) -> bool:
        subject = f"Booking Confirmed - {notice.reference_number} | {notice.tenant_name}"
        html = (
            f"<h2>Booking Confirmation</h2><p>Hi {escape(notice.guest_name)},</p>"
            f"<p>Your booking at {escape(notice.tenant_name)} is confirmed.</p>"
            + _stay_lines(notice)
        )
        return await self.send(notice.guest_email, subject, html)

    async def send_cancellation_notice(self, notice: BookingNotice) -> bool:
        subject = f"Booking Cancelled - {notice.reference_number} | {notice.tenant_name}"
        reason = (
            f"<p>Reason: {escape(notice.cancellation_reason)}</p>" if notice.cancellation_reason else ""
        )
        html = (
            f"<h2>Booking Cancelled</h2><p>Hi {escape(notice.guest_name)},</p>"
            f"<p>Your booking at {escape(notice.tenant_name)} has been cancelled.</p>"
            + _stay_lines(notice)
            + reason
        )
        return await self.send(notice.guest_email, subject, html)

    async def send_handler_notification(self, handler_email: str, notice: BookingNotice) -> bool:
        subject = f"New Booking - {notice.reference_number} | {notice.guest_name}"
        html = (
            f"<h2>New Booking Received</h2>"
            f"<p>Guest: {escape(notice.guest_name)} ({escape(notice.guest_email)})</p>"
            + _stay_lines(notice)
        )
        return await self.send(handler_email, subject, html)


async def notify_new_bookings(handler_email: Optional[str], notices: list[BookingNotice]) -> None:
    """Background task: tell resort staff about freshly reserved bookings."""
    if not handler_email:
        return
    service = NotificationService()
    for notice in notices:
        await service.send_handler_notification(handler_email, notice)


async def notify_status_change(status: str, notices: list[BookingNotice]) -> None:
    """Background task: email guests about confirmations and cancellations."""
    service = NotificationService()
    for notice in notices:
        if status == "confirmed":
            await service.send_booking_confirmation(notice)
        elif status == "cancelled":
            await service.send_cancellation_notice(notice)
