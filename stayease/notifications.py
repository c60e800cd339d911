"""
Email notifications for bookings and cancellations.
"""

from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional, Protocol

from stayease.db import BookingRecord, ListingRecord, UserRecord

logger = logging.getLogger(__name__)

DATE_FORMAT = "%d-%m-%Y"


class Notifier(Protocol):
    def send(self, to: str, subject: str, body: str) -> None:
        ...


class LoggingNotifier:
    """Logs outgoing mail instead of delivering it (dev/tests)."""

    def send(self, to: str, subject: str, body: str) -> None:
        logger.info("Email to %s: %s", to, subject)
        logger.debug("Body:\n%s", body)


@dataclass
class SmtpNotifier:
    host: str
    port: int
    sender: str
    username: Optional[str] = None
    password: Optional[str] = None

    def send(self, to: str, subject: str, body: str) -> None:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content(body)
        with smtplib.SMTP(self.host, self.port, timeout=30) as server:
            server.starttls()
            if self.username:
                server.login(self.username, self.password or "")
            server.send_message(msg)


def _stay_lines(listing: ListingRecord, booking: BookingRecord) -> str:
    return (
        f"- Property: {listing.title}, {listing.city}, {listing.address.get('country', '')}\n"
        f"- Check-in Date: {booking.check_in.strftime(DATE_FORMAT)}\n"
        f"- Check-out Date: {booking.check_out.strftime(DATE_FORMAT)}\n"
        f"- Guests: {booking.guests}\n"
        f"- Total Amount: {booking.price:.2f}"
    )


def booking_messages(
    listing: ListingRecord,
    booking: BookingRecord,
    guest: Optional[UserRecord],
    host: Optional[UserRecord],
) -> list[tuple[str, str, str]]:
    """Build (to, subject, body) for the guest and the host."""
    messages = []
    if guest:
        messages.append(
            (
                guest.email,
                "Booking Confirmation - Your Stay is Confirmed!",
                f"Dear {guest.name},\n\n"
                f"We're excited to confirm your booking at {listing.title}!\n\n"
                f"Booking Details:\n{_stay_lines(listing, booking)}\n\n"
                + (
                    f"Contact details of the host:\nName: {host.name}\nEmail: {host.email}\n"
                    f"Languages known: {', '.join(host.languages)}\n\n"
                    if host
                    else ""
                )
                + "We can't wait to host you!",
            )
        )
    if host:
        guest_line = f"- Guest: {guest.name} <{guest.email}>\n" if guest else ""
        messages.append(
            (
                host.email,
                "Booking Confirmation - Your Property Has Been Booked!",
                f"Dear {host.name},\n\n"
                f'Your property "{listing.title}" has been booked.\n\n'
                f"Booking Details:\n{guest_line}{_stay_lines(listing, booking)}\n\n"
                "Please make sure the property is ready for the guest's arrival.",
            )
        )
    return messages


def cancellation_messages(
    listing: ListingRecord,
    booking: BookingRecord,
    guest: Optional[UserRecord],
    host: Optional[UserRecord],
) -> list[tuple[str, str, str]]:
    messages = []
    if guest:
        messages.append(
            (
                guest.email,
                "Booking Cancellation - Your Stay has been Cancelled!",
                f"Dear {guest.name},\n\n"
                f"Your booking at {listing.title} has been cancelled.\n\n"
                f"Booking Details:\n{_stay_lines(listing, booking)}",
            )
        )
    if host:
        guest_name = guest.name if guest else "The guest"
        messages.append(
            (
                host.email,
                "Booking Cancellation - Your Property Booking Has Been Cancelled!",
                f"Dear {host.name},\n\n"
                f'{guest_name} cancelled their booking for "{listing.title}".\n\n'
                f"Booking Details:\n{_stay_lines(listing, booking)}",
            )
        )
    return messages


def deliver(notifier: Notifier, messages: list[tuple[str, str, str]]) -> int:
    """Send each message; failures are logged and skipped. Returns sent count."""
    sent = 0
    for to, subject, body in messages:
        try:
            notifier.send(to, subject, body)
            sent += 1
        except Exception as exc:
            logger.exception("Failed to send %r to %s: %s", subject, to, exc)
    return sent
