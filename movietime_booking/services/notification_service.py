"""
Notification publishing and email delivery.
"""

import asyncio
import logging
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Dict, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..config import get_settings
from ..models.booking import Booking
from ..models.movie import Movie
from ..models.show import Show
from ..models.user import User
from ..schemas.notification import NotificationEvent, NotificationType

logger = logging.getLogger(__name__)


class Notifier:
    """Hands events to the notification worker without waiting for delivery."""

    def publish(self, event: NotificationEvent) -> None:
        try:
            from ..tasks.notification_tasks import deliver_notification_task
            deliver_notification_task.delay(event.model_dump(mode="json"))
            logger.info(f"Queued {event.type.value} notification")
        except Exception as e:
            logger.warning(f"Failed to queue {event.type.value} notification: {e}")


class NotificationService:
    """Service for rendering and sending notification emails."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.settings = get_settings()

    async def deliver(self, event: NotificationEvent) -> bool:
        """
        Deliver one event.

        Returns:
            bool: True if every email for the event was sent
        """
        if event.type == NotificationType.BOOKING_CONFIRMED:
            return await self.send_booking_confirmation(UUID(event.data["booking_id"]))
        if event.type == NotificationType.SHOW_ADDED:
            sent, total = await self.send_new_show_notification(UUID(event.data["movie_id"]))
            return sent == total
        if event.type == NotificationType.REMINDER_DUE:
            return await self.send_show_reminder(event.data)

        logger.error(f"Unknown notification type {event.type}")
        return False

    async def send_booking_confirmation(self, booking_id: UUID) -> bool:
        """
        Send booking confirmation email to the booking's user.

        Args:
            booking_id: ID of the paid booking

        Returns:
            bool: True if email was sent successfully
        """
        booking = await self._get_booking_with_details(booking_id)
        if not booking:
            logger.error(f"Booking {booking_id} not found")
            return False

        movie_title = booking.show.movie.title
        template_data = {
            "user_name": booking.user.name,
            "movie_title": movie_title,
            "show_date": booking.show.show_time.strftime("%A, %B %d, %Y"),
            "show_time": booking.show.show_time.strftime("%I:%M %p"),
            "seats": ", ".join(booking.seats),
            "amount": f"{booking.amount:.2f}",
            "booking_id": str(booking.id),
        }

        success = await self._send_email(
            to_email=booking.user.email,
            subject=f'Payment Confirmation "{movie_title}" booked!',
            html_content=self._render_booking_confirmation_template(template_data),
            text_content=self._render_booking_confirmation_text(template_data),
        )

        if success:
            logger.info(f"Booking confirmation sent for booking {booking_id}")
        else:
            logger.error(f"Failed to send booking confirmation for booking {booking_id}")
        return success

    async def send_new_show_notification(self, movie_id: UUID) -> tuple[int, int]:
        """
        Announce a new show of a movie to every user.

        Returns:
            Tuple of (emails sent, users addressed)
        """
        movie = await self.session.get(Movie, movie_id)
        if not movie:
            logger.error(f"Movie {movie_id} not found")
            return 0, 0

        result = await self.session.execute(select(User))
        users = list(result.scalars().all())

        sent = 0
        for user in users:
            template_data = {
                "user_name": user.name,
                "movie_title": movie.title,
                "movie_link": f"{self.settings.frontend_url}/movies/{movie_id}",
            }
            if await self._send_email(
                to_email=user.email,
                subject=f"New Show Added: {movie.title}",
                html_content=self._render_new_show_template(template_data),
                text_content=self._render_new_show_text(template_data),
            ):
                sent += 1

        logger.info(f"New show notification for movie {movie_id} sent to {sent}/{len(users)} users")
        return sent, len(users)

    async def send_show_reminder(self, data: Dict) -> bool:
        """Send a showtime reminder built from a ``reminder.due`` payload."""
        show_time = datetime.fromisoformat(data["show_time"])
        template_data = {
            "user_name": data.get("user_name") or "there",
            "movie_title": data["movie_title"],
            "show_time": show_time.strftime("%I:%M %p"),
            "show_date": show_time.strftime("%A, %B %d"),
        }

        return await self._send_email(
            to_email=data["user_email"],
            subject=f'Reminder: Your movie "{data["movie_title"]}" starts soon!',
            html_content=self._render_reminder_template(template_data),
            text_content=self._render_reminder_text(template_data),
        )

    async def _send_email(self, to_email: str, subject: str, html_content: str, text_content: str) -> bool:
        """
        Send email using SMTP.

        Returns:
            bool: True if email was sent successfully
        """
        if not self.settings.smtp_server or not self.settings.smtp_username:
            logger.warning("Email configuration not available, skipping email send")
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.settings.sender_email or self.settings.smtp_username
        msg["To"] = to_email
        msg.attach(MIMEText(text_content, "plain"))
        msg.attach(MIMEText(html_content, "html"))

        try:
            await asyncio.to_thread(self._deliver_smtp, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            return False

        logger.info(f"Email sent successfully to {to_email}")
        return True

    def _deliver_smtp(self, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(self.settings.smtp_server, self.settings.smtp_port) as server:
            if self.settings.smtp_use_tls:
                server.starttls()
            server.login(self.settings.smtp_username, self.settings.smtp_password or "")
            server.send_message(msg)

    async def _get_booking_with_details(self, booking_id: UUID) -> Optional[Booking]:
        result = await self.session.execute(
            select(Booking)
            .options(
                selectinload(Booking.user),
                selectinload(Booking.show).selectinload(Show.movie),
            )
            .where(Booking.id == booking_id)
        )
        return result.scalar_one_or_none()

    def _render_booking_confirmation_template(self, data: Dict) -> str:
        return f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 20px auto;">
            <h1 style="background-color: #4F46E5; color: white; padding: 20px; text-align: center;">Booking Confirmed!</h1>
            <p>Hi {data['user_name']},</p>
            <p>Thank you for booking with us. Your booking details:</p>
            <table style="width: 100%; border-collapse: collapse;">
                <tr><td><strong>Movie:</strong></td><td>{data['movie_title']}</td></tr>
                <tr><td><strong>Date:</strong></td><td>{data['show_date']}</td></tr>
                <tr><td><strong>Time:</strong></td><td>{data['show_time']}</td></tr>
                <tr><td><strong>Seats:</strong></td><td>{data['seats']}</td></tr>
                <tr><td><strong>Total Amount Paid:</strong></td><td>{data['amount']}</td></tr>
                <tr><td><strong>Booking ID:</strong></td><td>{data['booking_id']}</td></tr>
            </table>
            <p>Please show this confirmation at the theater. Enjoy the show!</p>
        </div>
        """

    def _render_booking_confirmation_text(self, data: Dict) -> str:
        return (
            f"Hi {data['user_name']},\n\n"
            f"Your booking for {data['movie_title']} is confirmed.\n"
            f"Date: {data['show_date']}\n"
            f"Time: {data['show_time']}\n"
            f"Seats: {data['seats']}\n"
            f"Total Amount Paid: {data['amount']}\n"
            f"Booking ID: {data['booking_id']}\n"
        )

    def _render_new_show_template(self, data: Dict) -> str:
        return f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 20px auto;">
            <h1 style="background-color: #10B981; color: white; padding: 20px; text-align: center;">Just Announced!</h1>
            <p>Hi {data['user_name']},</p>
            <p>A new show has been added for <strong>{data['movie_title']}</strong>.</p>
            <p style="text-align: center;"><a href="{data['movie_link']}">Book Your Tickets</a></p>
        </div>
        """

    def _render_new_show_text(self, data: Dict) -> str:
        return (
            f"Hi {data['user_name']},\n\n"
            f"A new show has been added for {data['movie_title']}.\n"
            f"Book your tickets: {data['movie_link']}\n"
        )

    def _render_reminder_template(self, data: Dict) -> str:
        return f"""
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 20px auto;">
            <h1 style="background-color: #f97316; color: white; padding: 20px; text-align: center;">Showtime Reminder!</h1>
            <p>Hi {data['user_name']},</p>
            <p>Your movie <strong>{data['movie_title']}</strong> starts at {data['show_time']} on {data['show_date']}.</p>
            <p>Please arrive a little early to find your seats.</p>
        </div>
        """

    def _render_reminder_text(self, data: Dict) -> str:
        return (
            f"Hi {data['user_name']},\n\n"
            f"Your movie {data['movie_title']} starts at {data['show_time']} on {data['show_date']}.\n"
        )
