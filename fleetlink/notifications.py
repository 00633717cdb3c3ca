import logging

from fastapi_mail import ConnectionConfig, FastMail, MessageSchema
from starlette.concurrency import run_in_threadpool
from twilio.rest import Client

from fleetlink.config import Settings

logger = logging.getLogger(__name__)

TIME_FORMAT = "%d.%m.%Y %H:%M UTC"


def mail_config(settings: Settings) -> ConnectionConfig:
    return ConnectionConfig(
        MAIL_USERNAME=settings.MAIL_USERNAME,
        MAIL_PASSWORD=settings.MAIL_PASSWORD,
        MAIL_FROM=settings.MAIL_FROM,
        MAIL_PORT=settings.MAIL_PORT,
        MAIL_SERVER=settings.MAIL_SERVER,
        MAIL_STARTTLS=True,
        MAIL_SSL_TLS=False,
        USE_CREDENTIALS=True,
    )


def render_booking_email(booking) -> str:
    vehicle_name = booking.vehicle.name if booking.vehicle is not None else f"#{booking.vehicle_id}"
    return f"""
    <html>
    <body>
        <h2>New booking</h2>
        <p>Vehicle: {vehicle_name}</p>
        <p>Customer: {booking.customer_id}</p>
        <p>Route: {booking.from_pincode} &rarr; {booking.to_pincode}</p>
        <p>From: {booking.start_time.strftime(TIME_FORMAT)}</p>
        <p>Until: {booking.end_time.strftime(TIME_FORMAT)}</p>
        <p>Estimated duration: {booking.estimated_ride_duration_hours} h</p>
    </body>
    </html>
    """


def render_booking_text(booking) -> str:
    return (f"New booking #{booking.id}: vehicle {booking.vehicle_id} for {booking.customer_id}, "
            f"{booking.from_pincode} -> {booking.to_pincode}, "
            f"{booking.start_time.strftime(TIME_FORMAT)} - {booking.end_time.strftime(TIME_FORMAT)}")


async def send_admin_email(settings: Settings, booking):
    message = MessageSchema(
        subject="New booking received",
        recipients=[settings.ADMIN_EMAIL],
        body=render_booking_email(booking),
        subtype="html"
    )
    await FastMail(mail_config(settings)).send_message(message)


def send_whatsapp(settings: Settings, message: str):
    client = Client(settings.TWILIO_SID, settings.TWILIO_AUTH_TOKEN)
    client.messages.create(
        body=message,
        from_=f"whatsapp:{settings.TWILIO_WHATSAPP_FROM}",
        to=f"whatsapp:{settings.ADMIN_WHATSAPP_TO}"
    )


async def notify_new_booking(settings: Settings, booking):
    """Tell the fleet administrator about a committed booking.

    Runs after the response is sent. Delivery problems are logged only, the
    booking itself is already stored.
    """
    if settings.mail_enabled:
        try:
            await send_admin_email(settings, booking)
        except Exception:
            logger.exception("Failed to e-mail admin about booking %s", booking.id)

    if settings.whatsapp_enabled:
        try:
            await run_in_threadpool(send_whatsapp, settings, render_booking_text(booking))
        except Exception:
            logger.exception("Failed to send WhatsApp notice for booking %s", booking.id)
