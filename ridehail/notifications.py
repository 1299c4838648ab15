import logging

from django.conf import settings
from django.core.mail import send_mail
from django.dispatch import Signal
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)

# Sent with keyword arguments: booking, plus the extras noted per signal.
booking_created = Signal()           # fare (dict or None)
trip_started = Signal()              # start_time, start_location
trip_location_updated = Signal()     # log
trip_completed = Signal()            # fare, verdict, status


def notify(signal: Signal, sender, **kwargs):
    """Send `signal` to every receiver; receiver failures are logged, never raised."""
    for receiver, result in signal.send_robust(sender=sender, **kwargs):
        if isinstance(result, Exception):
            logger.error("Notification receiver %r failed: %s", receiver, result, exc_info=result)


class EmailNotifier:
    @staticmethod
    def _send(subject: str, template: str, context: dict, recipient: str):
        if not recipient:
            logger.debug("No email address for %s; skipping", subject)
            return
        text = render_to_string(template, context)
        logger.info("Sending email to %s: %s", recipient, subject)
        send_mail(subject, text, settings.DEFAULT_FROM_EMAIL, [recipient])

    @staticmethod
    def booking_created(sender, booking, fare=None, **kwargs):
        EmailNotifier._send(
            f"Your ride booking: {booking.id}",
            "ridehail/email_booking_created.txt",
            {"booking": booking, "ride": booking.ride, "fare": fare},
            booking.customer.email,
        )

    @staticmethod
    def trip_started(sender, booking, start_time=None, **kwargs):
        EmailNotifier._send(
            f"Your driver has started the trip: {booking.id}",
            "ridehail/email_trip_started.txt",
            {"booking": booking, "start_time": start_time},
            booking.customer.email,
        )

    @staticmethod
    def trip_completed(sender, booking, fare=None, verdict=None, status=None, **kwargs):
        context = {"booking": booking, "fare": fare or {}, "verdict": verdict or {}, "status": status}
        EmailNotifier._send(
            f"Trip completed: {booking.id}",
            "ridehail/email_trip_completed.txt",
            context,
            booking.customer.email,
        )
        if booking.provider is not None:
            EmailNotifier._send(
                f"Trip earnings: {booking.id}",
                "ridehail/email_trip_earnings.txt",
                context,
                booking.provider.email,
            )


def log_location_update(sender, booking, log=None, **kwargs):
    logger.debug("Trip %s location update: %s,%s", booking.pk, getattr(log, "latitude", None), getattr(log, "longitude", None))


def connect_receivers():
    booking_created.connect(EmailNotifier.booking_created, dispatch_uid="ridehail.email.booking_created")
    trip_started.connect(EmailNotifier.trip_started, dispatch_uid="ridehail.email.trip_started")
    trip_completed.connect(EmailNotifier.trip_completed, dispatch_uid="ridehail.email.trip_completed")
    trip_location_updated.connect(log_location_update, dispatch_uid="ridehail.log.location_update")
