import logging
import re
from concurrent.futures import ThreadPoolExecutor

from django.conf import settings
from django.core.mail import send_mail
from django.db import connections, transaction
from django.dispatch import Signal
from twilio.base.exceptions import TwilioRestException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client as TwilioClient

from .models import NotificationLog

logger = logging.getLogger(__name__)

# Real-time fan-out hook. Receivers get ``event``, ``payload`` and ``recipients``
# (credential ids) and push them to the parties' open sessions.
party_event = Signal()

PHONE_PATTERN = re.compile(r'^\+\d{9,15}$')

# Email/SMS delivery runs off the request thread
_delivery_pool = ThreadPoolExecutor(
    max_workers=settings.NOTIFICATIONS_DELIVERY_WORKERS, thread_name_prefix='notify'
)


def _send_email(user, subject, message, event):
    log = NotificationLog.objects.create(
        recipient=user, event=event, subject=subject, message=message, channel='email'
    )
    try:
        send_mail(
            subject=subject,
            message=message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[user.email],
            fail_silently=False,
        )
        log.mark_as_sent()
    except Exception as e:
        logger.error(f"Failed to send email to {user.email}: {str(e)}")
        log.mark_as_failed(str(e))


def _send_sms(user, subject, message, event):
    if not PHONE_PATTERN.match(user.phone_number):
        logger.warning(f"Invalid phone number format for user {user.id}: {user.phone_number}")
        return
    log = NotificationLog.objects.create(
        recipient=user, event=event, subject=subject, message=message, channel='sms'
    )
    try:
        twilio_client = TwilioClient(
            settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN,
            http_client=TwilioHttpClient(timeout=settings.TWILIO_TIMEOUT),
        )
        twilio_client.messages.create(
            body=message,
            from_=settings.TWILIO_PHONE_NUMBER,
            to=user.phone_number
        )
        log.mark_as_sent()
    except TwilioRestException as e:
        logger.error(f"Twilio rejected SMS to {user.phone_number}: {e.code} {e.msg}")
        log.mark_as_failed(str(e))
    except Exception as e:
        logger.error(f"Failed to send SMS to {user.phone_number}: {str(e)}")
        log.mark_as_failed(str(e))


def send_notification(user, subject, email_message, sms_message, event=''):
    """
    Send notifications to a user via email and SMS.

    Delivery failures are recorded on NotificationLog and logged; they never
    reach the caller.
    """
    if user.email:
        _send_email(user, subject, email_message, event)
    if user.phone_number and settings.NOTIFICATIONS_SMS_ENABLED:
        _send_sms(user, subject, sms_message, event)


def deliver_to_users(event, users, subject, message):
    """Email/SMS each user in turn; one user's failure never skips the next."""
    for user in users:
        try:
            send_notification(user, subject, message, message, event=event)
        except Exception as e:
            logger.error(f"Failed to notify user {user.id} of {event}: {str(e)}")


def _deliver_in_background(event, users, subject, message):
    try:
        deliver_to_users(event, users, subject, message)
    finally:
        # Pool threads own their database connections
        connections.close_all()


def dispatch_party_event(event, payload, parties, subject=None, message=None):
    parties = [party for party in parties if party is not None]
    recipients = [party.credential_id for party in parties]
    responses = party_event.send_robust(
        sender=dispatch_party_event, event=event, payload=payload, recipients=recipients
    )
    for receiver, result in responses:
        if isinstance(result, Exception):
            logger.warning(f"Realtime receiver {receiver} failed for {event}: {result}")

    if not subject:
        return None
    # Resolved here so the delivery thread does not lazy-load them
    users = [party.user for party in parties]
    if not settings.NOTIFICATIONS_ASYNC:
        deliver_to_users(event, users, subject, message)
        return None
    return _delivery_pool.submit(_deliver_in_background, event, users, subject, message)


def notify_parties(event, payload, parties, subject=None, message=None):
    """Queue a notification to both parties once the current transaction commits."""
    parties = list(parties)
    transaction.on_commit(
        lambda: dispatch_party_event(event, payload, parties, subject=subject, message=message)
    )
