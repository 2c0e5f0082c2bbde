import threading
import time
from unittest import mock

import pytest
from django.core import mail
from django.db import DatabaseError

from apps.contracts import lifecycle
from apps.notifications import utils
from apps.notifications.models import NotificationLog


@pytest.mark.django_db
class TestDeliveryFanOut:
    def test_sms_outage_for_one_party_still_emails_the_other(
        self, settings, contract, hiring_client, worker, worker_actor, django_capture_on_commit_callbacks
    ):
        settings.NOTIFICATIONS_SMS_ENABLED = True
        hiring_client.user.phone_number = '+251911000001'
        hiring_client.user.save()

        with mock.patch.object(utils, 'TwilioClient') as twilio:
            twilio.return_value.messages.create.side_effect = ConnectionError('twilio unreachable')
            with django_capture_on_commit_callbacks(execute=True):
                lifecycle.start_work(contract.pk, worker_actor)

        recipients = [address for message in mail.outbox for address in message.to]
        assert worker.user.email in recipients
        assert hiring_client.user.email in recipients

        sms = NotificationLog.objects.get(channel='sms', recipient=hiring_client.user)
        assert sms.status == 'failed'
        assert sms.error_message == 'twilio unreachable'

    def test_failure_before_delivery_does_not_skip_next_party(self, hiring_client, worker):
        with mock.patch.object(
            utils, 'send_notification', side_effect=[DatabaseError('log table locked'), None]
        ) as send:
            utils.deliver_to_users('contract:updated', [hiring_client.user, worker.user], 'Subject', 'Body')

        assert send.call_count == 2
        assert send.call_args_list[1].args[0] == worker.user


@pytest.mark.django_db(transaction=True)
def test_service_call_returns_while_delivery_is_stalled(settings, contract, worker_actor):
    settings.NOTIFICATIONS_ASYNC = True
    release = threading.Event()
    delivered = []

    def stalled(user, *args, **kwargs):
        release.wait(5)
        delivered.append(user.pk)

    with mock.patch.object(utils, 'send_notification', side_effect=stalled):
        started = time.monotonic()
        lifecycle.start_work(contract.pk, worker_actor)
        elapsed = time.monotonic() - started

        assert elapsed < 0.5
        assert delivered == []

        release.set()
        deadline = time.monotonic() + 5
        while len(delivered) < 2 and time.monotonic() < deadline:
            time.sleep(0.05)

    assert sorted(delivered) == sorted([contract.client.user_id, contract.worker.user_id])
