from decimal import Decimal

import pytest
from django.core import mail

from core.constants import ContractStatus, ContractType, JobStatus, WorkerStatus
from apps.contracts.models import WorkContract
from apps.jobs.models import JobApplication
from apps.notifications.models import NotificationLog
from apps.notifications.utils import party_event

pytestmark = pytest.mark.django_db


def as_user(api, party):
    api.force_authenticate(user=party.user)
    return api


def test_full_application_to_review_flow(api, hiring_client, worker, job):
    # Worker applies
    response = as_user(api, worker).post(
        f'/jobs/{job.pk}/apply/', {'proposed_rate': '200.00', 'message': 'Available tomorrow'}, format='json'
    )
    assert response.status_code == 201
    assert response.data['code'] == 'APPLICATION_SUBMITTED'
    application_id = response.data['data']['id']

    # Client opens the discussion and gets the worker's identity
    response = as_user(api, hiring_client).post(f'/jobs/applications/{application_id}/discussion/')
    assert response.status_code == 200
    assert response.data['data']['counterparty']['id'] == worker.pk
    assert response.data['data']['application']['status'] == 'in_discussion'

    # Worker agrees, then client agrees
    response = as_user(api, worker).post(
        f'/jobs/applications/{application_id}/agreement/', {'agreed': True}, format='json'
    )
    assert response.data['code'] == 'AGREEMENT_RECORDED'
    assert response.data['data']['contract'] is None

    response = as_user(api, hiring_client).post(
        f'/jobs/applications/{application_id}/agreement/', {'agreed': True}, format='json'
    )
    assert response.status_code == 200
    assert response.data['code'] == 'CONTRACT_CREATED'
    contract_id = response.data['data']['contract']['id']

    contract = WorkContract.objects.get(pk=contract_id)
    assert contract.contract_status == ContractStatus.ACTIVE
    assert contract.contract_type == ContractType.JOB_APPLICATION
    assert contract.agreed_rate == Decimal('200.00')
    job.refresh_from_db()
    assert job.status == JobStatus.HIRED

    # Worker starts and completes
    response = as_user(api, worker).post(f'/contracts/{contract_id}/start/')
    assert response.data['code'] == 'WORK_STARTED'
    worker.refresh_from_db()
    assert worker.status == WorkerStatus.WORKING

    response = as_user(api, worker).post(f'/contracts/{contract_id}/complete/')
    assert response.data['code'] == 'WORK_COMPLETION_SUBMITTED'
    assert response.data['data']['contract_status'] == 'awaiting_client_confirmation'
    worker.refresh_from_db()
    assert worker.status == WorkerStatus.AVAILABLE

    # Client confirms
    response = as_user(api, hiring_client).post(f'/contracts/{contract_id}/confirm/')
    assert response.data['code'] == 'WORK_COMPLETION_CONFIRMED'
    assert response.data['data']['contract_status'] == 'completed'
    worker.refresh_from_db()
    assert worker.total_jobs_completed == 1

    # One review each, a second one is refused
    response = as_user(api, hiring_client).post(
        f'/contracts/{contract_id}/feedback/', {'rating': 5, 'feedback': 'Fast and careful'}, format='json'
    )
    assert response.status_code == 201
    assert response.data['code'] == 'REVIEW_SUBMITTED'

    response = as_user(api, worker).post(
        f'/contracts/{contract_id}/feedback/', {'rating': 4, 'feedback': 'Paid promptly'}, format='json'
    )
    assert response.status_code == 201

    response = as_user(api, hiring_client).post(
        f'/contracts/{contract_id}/feedback/', {'rating': 1, 'feedback': 'Another go'}, format='json'
    )
    assert response.status_code == 409
    assert response.data == {
        'success': False,
        'message': 'You have already submitted a review for this contract',
        'code': 'REVIEW_ALREADY_EXISTS',
    }

    response = as_user(api, hiring_client).get(f'/users/{worker.user.pk}/ratings/')
    assert response.data['data']['average_rating'] == 5.0


def test_contract_projection_hides_creating_ip(api, contract, hiring_client):
    assert contract.created_ip == '10.0.0.1'

    response = as_user(api, hiring_client).get(f'/contracts/{contract.pk}/')

    assert response.status_code == 200
    assert response.data['code'] == 'CONTRACT_DETAILS_RETRIEVED'
    assert 'created_ip' not in response.data['data']
    assert response.data['data']['client']['id'] == hiring_client.pk


def test_contract_listing_envelope(api, contract, worker):
    response = as_user(api, worker).get('/contracts/worker/', {'status': 'active', 'limit': 5})

    assert response.status_code == 200
    data = response.data['data']
    assert [c['id'] for c in data['contracts']] == [contract.pk]
    assert data['statistics']['active'] == 1
    assert data['pagination']['items_per_page'] == 5
    assert all('created_ip' not in c for c in data['contracts'])


def test_listing_limit_is_capped(api, worker):
    response = as_user(api, worker).get('/contracts/worker/', {'limit': 51})

    assert response.status_code == 400
    assert response.data['code'] == 'VALIDATION_ERROR'
    assert response.data['errors'][0]['field'] == 'limit'


def test_not_a_party_gets_not_found(api, contract, make_worker):
    response = as_user(api, make_worker()).post(f'/contracts/{contract.pk}/start/')

    assert response.status_code == 404
    assert response.data['code'] == 'CONTRACT_NOT_FOUND'


def test_illegal_transition_names_current_state(api, contract, hiring_client):
    response = as_user(api, hiring_client).post(f'/contracts/{contract.pk}/confirm/')

    assert response.status_code == 409
    assert response.data['code'] == 'INVALID_STATE_TRANSITION'
    assert response.data['current_state'] == 'active'


def test_unauthenticated_request_uses_envelope(api, contract):
    response = api.get(f'/contracts/{contract.pk}/')

    assert response.status_code == 401
    assert response.data['success'] is False


def test_notifications_sent_after_commit(api, contract, worker, django_capture_on_commit_callbacks):
    received = []

    def receiver(sender, event, payload, recipients, **kwargs):
        received.append((event, payload, recipients))

    party_event.connect(receiver)
    try:
        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            as_user(api, worker).post(f'/contracts/{contract.pk}/start/')
    finally:
        party_event.disconnect(receiver)

    assert len(callbacks) == 1
    event, payload, recipients = received[0]
    assert event == 'contract:updated'
    assert payload == {'contract_id': contract.pk, 'status': 'in_progress'}
    assert sorted(recipients) == sorted([contract.client.user_id, worker.user_id])
    assert len(mail.outbox) == 2
    assert NotificationLog.objects.filter(event='contract:updated', status='sent').count() == 2


def test_failed_transition_sends_nothing(api, contract, hiring_client, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        response = as_user(api, hiring_client).post(f'/contracts/{contract.pk}/confirm/')

    assert response.status_code == 409
    assert callbacks == []
    assert mail.outbox == []


def test_broken_realtime_receiver_does_not_affect_response(api, contract, worker, django_capture_on_commit_callbacks):
    def broken(sender, **kwargs):
        raise RuntimeError('socket closed')

    party_event.connect(broken)
    try:
        with django_capture_on_commit_callbacks(execute=True):
            response = as_user(api, worker).post(f'/contracts/{contract.pk}/start/')
    finally:
        party_event.disconnect(broken)

    assert response.status_code == 200
    assert response.data['code'] == 'WORK_STARTED'
    assert len(mail.outbox) == 2


def test_invitation_flow_over_http(api, hiring_client, worker, job):
    response = as_user(api, hiring_client).post(
        f'/jobs/{job.pk}/invite/', {'worker_id': worker.pk, 'proposed_rate': '90.00'}, format='json'
    )
    assert response.status_code == 201
    invitation_id = response.data['data']['id']

    response = as_user(api, worker).get('/jobs/invitations/received/')
    assert [i['id'] for i in response.data['data']] == [invitation_id]

    response = as_user(api, worker).post(
        f'/jobs/invitations/{invitation_id}/respond/', {'action': 'accept'}, format='json'
    )
    assert response.status_code == 200
    assert response.data['code'] == 'INVITATION_ACCEPTED'
    assert response.data['data']['contract']['contract_type'] == 'direct_invitation'


def test_application_withdrawal_over_http(api, application, worker, job):
    response = as_user(api, worker).post(f'/jobs/{job.pk}/apply/', {'action': 'withdraw'}, format='json')

    assert response.status_code == 200
    assert response.data['code'] == 'APPLICATION_WITHDRAWN'
    assert not JobApplication.objects.filter(pk=application.pk).exists()


def test_duplicate_application_over_http(api, application, worker, job):
    response = as_user(api, worker).post(f'/jobs/{job.pk}/apply/', {'proposed_rate': '50.00'}, format='json')

    assert response.status_code == 409
    assert response.data['code'] == 'ALREADY_APPLIED'


def test_client_creates_job(api, hiring_client):
    response = as_user(api, hiring_client).post('/jobs/create/', {
        'title': 'Assemble wardrobe', 'description': 'Flat-pack, two doors',
        'location': 'Bole', 'price': '75.00',
    }, format='json')

    assert response.status_code == 201
    assert response.data['data']['status'] == 'open'
    hiring_client.refresh_from_db()
    assert hiring_client.total_jobs_posted == 1
