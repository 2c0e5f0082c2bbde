"""
Negotiation engine for job applications and direct invitations.

A record moves pending -> in_discussion -> {client_agreed | worker_agreed}
-> both_agreed, or pending -> accepted, and can be rejected until it
reaches a terminal state. Reaching both_agreed or accepted opens exactly
one contract.

Status writes are compare-and-set updates filtered by the status the caller
read. A writer that loses re-reads the record and evaluates its event again.
"""
import logging

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from core.constants import NegotiationStatus, PartyRole
from core.exceptions import RecordNotFound, StateConflict, TransientFailure, ValidationFailed
from apps.contracts.lifecycle import open_contract
from apps.contracts.models import WorkContract
from apps.messaging.models import Conversation
from apps.notifications.utils import notify_parties
from apps.users.models import Worker
from .models import Job, JobApplication, JobInvitation

logger = logging.getLogger(__name__)

ACCEPT = 'accept'
REJECT = 'reject'
START_DISCUSSION = 'start_discussion'
CLIENT_AGREES = 'client_agrees'
WORKER_AGREES = 'worker_agrees'
DISAGREE = 'disagree'

_TRANSITIONS = {
    (NegotiationStatus.PENDING, ACCEPT): NegotiationStatus.ACCEPTED,
    (NegotiationStatus.PENDING, REJECT): NegotiationStatus.REJECTED,
    (NegotiationStatus.PENDING, START_DISCUSSION): NegotiationStatus.IN_DISCUSSION,
    (NegotiationStatus.IN_DISCUSSION, CLIENT_AGREES): NegotiationStatus.CLIENT_AGREED,
    (NegotiationStatus.IN_DISCUSSION, WORKER_AGREES): NegotiationStatus.WORKER_AGREED,
    (NegotiationStatus.IN_DISCUSSION, DISAGREE): NegotiationStatus.REJECTED,
    (NegotiationStatus.WORKER_AGREED, CLIENT_AGREES): NegotiationStatus.BOTH_AGREED,
    (NegotiationStatus.CLIENT_AGREED, WORKER_AGREES): NegotiationStatus.BOTH_AGREED,
    # Re-confirming your own agreement leaves the record untouched
    (NegotiationStatus.CLIENT_AGREED, CLIENT_AGREES): NegotiationStatus.CLIENT_AGREED,
    (NegotiationStatus.WORKER_AGREED, WORKER_AGREES): NegotiationStatus.WORKER_AGREED,
    (NegotiationStatus.CLIENT_AGREED, DISAGREE): NegotiationStatus.REJECTED,
    (NegotiationStatus.WORKER_AGREED, DISAGREE): NegotiationStatus.REJECTED,
}

TERMINAL_STATUSES = frozenset({
    NegotiationStatus.BOTH_AGREED,
    NegotiationStatus.ACCEPTED,
    NegotiationStatus.REJECTED,
})

# Statuses that produced a contract
CONTRACTED_STATUSES = frozenset({NegotiationStatus.BOTH_AGREED, NegotiationStatus.ACCEPTED})


def transition(status, event):
    """Next negotiation status for ``event``, or StateConflict naming the current one."""
    try:
        return _TRANSITIONS[(status, event)]
    except KeyError:
        raise StateConflict(
            f"Cannot {event.replace('_', ' ')} when the status is '{status}'", current_state=str(status)
        )


def agreement_event(role):
    return CLIENT_AGREES if role == PartyRole.CLIENT else WORKER_AGREES


def _not_found(model):
    kind = model._meta.model_name.replace('job', '')
    return RecordNotFound(f"{kind.capitalize()} not found", f"{kind.upper()}_NOT_FOUND")


def load_record(model, pk):
    return model.objects.select_related('job', 'client__user', 'worker__user').get(pk=pk)


def _fetch(model, pk, actor):
    """Current record if the actor is one of its parties; otherwise not found."""
    try:
        record = load_record(model, pk)
    except model.DoesNotExist:
        raise _not_found(model)
    if getattr(record, f'{actor.role}_id') != actor.profile.pk:
        raise _not_found(model)
    return record


def _require_receiver(record, actor):
    if actor.role != record.receiver:
        raise _not_found(type(record))


def _compare_and_set(record, expected_status, **changes):
    changes['updated_at'] = timezone.now()
    updated = type(record).objects.filter(pk=record.pk, status=expected_status).update(**changes)
    if updated:
        for field, value in changes.items():
            setattr(record, field, value)
    return bool(updated)


def _lost_race(record, event):
    # Another writer moved the record; judge the event against what it holds now.
    record.refresh_from_db(fields=['status'])
    transition(record.status, event)
    raise TransientFailure()


def existing_contract(record):
    return WorkContract.objects.filter(**{record.kind: record}).first()


def _notify(record, action, actor, subject, message, **payload):
    payload.update({f'{record.kind}_id': record.id, 'status': str(record.status), 'actor': str(actor.role)})
    notify_parties(
        f"{record.kind}:{action}",
        payload,
        [record.client, record.worker],
        subject=subject,
        message=f"{message}\n\nBest regards,\nWorkBridge Team",
    )


def respond(model, pk, actor, action):
    """Receiving party accepts (opening the contract) or rejects a pending record."""
    if action not in (ACCEPT, REJECT):
        raise ValidationFailed(
            "Action must be 'accept' or 'reject'",
            errors=[{'field': 'action', 'message': "Must be 'accept' or 'reject'"}]
        )

    with transaction.atomic():
        record = _fetch(model, pk, actor)
        _require_receiver(record, actor)
        new_status = transition(record.status, action)
        if not _compare_and_set(record, record.status, status=new_status, responded_at=timezone.now()):
            _lost_race(record, action)

        contract = None
        if new_status == NegotiationStatus.ACCEPTED:
            contract = open_contract(record, actor)

        logger.info(f"{record.kind.capitalize()} {record.id} {new_status} by {actor.role} {actor.profile.id}")
        _notify(
            record, 'responded', actor,
            subject=f"{record.kind.capitalize()} {new_status.label}: {record.job.title}",
            message=f"The {record.kind} for '{record.job.title}' was {new_status.label.lower()} by the {actor.role}.",
            contract_id=contract.id if contract else None,
        )
    return record, contract


def start_discussion(model, pk, actor):
    """
    Receiving party opens talks on a pending record.

    Guarantees a conversation between the two parties and returns it with the
    counter-party's public identity.
    """
    with transaction.atomic():
        record = _fetch(model, pk, actor)
        _require_receiver(record, actor)
        new_status = transition(record.status, START_DISCUSSION)
        if not _compare_and_set(record, record.status, status=new_status, discussion_started_at=timezone.now()):
            _lost_race(record, START_DISCUSSION)

        conversation, created = Conversation.objects.ensure_between(record.client, record.worker)
        if not created:
            conversation.touch()

        logger.info(f"Discussion started on {record.kind} {record.id} by {actor.role} {actor.profile.id}")
        _notify(
            record, 'discussion_started', actor,
            subject=f"Discussion Started: {record.job.title}",
            message=f"A discussion about '{record.job.title}' has started. Continue it in your messages.",
            conversation_id=conversation.id,
        )
    return record, conversation, record.counterparty_of(actor.role).identity()


def mark_agreement(model, pk, actor, agreed):
    """
    Record the caller's agreement (or refusal) to the discussed terms.

    Returns ``(record, contract)``. The contract is set when this call, or a
    concurrent call by the other party that won the race, moved the record
    to both_agreed. Same-party re-confirmation changes nothing.
    """
    event = agreement_event(actor.role) if agreed else DISAGREE
    retried = False

    for attempt in range(settings.NEGOTIATION_AGREEMENT_RETRIES):
        with transaction.atomic():
            record = _fetch(model, pk, actor)
            if retried and agreed and record.status == NegotiationStatus.BOTH_AGREED:
                logger.info(f"{record.kind.capitalize()} {record.id} already agreed by both parties")
                return record, existing_contract(record)

            new_status = transition(record.status, event)
            if new_status == record.status:
                return record, None

            now = timezone.now()
            changes = {'status': new_status}
            if agreed:
                changes[f'{actor.role}_agreed_at'] = now
            else:
                changes['responded_at'] = now

            if _compare_and_set(record, record.status, **changes):
                contract = None
                if new_status == NegotiationStatus.BOTH_AGREED:
                    contract = open_contract(record, actor)

                logger.info(f"{record.kind.capitalize()} {record.id} moved to {new_status} by {actor.role}")
                _notify(
                    record, 'agreement', actor,
                    subject=f"Agreement Update: {record.job.title}",
                    message=(
                        f"The {actor.role} has {'agreed to' if agreed else 'declined'} the terms for "
                        f"'{record.job.title}'. Current status: {new_status.label}."
                    ),
                    agreed=agreed,
                    contract_id=contract.id if contract else None,
                )
                return record, contract

        logger.info(f"Agreement on {record.kind} {record.id} lost a concurrent update, retrying ({attempt + 1})")
        retried = True

    raise TransientFailure()


def withdraw(model, pk, actor):
    """Initiator pulls back a record nobody has answered yet."""
    with transaction.atomic():
        record = _fetch(model, pk, actor)
        if actor.role != record.initiator:
            raise _not_found(model)
        if record.status != NegotiationStatus.PENDING:
            raise StateConflict(
                f"Only pending {record.kind}s can be withdrawn", current_state=str(record.status)
            )

        deleted, _ = model.objects.filter(pk=record.pk, status=NegotiationStatus.PENDING).delete()
        if not deleted:
            record.refresh_from_db(fields=['status'])
            raise StateConflict(
                f"Only pending {record.kind}s can be withdrawn", current_state=str(record.status)
            )

        logger.info(f"{record.kind.capitalize()} {pk} withdrawn by {actor.role} {actor.profile.id}")
        notify_parties(
            f"{record.kind}:withdrawn",
            {f'{record.kind}_id': pk, 'job_id': record.job_id},
            [record.counterparty_of(actor.role)],
            subject=f"{record.kind.capitalize()} Withdrawn: {record.job.title}",
            message=(
                f"The {record.kind} for '{record.job.title}' has been withdrawn.\n\n"
                f"Best regards,\nWorkBridge Team"
            ),
        )
    return pk


def _open_job(queryset, job_id):
    try:
        job = queryset.select_for_update().get(pk=job_id)
    except Job.DoesNotExist:
        raise RecordNotFound('Job not found', 'JOB_NOT_FOUND')
    if not job.is_open:
        raise StateConflict('This job is not open', 'JOB_NOT_OPEN', current_state=str(job.status))
    return job


def apply(job_id, actor, proposed_rate, message='', estimated_duration=''):
    if not actor.is_worker:
        raise RecordNotFound('Worker profile not found', 'WORKER_NOT_FOUND')

    with transaction.atomic():
        job = _open_job(Job.objects.all(), job_id)
        if JobApplication.objects.filter(job=job, worker=actor.profile).exists():
            raise StateConflict('You have already applied to this job', 'ALREADY_APPLIED')
        try:
            with transaction.atomic():
                application = JobApplication.objects.create(
                    job=job,
                    worker=actor.profile,
                    client_id=job.client_id,
                    proposed_rate=proposed_rate,
                    message=message,
                    estimated_duration=estimated_duration,
                )
        except IntegrityError:
            raise StateConflict('You have already applied to this job', 'ALREADY_APPLIED')

        logger.info(f"Worker {actor.profile.id} applied to job {job.id}")
        notify_parties(
            'application:created',
            {'application_id': application.id, 'job_id': job.id},
            [job.client],
            subject=f"New Application for Job: {job.title}",
            message=(
                f"{actor.profile.display_name} has applied for your job '{job.title}'.\n"
                f"Please review the application in WorkBridge.\n\n"
                f"Best regards,\nWorkBridge Team"
            ),
        )
    return application


def invite(job_id, actor, worker_id, proposed_rate, message='', estimated_duration=''):
    if not actor.is_client:
        raise RecordNotFound('Client profile not found', 'CLIENT_NOT_FOUND')

    with transaction.atomic():
        job = _open_job(Job.objects.filter(client=actor.profile), job_id)
        try:
            worker = Worker.objects.get(pk=worker_id)
        except Worker.DoesNotExist:
            raise RecordNotFound('Worker not found', 'WORKER_NOT_FOUND')
        if JobInvitation.objects.filter(job=job, worker=worker).exists():
            raise StateConflict('This worker has already been invited to the job', 'ALREADY_INVITED')
        try:
            with transaction.atomic():
                invitation = JobInvitation.objects.create(
                    job=job,
                    worker=worker,
                    client=actor.profile,
                    proposed_rate=proposed_rate,
                    message=message,
                    estimated_duration=estimated_duration,
                )
        except IntegrityError:
            raise StateConflict('This worker has already been invited to the job', 'ALREADY_INVITED')

        logger.info(f"Client {actor.profile.id} invited worker {worker.id} to job {job.id}")
        notify_parties(
            'invitation:created',
            {'invitation_id': invitation.id, 'job_id': job.id},
            [worker],
            subject=f"You're Invited: {job.title}",
            message=(
                f"{actor.profile.display_name} has invited you to work on '{job.title}'.\n"
                f"Respond to the invitation in WorkBridge.\n\n"
                f"Best regards,\nWorkBridge Team"
            ),
        )
    return invitation


def _records(model):
    return model.objects.select_related('job', 'client__user', 'worker__user')


def job_applications(job_id, actor):
    if not actor.is_client or not Job.objects.filter(pk=job_id, client=actor.profile).exists():
        raise RecordNotFound('Job not found', 'JOB_NOT_FOUND')
    return _records(JobApplication).filter(job_id=job_id)


def worker_applications(actor):
    return _records(JobApplication).filter(worker=actor.profile)


def find_pending_application(job_id, actor):
    application = JobApplication.objects.filter(
        job_id=job_id, worker=actor.profile, status=NegotiationStatus.PENDING
    ).first()
    if application is None:
        raise RecordNotFound('No pending application found', 'APPLICATION_NOT_FOUND')
    return application


def received_invitations(actor):
    return _records(JobInvitation).filter(worker=actor.profile)


def sent_invitations(actor):
    return _records(JobInvitation).filter(client=actor.profile)
