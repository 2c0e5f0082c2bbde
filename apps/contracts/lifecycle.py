import logging

from django.db import DatabaseError, transaction
from django.db.models import Count, F, Prefetch, Q
from django.utils import timezone

from core.constants import ContractStatus, JobStatus, OPEN_CONTRACT_STATUSES, PartyRole
from core.exceptions import CapacityConflict, RecordNotFound, StateConflict
from core.utils import paginate
from apps.jobs.models import Job
from apps.notifications.utils import notify_parties
from apps.users.models import Worker
from .models import Review, WorkContract

logger = logging.getLogger(__name__)

START = 'start'
COMPLETE = 'complete'
CONFIRM = 'confirm'
CANCEL = 'cancel'

# {(from_status, event): to_status}; completed and cancelled have no way out
_TRANSITIONS = {
    (ContractStatus.ACTIVE, START): ContractStatus.IN_PROGRESS,
    (ContractStatus.IN_PROGRESS, COMPLETE): ContractStatus.AWAITING_CLIENT_CONFIRMATION,
    (ContractStatus.AWAITING_CLIENT_CONFIRMATION, CONFIRM): ContractStatus.COMPLETED,
    (ContractStatus.ACTIVE, CANCEL): ContractStatus.CANCELLED,
    (ContractStatus.IN_PROGRESS, CANCEL): ContractStatus.CANCELLED,
}

TERMINAL_STATUSES = frozenset({ContractStatus.COMPLETED, ContractStatus.CANCELLED})

SORT_FIELDS = {
    'created_at': 'created_at',
    'agreed_rate': 'agreed_rate',
    'status': 'contract_status',
    'completed_at': 'completed_at',
}

CONTRACT_NOT_FOUND = 'Contract not found or you do not have access to it'


def transition(status, event):
    """Next contract status for ``event``, or StateConflict naming the current one."""
    try:
        return _TRANSITIONS[(status, event)]
    except KeyError:
        raise StateConflict(
            f"Cannot {event} a contract with status '{status}'", current_state=str(status)
        )


def _not_found():
    return RecordNotFound(CONTRACT_NOT_FOUND, 'CONTRACT_NOT_FOUND')


def _party_lookup(actor, role=None):
    if role is not None and actor.role != role:
        raise _not_found()
    return {actor.role: actor.profile}


def locked_contract(contract_id, actor, role=None):
    """Lock and fetch a contract the actor is a party to, optionally requiring a role."""
    lookup = _party_lookup(actor, role)
    try:
        return WorkContract.objects.select_for_update().get(pk=contract_id, is_deleted=False, **lookup)
    except WorkContract.DoesNotExist:
        raise _not_found()


def _conditional_update(contract, expected_status, **changes):
    changes['updated_at'] = timezone.now()
    updated = WorkContract.objects.filter(
        pk=contract.pk, contract_status=expected_status, is_deleted=False
    ).update(**changes)
    if not updated:
        raise _not_found()
    for field, value in changes.items():
        setattr(contract, field, value)
    return contract


def _lock_worker(worker_id):
    return Worker.objects.select_for_update().get(pk=worker_id)


def _set_job_status(job_id, status, **extra):
    Job.objects.filter(pk=job_id).update(status=status, updated_at=timezone.now(), **extra)


def _notify_status(contract, subject, message):
    notify_parties(
        'contract:updated',
        {'contract_id': contract.id, 'status': str(contract.contract_status)},
        [contract.client, contract.worker],
        subject=subject,
        message=f"{message}\n\nBest regards,\nWorkBridge Team",
    )


def open_contract(record, actor):
    """
    Create the contract a negotiation record resolved into and mark its job hired.

    Must run inside the transaction that moved the record to accepted or
    both_agreed, so a failed guard rolls the negotiation write back too.
    """
    try:
        job = Job.objects.select_for_update().get(pk=record.job_id)
    except Job.DoesNotExist:
        raise RecordNotFound('Job not found', 'JOB_NOT_FOUND')
    if not job.is_open:
        raise StateConflict(
            'This job is no longer open for hiring', 'JOB_NOT_OPEN', current_state=str(job.status)
        )

    worker = _lock_worker(record.worker_id)
    if worker.has_open_contract():
        raise CapacityConflict()

    contract = WorkContract.objects.create(
        client_id=record.client_id,
        worker=worker,
        job=job,
        contract_type=record.contract_type,
        agreed_rate=record.proposed_rate,
        created_ip=actor.ip,
        **{record.kind: record}
    )
    job.mark_hired(worker)
    job.save(update_fields=['status', 'hired_worker', 'updated_at'])

    logger.info(
        f"Contract {contract.id} created from {record.kind} {record.id} by {actor.role} "
        f"(job {job.id}, worker {worker.id})"
    )
    notify_parties(
        'contract:created',
        {'contract_id': contract.id, 'job_id': job.id, 'contract_type': str(contract.contract_type)},
        [record.client, worker],
        subject=f"Contract Created: {job.title}",
        message=(
            f"A contract for '{job.title}' has been created at an agreed rate of {contract.agreed_rate}.\n"
            f"The worker can start work from the contracts page.\n\n"
            f"Best regards,\nWorkBridge Team"
        ),
    )
    return contract


def start_work(contract_id, actor):
    with transaction.atomic():
        contract = locked_contract(contract_id, actor, PartyRole.WORKER)
        new_status = transition(contract.contract_status, START)

        worker = _lock_worker(contract.worker_id)
        if not worker.can_accept_new_contract():
            logger.warning(f"Worker {worker.id} cannot start contract {contract.id}: {worker.status}")
            raise CapacityConflict()

        now = timezone.now()
        _conditional_update(contract, contract.contract_status, contract_status=new_status, start_date=now)
        worker.start_working(contract.job)
        worker.last_activity = now
        worker.save(update_fields=['status', 'current_job', 'last_activity', 'updated_at'])
        _set_job_status(contract.job_id, JobStatus.IN_PROGRESS)

        logger.info(f"Contract {contract.id} started by worker {worker.id}")
        _notify_status(contract, f"Work Started: {contract.job.title}",
                       f"Work on '{contract.job.title}' has started.")
    return contract


def complete_work(contract_id, actor):
    with transaction.atomic():
        contract = locked_contract(contract_id, actor, PartyRole.WORKER)
        new_status = transition(contract.contract_status, COMPLETE)

        now = timezone.now()
        _conditional_update(contract, contract.contract_status, contract_status=new_status, worker_completed_at=now)
        # The worker is free for new work as soon as the work is submitted
        worker = _lock_worker(contract.worker_id)
        worker.become_available()
        worker.last_activity = now
        worker.save(update_fields=['status', 'current_job', 'last_activity', 'updated_at'])
        _set_job_status(contract.job_id, JobStatus.COMPLETED)

        logger.info(f"Contract {contract.id} submitted for confirmation by worker {worker.id}")
        _notify_status(contract, f"Work Completed: {contract.job.title}",
                       f"The worker has marked '{contract.job.title}' as completed. "
                       f"Please confirm the work from the contracts page.")
    return contract


def _record_completed_job(worker_id):
    try:
        with transaction.atomic():
            Worker.objects.filter(pk=worker_id).update(total_jobs_completed=F('total_jobs_completed') + 1)
    except DatabaseError as e:
        logger.warning(f"Failed to update completed jobs for worker {worker_id}: {str(e)}")


def confirm_work_completion(contract_id, actor):
    with transaction.atomic():
        contract = locked_contract(contract_id, actor, PartyRole.CLIENT)
        new_status = transition(contract.contract_status, CONFIRM)

        now = timezone.now()
        _conditional_update(
            contract, contract.contract_status,
            contract_status=new_status,
            client_confirmed_at=now,
            completed_at=now,
            actual_end_date=now,
        )
        _set_job_status(contract.job_id, JobStatus.COMPLETED)

        logger.info(f"Contract {contract.id} confirmed by client {actor.profile.id}")
        _notify_status(contract, f"Contract Completed: {contract.job.title}",
                       f"The client confirmed completion of '{contract.job.title}'. "
                       f"You can now leave a review.")

    # Eventually consistent; a failure here must not undo the confirmation.
    _record_completed_job(contract.worker_id)
    return contract


def cancel_contract(contract_id, actor):
    with transaction.atomic():
        contract = locked_contract(contract_id, actor)
        new_status = transition(contract.contract_status, CANCEL)

        _conditional_update(contract, contract.contract_status, contract_status=new_status)
        worker = _lock_worker(contract.worker_id)
        worker.become_available()
        worker.save(update_fields=['status', 'current_job', 'updated_at'])
        _set_job_status(contract.job_id, JobStatus.OPEN, hired_worker=None)

        logger.info(f"Contract {contract.id} cancelled by {actor.role} {actor.profile.id}")
        _notify_status(contract, f"Contract Cancelled: {contract.job.title}",
                       f"The contract for '{contract.job.title}' was cancelled by the {actor.role}.")
    return contract


def _with_reviews(contracts):
    return contracts.select_related('job', 'client__user', 'worker__user').prefetch_related(
        Prefetch('reviews', queryset=Review.objects.active(), to_attr='active_reviews')
    )


def contract_statistics(contracts, party):
    stats = contracts.aggregate(
        total=Count('id'),
        active=Count('id', filter=Q(contract_status__in=OPEN_CONTRACT_STATUSES)),
        completed=Count('id', filter=Q(contract_status=ContractStatus.COMPLETED)),
    )
    stats['average_rating'] = Review.objects.received_by(party).rating_stats()['average_rating']
    return stats


def _list_contracts(actor, role, filters):
    if actor.role != role:
        raise RecordNotFound(f"{role.label} profile not found", f"{role.upper()}_NOT_FOUND")

    contracts = WorkContract.objects.filter(is_deleted=False, **_party_lookup(actor))
    statistics = contract_statistics(contracts, actor.profile)

    if filters.get('status'):
        contracts = contracts.filter(contract_status=filters['status'])
    if filters.get('contract_type'):
        contracts = contracts.filter(contract_type=filters['contract_type'])

    order = SORT_FIELDS[filters.get('sort_by') or 'created_at']
    if filters.get('sort_order', 'desc') == 'desc':
        order = f'-{order}'
    contracts = _with_reviews(contracts).order_by(order, '-id')

    items, pagination = paginate(contracts, filters.get('page', 1), filters.get('limit', 10))
    return {'contracts': items, 'pagination': pagination, 'statistics': statistics}


def list_client_contracts(actor, filters):
    return _list_contracts(actor, PartyRole.CLIENT, filters)


def list_worker_contracts(actor, filters):
    return _list_contracts(actor, PartyRole.WORKER, filters)


def contract_details(contract_id, actor):
    contracts = _with_reviews(WorkContract.objects.filter(is_deleted=False, **_party_lookup(actor)))
    try:
        return contracts.get(pk=contract_id)
    except WorkContract.DoesNotExist:
        raise _not_found()


def contract_reviews(contract_id, actor):
    contract = contract_details(contract_id, actor)
    reviewed = any(review.reviewer_type == actor.role for review in contract.active_reviews)
    return {
        'contract': contract,
        'reviews': contract.active_reviews,
        'can_submit_review': contract.contract_status == ContractStatus.COMPLETED and not reviewed,
    }
