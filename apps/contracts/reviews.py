import logging

from django.db import IntegrityError, transaction

from core.constants import ContractStatus, FEEDBACK_MAX_LENGTH, FEEDBACK_MIN_LENGTH, PartyRole
from core.exceptions import DuplicateReview, RecordNotFound, StateConflict, ValidationFailed
from core.utils import paginate
from apps.notifications.utils import notify_parties
from apps.users.models import Client, Worker
from .lifecycle import locked_contract
from .models import Review

logger = logging.getLogger(__name__)


def _validate(rating, feedback):
    errors = []
    if not isinstance(rating, int) or isinstance(rating, bool) or not 1 <= rating <= 5:
        errors.append({'field': 'rating', 'message': 'Rating must be an integer between 1 and 5'})
    if not FEEDBACK_MIN_LENGTH <= len(feedback) <= FEEDBACK_MAX_LENGTH:
        errors.append({
            'field': 'feedback',
            'message': f'Feedback must be between {FEEDBACK_MIN_LENGTH} and {FEEDBACK_MAX_LENGTH} characters'
        })
    if errors:
        raise ValidationFailed(errors=errors)


def submit_feedback(contract_id, actor, rating, feedback):
    """Record the caller's single review of the other party on a completed contract."""
    feedback = (feedback or '').strip()
    _validate(rating, feedback)

    with transaction.atomic():
        contract = locked_contract(contract_id, actor)
        if contract.contract_status != ContractStatus.COMPLETED:
            raise StateConflict(
                'Reviews can only be submitted for completed contracts',
                current_state=str(contract.contract_status)
            )
        if Review.objects.active().filter(contract=contract, reviewer_type=actor.role).exists():
            raise DuplicateReview()

        reviewee_type = PartyRole.WORKER if actor.is_client else PartyRole.CLIENT
        try:
            with transaction.atomic():
                review = Review.objects.create(
                    contract=contract,
                    job_id=contract.job_id,
                    worker_id=contract.worker_id,
                    client_id=contract.client_id,
                    reviewer_type=actor.role,
                    reviewee_type=reviewee_type,
                    rating=rating,
                    feedback=feedback,
                )
        except IntegrityError:
            raise DuplicateReview()

        logger.info(f"Review {review.id} submitted on contract {contract.id} by {actor.role}")
        notify_parties(
            'contract:review_submitted',
            {'contract_id': contract.id, 'review_id': review.id, 'reviewer_type': str(actor.role)},
            [contract.client, contract.worker],
        )
    return review


def _received_reviews(party, filters):
    reviews = Review.objects.received_by(party)
    statistics = reviews.rating_stats()
    if filters.get('rating'):
        reviews = reviews.filter(rating=filters['rating'])
    reviews = reviews.select_related('job', 'client__user', 'worker__user')
    items, pagination = paginate(reviews, filters.get('page', 1), filters.get('limit', 10))
    return {'reviews': items, 'pagination': pagination, 'statistics': statistics}


def worker_reviews(worker_id, filters):
    try:
        worker = Worker.objects.get(pk=worker_id)
    except Worker.DoesNotExist:
        raise RecordNotFound('Worker not found', 'WORKER_NOT_FOUND')
    return _received_reviews(worker, filters)


def client_reviews(client_id, filters):
    try:
        client = Client.objects.get(pk=client_id)
    except Client.DoesNotExist:
        raise RecordNotFound('Client not found', 'CLIENT_NOT_FOUND')
    return _received_reviews(client, filters)
