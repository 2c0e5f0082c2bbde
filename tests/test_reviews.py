import pytest

from core.constants import PartyRole
from core.exceptions import DuplicateReview, RecordNotFound, StateConflict, ValidationFailed
from core.utils import Actor
from apps.contracts import lifecycle, reviews
from apps.contracts.models import Review

pytestmark = pytest.mark.django_db


@pytest.fixture
def completed(contract, client_actor, worker_actor):
    lifecycle.start_work(contract.pk, worker_actor)
    lifecycle.complete_work(contract.pk, worker_actor)
    return lifecycle.confirm_work_completion(contract.pk, client_actor)


def test_each_party_reviews_the_other(completed, client_actor, worker_actor):
    by_client = reviews.submit_feedback(completed.pk, client_actor, 5, 'Great work, very tidy')
    by_worker = reviews.submit_feedback(completed.pk, worker_actor, 4, 'Clear instructions')

    assert by_client.reviewer_type == PartyRole.CLIENT
    assert by_client.reviewee_type == PartyRole.WORKER
    assert by_worker.reviewer_type == PartyRole.WORKER
    assert by_worker.reviewee_type == PartyRole.CLIENT
    assert by_client.job_id == completed.job_id


def test_second_review_from_same_role(completed, client_actor):
    reviews.submit_feedback(completed.pk, client_actor, 5, 'Great work')

    with pytest.raises(DuplicateReview) as excinfo:
        reviews.submit_feedback(completed.pk, client_actor, 1, 'Changed my mind')

    assert excinfo.value.code == 'REVIEW_ALREADY_EXISTS'
    assert Review.objects.filter(contract=completed).count() == 1


def test_deleted_review_can_be_replaced(completed, client_actor):
    first = reviews.submit_feedback(completed.pk, client_actor, 2, 'Not great')
    Review.objects.filter(pk=first.pk).update(is_deleted=True)

    second = reviews.submit_feedback(completed.pk, client_actor, 4, 'Better after all')

    assert second.pk != first.pk


def test_review_requires_completed_contract(contract, client_actor):
    with pytest.raises(StateConflict) as excinfo:
        reviews.submit_feedback(contract.pk, client_actor, 5, 'Too early')
    assert excinfo.value.current_state == 'active'


def test_stranger_cannot_review(completed, make_client):
    with pytest.raises(RecordNotFound):
        reviews.submit_feedback(completed.pk, Actor.for_profile(make_client()), 5, 'Who am I')


@pytest.mark.parametrize('rating, feedback, field', [
    (0, 'Fine work overall', 'rating'),
    (6, 'Fine work overall', 'rating'),
    (5, '  ok  ', 'feedback'),
    (5, 'x' * 1001, 'feedback'),
])
def test_feedback_validation(completed, client_actor, rating, feedback, field):
    with pytest.raises(ValidationFailed) as excinfo:
        reviews.submit_feedback(completed.pk, client_actor, rating, feedback)
    assert [error['field'] for error in excinfo.value.errors] == [field]


def test_feedback_is_trimmed(completed, worker_actor):
    review = reviews.submit_feedback(completed.pk, worker_actor, 3, '   Paid on time   ')
    assert review.feedback == 'Paid on time'


def test_rating_stats_recomputed_from_active_reviews(completed, client_actor, worker):
    review = reviews.submit_feedback(completed.pk, client_actor, 4, 'Solid work')

    stats = Review.objects.received_by(worker).rating_stats()
    assert stats['average_rating'] == 4.0
    assert stats['total_ratings'] == 1
    assert stats['rating_breakdown']['4_star'] == 100.0
    assert stats['rating_breakdown']['5_star'] == 0

    Review.objects.filter(pk=review.pk).update(is_deleted=True)
    assert Review.objects.received_by(worker).rating_stats()['total_ratings'] == 0
    assert worker.user.get_rating_stats()['average_rating'] == 0.0


def test_worker_review_listing(completed, client_actor, worker):
    reviews.submit_feedback(completed.pk, client_actor, 5, 'Excellent work')

    result = reviews.worker_reviews(worker.pk, {'page': 1, 'limit': 10})
    assert len(result['reviews']) == 1
    assert result['statistics']['average_rating'] == 5.0

    filtered = reviews.worker_reviews(worker.pk, {'rating': 3})
    assert filtered['reviews'] == []
    assert filtered['statistics']['total_ratings'] == 1


def test_missing_reviewee(db):
    with pytest.raises(RecordNotFound) as excinfo:
        reviews.client_reviews(999999, {})
    assert excinfo.value.code == 'CLIENT_NOT_FOUND'


def test_contract_reviews_reports_remaining_review(completed, client_actor, worker_actor):
    reviews.submit_feedback(completed.pk, client_actor, 5, 'Excellent work')

    assert lifecycle.contract_reviews(completed.pk, client_actor)['can_submit_review'] is False
    assert lifecycle.contract_reviews(completed.pk, worker_actor)['can_submit_review'] is True
