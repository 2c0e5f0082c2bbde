"""
Both parties agreeing at once.

Each interleaving is replayed deterministically: the losing request is handed
the snapshot it read before the other party wrote, exactly as it would have
seen it had both requests read the record concurrently.
"""
from unittest import mock

import pytest
from django.db import IntegrityError, transaction

from core.constants import ContractStatus, NegotiationStatus
from core.exceptions import StateConflict, TransientFailure
from apps.contracts.models import WorkContract
from apps.jobs import negotiation
from apps.jobs.models import JobApplication

pytestmark = pytest.mark.django_db

real_load_record = negotiation.load_record


def replay_stale(snapshot, stale_reads=1):
    """Serve ``snapshot`` for the first ``stale_reads`` loads, then read the database."""
    calls = {'count': 0}

    def load(model, pk):
        calls['count'] += 1
        if calls['count'] <= stale_reads:
            return snapshot
        return real_load_record(model, pk)

    return mock.patch.object(negotiation, 'load_record', side_effect=load)


@pytest.fixture
def discussing(application, client_actor):
    negotiation.start_discussion(JobApplication, application.pk, client_actor)
    return application


def snapshot_of(record):
    return real_load_record(JobApplication, record.pk)


def test_sequential_agreement(discussing, client_actor, worker_actor):
    negotiation.mark_agreement(JobApplication, discussing.pk, client_actor, True)
    record, contract = negotiation.mark_agreement(JobApplication, discussing.pk, worker_actor, True)

    assert record.status == NegotiationStatus.BOTH_AGREED
    assert contract is not None
    assert WorkContract.objects.count() == 1


@pytest.mark.parametrize('first, second', [('client', 'worker'), ('worker', 'client')])
def test_both_read_in_discussion_then_write(discussing, client_actor, worker_actor, first, second):
    actors = {'client': client_actor, 'worker': worker_actor}
    stale = snapshot_of(discussing)

    # First writer wins the compare-and-set from in_discussion
    record, contract = negotiation.mark_agreement(JobApplication, discussing.pk, actors[first], True)
    assert record.status == f'{first}_agreed'
    assert contract is None

    # Second writer still holds in_discussion, loses, re-reads and completes the agreement
    with replay_stale(stale):
        record, contract = negotiation.mark_agreement(JobApplication, discussing.pk, actors[second], True)

    assert record.status == NegotiationStatus.BOTH_AGREED
    assert contract.contract_status == ContractStatus.ACTIVE
    assert WorkContract.objects.filter(application=discussing).count() == 1


def test_loser_finding_both_agreed_returns_existing_contract(discussing, client_actor, worker_actor):
    negotiation.mark_agreement(JobApplication, discussing.pk, worker_actor, True)
    stale = snapshot_of(discussing)
    assert stale.status == NegotiationStatus.WORKER_AGREED

    # A duplicate submission from the client completes the agreement first
    _, winner = negotiation.mark_agreement(JobApplication, discussing.pk, client_actor, True)

    with replay_stale(stale):
        record, contract = negotiation.mark_agreement(JobApplication, discussing.pk, client_actor, True)

    assert record.status == NegotiationStatus.BOTH_AGREED
    assert contract.pk == winner.pk
    assert WorkContract.objects.count() == 1


def test_self_reconfirmation_after_losing_is_noop(discussing, client_actor):
    stale = snapshot_of(discussing)
    first, _ = negotiation.mark_agreement(JobApplication, discussing.pk, client_actor, True)

    with replay_stale(stale):
        record, contract = negotiation.mark_agreement(JobApplication, discussing.pk, client_actor, True)

    assert contract is None
    assert record.status == NegotiationStatus.CLIENT_AGREED
    discussing.refresh_from_db()
    assert discussing.client_agreed_at == first.client_agreed_at


def test_disagreement_after_losing_to_both_agreed_conflicts(discussing, client_actor, worker_actor):
    negotiation.mark_agreement(JobApplication, discussing.pk, worker_actor, True)
    stale = snapshot_of(discussing)
    negotiation.mark_agreement(JobApplication, discussing.pk, client_actor, True)

    with replay_stale(stale):
        with pytest.raises(StateConflict) as excinfo:
            negotiation.mark_agreement(JobApplication, discussing.pk, worker_actor, False)

    assert excinfo.value.current_state == NegotiationStatus.BOTH_AGREED
    assert WorkContract.objects.count() == 1


def test_retries_are_bounded(discussing, client_actor, worker_actor, settings):
    settings.NEGOTIATION_AGREEMENT_RETRIES = 2
    stale = snapshot_of(discussing)
    negotiation.mark_agreement(JobApplication, discussing.pk, worker_actor, True)

    with replay_stale(stale, stale_reads=10) as load:
        with pytest.raises(TransientFailure):
            negotiation.mark_agreement(JobApplication, discussing.pk, client_actor, True)

    assert load.call_count == 2
    assert WorkContract.objects.count() == 0


def test_database_refuses_second_contract_for_a_negotiation(discussing, client_actor, worker_actor):
    negotiation.mark_agreement(JobApplication, discussing.pk, client_actor, True)
    _, contract = negotiation.mark_agreement(JobApplication, discussing.pk, worker_actor, True)

    with pytest.raises(IntegrityError):
        with transaction.atomic():
            WorkContract.objects.create(
                client=contract.client, worker=contract.worker, job=contract.job,
                contract_type=contract.contract_type, agreed_rate=contract.agreed_rate,
                application=discussing,
            )
