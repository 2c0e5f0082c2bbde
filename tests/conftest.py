import itertools
from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from core.utils import Actor
from apps.jobs import negotiation
from apps.jobs.models import Job, JobApplication, JobInvitation
from apps.users.models import Client, User, Worker

_usernames = itertools.count(1)


@pytest.fixture
def make_user(db):
    def _make(prefix='user', **kwargs):
        n = next(_usernames)
        kwargs.setdefault('email', f'{prefix}{n}@example.com')
        kwargs.setdefault('first_name', prefix.capitalize())
        kwargs.setdefault('last_name', str(n))
        return User.objects.create_user(username=f'{prefix}{n}', password='secret-pass', **kwargs)
    return _make


@pytest.fixture
def make_client(make_user):
    def _make(**kwargs):
        kwargs.setdefault('is_verified', True)
        return Client.objects.create(user=make_user('client'), **kwargs)
    return _make


@pytest.fixture
def make_worker(make_user):
    def _make(**kwargs):
        kwargs.setdefault('is_verified', True)
        return Worker.objects.create(user=make_user('worker'), **kwargs)
    return _make


@pytest.fixture
def make_job(db):
    def _make(client, **kwargs):
        kwargs.setdefault('title', 'Fix kitchen sink')
        kwargs.setdefault('description', 'Leaking pipe under the sink')
        kwargs.setdefault('location', 'Addis Ababa')
        kwargs.setdefault('price', Decimal('150.00'))
        return Job.objects.create(client=client, **kwargs)
    return _make


@pytest.fixture
def hiring_client(make_client):
    return make_client()


@pytest.fixture
def worker(make_worker):
    return make_worker()


@pytest.fixture
def job(make_job, hiring_client):
    return make_job(hiring_client)


@pytest.fixture
def client_actor(hiring_client):
    return Actor.for_profile(hiring_client, ip='10.0.0.1')


@pytest.fixture
def worker_actor(worker):
    return Actor.for_profile(worker, ip='10.0.0.2')


@pytest.fixture
def application(job, worker):
    return JobApplication.objects.create(
        job=job, worker=worker, client=job.client, proposed_rate=Decimal('120.00'), message='I can do this'
    )


@pytest.fixture
def invitation(job, worker):
    return JobInvitation.objects.create(
        job=job, worker=worker, client=job.client, proposed_rate=Decimal('140.00'), message='Interested?'
    )


@pytest.fixture
def contract(application, client_actor):
    """An active contract created by the client accepting the application."""
    _, created = negotiation.respond(JobApplication, application.pk, client_actor, negotiation.ACCEPT)
    return created


@pytest.fixture
def api():
    return APIClient()
