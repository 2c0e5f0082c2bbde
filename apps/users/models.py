from django.db import models
from django.contrib.auth.models import AbstractUser
from django.utils import timezone

from core.constants import OPEN_CONTRACT_STATUSES, PartyRole, WorkerStatus
from core.utils import safe_decrypt


class User(AbstractUser):
    email = models.EmailField(blank=True, null=True, unique=True)
    phone_number = models.CharField(max_length=15, blank=True, null=True, unique=True)
    is_verified = models.BooleanField(default=False)

    @property
    def is_client(self):
        return hasattr(self, 'client')

    @property
    def is_worker(self):
        return hasattr(self, 'worker')

    @property
    def user_type(self):
        if self.is_worker:
            return PartyRole.WORKER
        if self.is_client:
            return PartyRole.CLIENT
        return None

    @property
    def party(self):
        if self.is_worker:
            return self.worker
        if self.is_client:
            return self.client
        return None

    def get_rating_stats(self):
        """Get rating statistics for the worker or client behind this account."""
        from apps.contracts.models import Review

        party = self.party
        if party is None:
            return Review.objects.none().rating_stats()
        return Review.objects.received_by(party).rating_stats()


class Party(models.Model):
    """Fields and behaviour shared by the two sides of a contract."""
    role = None

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='%(class)s')
    location = models.CharField(max_length=100, blank=True, null=True)
    blocked = models.BooleanField(default=False)
    block_reason = models.CharField(max_length=255, blank=True, default='')
    is_verified = models.BooleanField(default=False)
    verified_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True

    @property
    def credential_id(self):
        return self.user_id

    @property
    def display_name(self):
        first = safe_decrypt(self.user.first_name, f"{self.role} first_name")
        last = safe_decrypt(self.user.last_name, f"{self.role} last_name")
        return f"{first} {last}".strip() or self.user.username

    def identity(self):
        """Public identity handed to the counter-party."""
        return {
            'id': self.id,
            'credential_id': self.credential_id,
            'user_type': self.role,
            'name': self.display_name,
        }


class Client(Party):
    role = PartyRole.CLIENT

    total_jobs_posted = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"Client: {self.user.username}"


class Worker(Party):
    role = PartyRole.WORKER

    status = models.CharField(max_length=20, choices=WorkerStatus.choices, default=WorkerStatus.AVAILABLE)
    current_job = models.ForeignKey(
        'jobs.Job', on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    total_jobs_completed = models.PositiveIntegerField(default=0)
    last_activity = models.DateTimeField(null=True, blank=True)
    join_date = models.DateTimeField(default=timezone.now)

    class Meta:
        indexes = [
            models.Index(fields=['status']),
            models.Index(fields=['blocked']),
        ]

    def __str__(self):
        return f"Worker: {self.user.username}"

    @property
    def status_text(self):
        return WorkerStatus(self.status).label if self.status in WorkerStatus.values else 'Unknown'

    def is_available_for_work(self):
        return (
            self.status == WorkerStatus.AVAILABLE and
            not self.blocked and
            self.is_verified and
            self.current_job_id is None
        )

    def can_accept_new_contract(self):
        # Checked again against WORKING in case status changed between read and transition.
        return self.is_available_for_work() and self.status != WorkerStatus.WORKING

    def start_working(self, job):
        self.status = WorkerStatus.WORKING
        self.current_job = job
        return self

    def become_available(self):
        self.status = WorkerStatus.AVAILABLE
        self.current_job = None
        return self

    def set_not_available(self):
        self.status = WorkerStatus.NOT_AVAILABLE
        self.current_job = None
        return self

    def has_open_contract(self, exclude=None):
        contracts = self.contracts.filter(contract_status__in=OPEN_CONTRACT_STATUSES, is_deleted=False)
        if exclude is not None:
            contracts = contracts.exclude(pk=exclude.pk)
        return contracts.exists()
