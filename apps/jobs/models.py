from django.core.validators import MinValueValidator
from django.db import models

from core.constants import ContractType, JobStatus, NegotiationStatus, PartyRole
from apps.users.models import Client, Worker


class Category(models.Model):
    name = models.CharField(max_length=100, unique=True)

    class Meta:
        verbose_name_plural = 'Categories'

    def __str__(self):
        return self.name


class Job(models.Model):
    client = models.ForeignKey(Client, on_delete=models.CASCADE, related_name='jobs')
    title = models.CharField(max_length=200)
    description = models.TextField()
    location = models.CharField(max_length=200)
    price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    category = models.ForeignKey(Category, on_delete=models.SET_NULL, null=True, blank=True)
    status = models.CharField(max_length=20, choices=JobStatus.choices, default=JobStatus.OPEN)
    hired_worker = models.ForeignKey(
        Worker, on_delete=models.SET_NULL, null=True, blank=True, related_name='hired_jobs'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.title} - {self.client.user.username}"

    @property
    def is_open(self):
        return self.status == JobStatus.OPEN and self.hired_worker_id is None

    def mark_hired(self, worker):
        self.status = JobStatus.HIRED
        self.hired_worker = worker

    def reopen(self):
        self.status = JobStatus.OPEN
        self.hired_worker = None


class NegotiationRecord(models.Model):
    """Terms proposed by one party for a job, negotiated until a contract results."""
    initiator = None
    contract_type = None

    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name='%(class)ss')
    worker = models.ForeignKey(Worker, on_delete=models.CASCADE, related_name='%(class)ss')
    client = models.ForeignKey(Client, on_delete=models.CASCADE, related_name='%(class)ss')
    message = models.TextField(blank=True, default='')
    proposed_rate = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    estimated_duration = models.CharField(max_length=100, blank=True, default='')
    status = models.CharField(max_length=20, choices=NegotiationStatus.choices, default=NegotiationStatus.PENDING)
    responded_at = models.DateTimeField(null=True, blank=True)
    discussion_started_at = models.DateTimeField(null=True, blank=True)
    client_agreed_at = models.DateTimeField(null=True, blank=True)
    worker_agreed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        unique_together = ('job', 'worker')
        ordering = ['-created_at']

    @property
    def receiver(self):
        """The party who answers the proposal."""
        return PartyRole.WORKER if self.initiator == PartyRole.CLIENT else PartyRole.CLIENT

    @property
    def kind(self):
        return self._meta.model_name.replace('job', '')

    def party_for(self, role):
        return self.client if role == PartyRole.CLIENT else self.worker

    def counterparty_of(self, role):
        return self.worker if role == PartyRole.CLIENT else self.client


class JobApplication(NegotiationRecord):
    initiator = PartyRole.WORKER
    contract_type = ContractType.JOB_APPLICATION

    class Meta(NegotiationRecord.Meta):
        pass

    def __str__(self):
        return f"{self.worker.user.username} applied to {self.job.title}"

    @property
    def applied_at(self):
        return self.created_at


class JobInvitation(NegotiationRecord):
    initiator = PartyRole.CLIENT
    contract_type = ContractType.DIRECT_INVITATION

    class Meta(NegotiationRecord.Meta):
        pass

    def __str__(self):
        return f"Invitation for {self.worker.user.username} on {self.job.title}"
