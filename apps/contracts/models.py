from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Avg, Count, Q

from core.constants import ContractStatus, ContractType, PartyRole
from apps.jobs.models import Job, JobApplication, JobInvitation
from apps.users.models import Client, Worker


class WorkContract(models.Model):
    client = models.ForeignKey(Client, on_delete=models.PROTECT, related_name='contracts')
    worker = models.ForeignKey(Worker, on_delete=models.PROTECT, related_name='contracts')
    job = models.ForeignKey(Job, on_delete=models.PROTECT, related_name='contracts')
    application = models.OneToOneField(
        JobApplication, on_delete=models.SET_NULL, null=True, blank=True, related_name='contract'
    )
    invitation = models.OneToOneField(
        JobInvitation, on_delete=models.SET_NULL, null=True, blank=True, related_name='contract'
    )
    contract_type = models.CharField(max_length=20, choices=ContractType.choices)
    agreed_rate = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    contract_status = models.CharField(
        max_length=30, choices=ContractStatus.choices, default=ContractStatus.ACTIVE
    )
    start_date = models.DateTimeField(null=True, blank=True)
    worker_completed_at = models.DateTimeField(null=True, blank=True)
    client_confirmed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    actual_end_date = models.DateTimeField(null=True, blank=True)
    is_deleted = models.BooleanField(default=False)
    created_ip = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['worker', 'contract_status']),
            models.Index(fields=['client', 'contract_status']),
        ]

    def __str__(self):
        return f"Contract #{self.id} - {self.job.title} ({self.contract_status})"

    def party_role(self, profile):
        if isinstance(profile, Client) and profile.pk == self.client_id:
            return PartyRole.CLIENT
        if isinstance(profile, Worker) and profile.pk == self.worker_id:
            return PartyRole.WORKER
        return None


class ReviewQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_deleted=False)

    def received_by(self, party):
        if party.role == PartyRole.WORKER:
            return self.active().filter(worker=party, reviewee_type=PartyRole.WORKER)
        return self.active().filter(client=party, reviewee_type=PartyRole.CLIENT)

    def rating_stats(self):
        """Aggregate statistics, always recomputed from the stored reviews."""
        stats = {
            'average_rating': 0.0,
            'total_ratings': 0,
            'rating_breakdown': {f'{star}_star': 0 for star in range(5, 0, -1)}
        }

        summary = self.aggregate(average=Avg('rating'), total=Count('id'))
        if not summary['total']:
            return stats

        stats['total_ratings'] = summary['total']
        stats['average_rating'] = round(float(summary['average']), 1)

        for row in self.order_by().values('rating').annotate(count=Count('id')):
            stats['rating_breakdown'][f"{row['rating']}_star"] = round(
                (row['count'] / stats['total_ratings']) * 100, 1
            )
        return stats


class Review(models.Model):
    contract = models.ForeignKey(WorkContract, on_delete=models.CASCADE, related_name='reviews')
    job = models.ForeignKey(Job, on_delete=models.CASCADE, related_name='reviews')
    worker = models.ForeignKey(Worker, on_delete=models.CASCADE, related_name='reviews')
    client = models.ForeignKey(Client, on_delete=models.CASCADE, related_name='reviews')
    reviewer_type = models.CharField(max_length=10, choices=PartyRole.choices)
    reviewee_type = models.CharField(max_length=10, choices=PartyRole.choices)
    rating = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(5)])
    feedback = models.TextField()
    is_deleted = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ReviewQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['contract', 'reviewer_type'],
                condition=Q(is_deleted=False),
                name='unique_active_review_per_role',
            ),
        ]

    def __str__(self):
        return f"{self.reviewer_type} review on contract #{self.contract_id} ({self.rating}/5)"

    @property
    def reviewer(self):
        return self.client if self.reviewer_type == PartyRole.CLIENT else self.worker

    @property
    def reviewee(self):
        return self.worker if self.reviewee_type == PartyRole.WORKER else self.client
