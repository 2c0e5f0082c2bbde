# core/constants.py
from django.db import models


class JobStatus(models.TextChoices):
    OPEN = 'open', 'Open'                       # Accepting applications and invitations
    HIRED = 'hired', 'Hired'                    # A contract exists, work not started
    IN_PROGRESS = 'in_progress', 'In Progress'  # Hired worker has started
    COMPLETED = 'completed', 'Completed'        # Worker submitted the work
    CANCELLED = 'cancelled', 'Cancelled'        # Withdrawn by the client


class NegotiationStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'                    # Awaiting the receiving party
    IN_DISCUSSION = 'in_discussion', 'In Discussion'  # Parties are talking terms
    CLIENT_AGREED = 'client_agreed', 'Client Agreed'
    WORKER_AGREED = 'worker_agreed', 'Worker Agreed'
    BOTH_AGREED = 'both_agreed', 'Both Agreed'        # Contract created
    ACCEPTED = 'accepted', 'Accepted'                 # Accepted outright, contract created
    REJECTED = 'rejected', 'Rejected'


class ContractStatus(models.TextChoices):
    ACTIVE = 'active', 'Active'
    IN_PROGRESS = 'in_progress', 'In Progress'
    AWAITING_CLIENT_CONFIRMATION = 'awaiting_client_confirmation', 'Awaiting Client Confirmation'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'


class ContractType(models.TextChoices):
    JOB_APPLICATION = 'job_application', 'Job Application'
    DIRECT_INVITATION = 'direct_invitation', 'Direct Invitation'


class WorkerStatus(models.TextChoices):
    AVAILABLE = 'available', 'Available'
    WORKING = 'working', 'Working'
    NOT_AVAILABLE = 'not available', 'Not Available'


class PartyRole(models.TextChoices):
    CLIENT = 'client', 'Client'
    WORKER = 'worker', 'Worker'


# Contracts that occupy a worker's capacity
OPEN_CONTRACT_STATUSES = (ContractStatus.ACTIVE, ContractStatus.IN_PROGRESS)

FEEDBACK_MIN_LENGTH = 5
FEEDBACK_MAX_LENGTH = 1000
