from django.conf import settings
from rest_framework import serializers

from core.constants import ContractStatus, ContractType, FEEDBACK_MAX_LENGTH, FEEDBACK_MIN_LENGTH
from apps.jobs.serializers import PartySummarySerializer
from .lifecycle import SORT_FIELDS
from .models import Review, WorkContract


class ReviewSerializer(serializers.ModelSerializer):
    reviewer = serializers.SerializerMethodField()
    job_title = serializers.CharField(source='job.title', read_only=True)

    class Meta:
        model = Review
        fields = [
            'id', 'contract', 'job', 'job_title', 'reviewer', 'reviewer_type', 'reviewee_type',
            'rating', 'feedback', 'created_at'
        ]
        read_only_fields = fields

    def get_reviewer(self, obj):
        reviewer = obj.reviewer
        return {'id': reviewer.id, 'name': reviewer.display_name}


class WorkContractSerializer(serializers.ModelSerializer):
    """Outward projection of a contract. The creating IP address stays internal."""
    job = serializers.SerializerMethodField()
    client = PartySummarySerializer(read_only=True)
    worker = PartySummarySerializer(read_only=True)
    reviews = serializers.SerializerMethodField()

    class Meta:
        model = WorkContract
        fields = [
            'id', 'job', 'client', 'worker', 'application', 'invitation', 'contract_type',
            'agreed_rate', 'contract_status', 'start_date', 'worker_completed_at',
            'client_confirmed_at', 'completed_at', 'actual_end_date', 'reviews',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_job(self, obj):
        return {
            'id': obj.job_id,
            'title': obj.job.title,
            'location': obj.job.location,
            'status': obj.job.status,
        }

    def get_reviews(self, obj):
        reviews = getattr(obj, 'active_reviews', None)
        if reviews is None:
            reviews = obj.reviews.active()
        return ReviewSerializer(reviews, many=True).data


class PaginationQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(min_value=1, max_value=1000, default=1)
    limit = serializers.IntegerField(min_value=1, default=10)

    def validate_limit(self, value):
        if value > settings.CONTRACT_PAGE_MAX_LIMIT:
            raise serializers.ValidationError(
                f"Ensure this value is less than or equal to {settings.CONTRACT_PAGE_MAX_LIMIT}."
            )
        return value


class ContractListQuerySerializer(PaginationQuerySerializer):
    status = serializers.ChoiceField(choices=ContractStatus.choices, required=False)
    contract_type = serializers.ChoiceField(choices=ContractType.choices, required=False)
    sort_by = serializers.ChoiceField(choices=list(SORT_FIELDS), default='created_at')
    sort_order = serializers.ChoiceField(choices=['asc', 'desc'], default='desc')


class ReviewListQuerySerializer(PaginationQuerySerializer):
    rating = serializers.IntegerField(min_value=1, max_value=5, required=False)


class FeedbackSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=1, max_value=5)
    feedback = serializers.CharField(min_length=FEEDBACK_MIN_LENGTH, max_length=FEEDBACK_MAX_LENGTH)
