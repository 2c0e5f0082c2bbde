from rest_framework import serializers

from .models import Category, Job, JobApplication, JobInvitation


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ['id', 'name']


class PartySummarySerializer(serializers.Serializer):
    """Public view of a client or worker shown to the other party."""
    id = serializers.IntegerField()
    name = serializers.CharField(source='display_name')
    location = serializers.CharField(allow_null=True)
    is_verified = serializers.BooleanField()


class JobSerializer(serializers.ModelSerializer):
    category = CategorySerializer(read_only=True)
    category_id = serializers.PrimaryKeyRelatedField(
        queryset=Category.objects.all(), write_only=True, source='category', required=False, allow_null=True
    )
    client = PartySummarySerializer(read_only=True)
    hired_worker = PartySummarySerializer(read_only=True)

    class Meta:
        model = Job
        fields = [
            'id', 'title', 'description', 'location', 'price', 'category', 'category_id',
            'status', 'client', 'hired_worker', 'created_at', 'updated_at'
        ]
        read_only_fields = ['status', 'created_at', 'updated_at']


class NegotiationRecordSerializer(serializers.ModelSerializer):
    job = serializers.SerializerMethodField()
    client = PartySummarySerializer(read_only=True)
    worker = PartySummarySerializer(read_only=True)

    class Meta:
        fields = [
            'id', 'job', 'client', 'worker', 'message', 'proposed_rate', 'estimated_duration',
            'status', 'responded_at', 'discussion_started_at', 'client_agreed_at',
            'worker_agreed_at', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_job(self, obj):
        return {'id': obj.job_id, 'title': obj.job.title, 'status': obj.job.status}


class JobApplicationSerializer(NegotiationRecordSerializer):
    applied_at = serializers.DateTimeField(read_only=True)

    class Meta(NegotiationRecordSerializer.Meta):
        model = JobApplication
        fields = NegotiationRecordSerializer.Meta.fields + ['applied_at']
        read_only_fields = fields


class JobInvitationSerializer(NegotiationRecordSerializer):
    class Meta(NegotiationRecordSerializer.Meta):
        model = JobInvitation


class ProposalSerializer(serializers.Serializer):
    proposed_rate = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    message = serializers.CharField(required=False, allow_blank=True, default='', max_length=2000)
    estimated_duration = serializers.CharField(required=False, allow_blank=True, default='', max_length=100)


class ApplySerializer(ProposalSerializer):
    action = serializers.ChoiceField(choices=['apply', 'withdraw'], default='apply')
    proposed_rate = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)

    def validate(self, data):
        if data['action'] == 'apply' and data.get('proposed_rate') is None:
            raise serializers.ValidationError({'proposed_rate': 'This field is required.'})
        return data


class InviteSerializer(ProposalSerializer):
    worker_id = serializers.IntegerField(min_value=1)


class RespondSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['accept', 'reject'])


class AgreementSerializer(serializers.Serializer):
    agreed = serializers.BooleanField()
