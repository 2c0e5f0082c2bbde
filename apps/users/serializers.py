from rest_framework import serializers

from core.constants import WorkerStatus
from .models import Worker


class WorkerAvailabilitySerializer(serializers.ModelSerializer):
    status = serializers.ChoiceField(choices=[WorkerStatus.AVAILABLE, WorkerStatus.NOT_AVAILABLE])
    status_text = serializers.CharField(read_only=True)
    current_job = serializers.PrimaryKeyRelatedField(read_only=True)
    can_accept_new_contract = serializers.SerializerMethodField()

    class Meta:
        model = Worker
        fields = ['id', 'status', 'status_text', 'current_job', 'total_jobs_completed', 'can_accept_new_contract']
        read_only_fields = ['total_jobs_completed']

    def get_can_accept_new_contract(self, obj):
        return obj.can_accept_new_contract()

    def update(self, instance, validated_data):
        if validated_data['status'] == WorkerStatus.AVAILABLE:
            instance.become_available()
        else:
            instance.set_not_available()
        instance.save(update_fields=['status', 'current_job', 'updated_at'])
        return instance
