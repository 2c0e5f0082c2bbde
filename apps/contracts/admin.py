from django.contrib import admin
from .models import WorkContract, Review


@admin.register(WorkContract)
class WorkContractAdmin(admin.ModelAdmin):
    list_display = ('id', 'job', 'client', 'worker', 'contract_type', 'contract_status', 'agreed_rate', 'created_at')
    list_filter = ('contract_status', 'contract_type', 'is_deleted')
    search_fields = ('job__title', 'client__user__username', 'worker__user__username')
    readonly_fields = ('created_ip', 'created_at', 'updated_at')


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ('contract', 'reviewer_type', 'rating', 'is_deleted', 'created_at')
    list_filter = ('reviewer_type', 'rating', 'is_deleted')
