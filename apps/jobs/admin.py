from django.contrib import admin
from .models import Category, Job, JobApplication, JobInvitation


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    search_fields = ('name',)


@admin.register(Job)
class JobAdmin(admin.ModelAdmin):
    list_display = ('title', 'client', 'status', 'price', 'hired_worker', 'created_at')
    list_filter = ('status', 'category')
    search_fields = ('title', 'client__user__username')


@admin.register(JobApplication)
class JobApplicationAdmin(admin.ModelAdmin):
    list_display = ('job', 'worker', 'status', 'proposed_rate', 'created_at')
    list_filter = ('status',)


@admin.register(JobInvitation)
class JobInvitationAdmin(admin.ModelAdmin):
    list_display = ('job', 'worker', 'status', 'proposed_rate', 'created_at')
    list_filter = ('status',)
