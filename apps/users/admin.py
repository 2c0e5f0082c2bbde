from django.contrib import admin
from .models import User, Client, Worker

@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'email', 'phone_number', 'is_client', 'is_worker', 'is_superuser', 'is_verified')
    list_filter = ('is_superuser', 'is_verified')
    search_fields = ('username', 'email', 'phone_number')

@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ('user', 'location', 'is_verified', 'blocked', 'total_jobs_posted')
    list_filter = ('is_verified', 'blocked')
    search_fields = ('user__username', 'user__email')

@admin.register(Worker)
class WorkerAdmin(admin.ModelAdmin):
    list_display = ('user', 'location', 'status', 'current_job', 'total_jobs_completed', 'is_verified', 'blocked')
    list_filter = ('status', 'is_verified', 'blocked')
    search_fields = ('user__username', 'user__email')
