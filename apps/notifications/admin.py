from django.contrib import admin
from .models import NotificationLog


@admin.register(NotificationLog)
class NotificationLogAdmin(admin.ModelAdmin):
    list_display = ('recipient', 'event', 'channel', 'status', 'created_at', 'sent_at')
    list_filter = ('channel', 'status')
    search_fields = ('recipient__username', 'subject', 'event')
