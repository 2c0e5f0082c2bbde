from django.contrib import admin
from .models import Conversation


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ('client', 'worker', 'last_activity_at', 'created_at')
    search_fields = ('client__user__username', 'worker__user__username')
