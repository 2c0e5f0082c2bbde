from django.db import models, IntegrityError, transaction
from django.utils import timezone

from apps.users.models import Client, Worker


class ConversationQuerySet(models.QuerySet):
    def ensure_between(self, client, worker):
        """Return the conversation for the pair, creating it if missing. Never fails on duplicates."""
        conversation = self.filter(client=client, worker=worker).first()
        if conversation is not None:
            return conversation, False
        try:
            with transaction.atomic():
                return self.create(client=client, worker=worker), True
        except IntegrityError:
            # Created concurrently by the other party.
            return self.get(client=client, worker=worker), False


class Conversation(models.Model):
    client = models.ForeignKey(Client, on_delete=models.CASCADE, related_name='conversations')
    worker = models.ForeignKey(Worker, on_delete=models.CASCADE, related_name='conversations')
    last_activity_at = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = ConversationQuerySet.as_manager()

    class Meta:
        unique_together = ('client', 'worker')
        ordering = ['-last_activity_at']

    def __str__(self):
        return f"Conversation between {self.client.user.username} and {self.worker.user.username}"

    def touch(self):
        self.last_activity_at = timezone.now()
        self.save(update_fields=['last_activity_at'])
