import logging
from dataclasses import dataclass

from django.conf import settings
from django.utils.module_loading import import_string
from rest_framework import permissions, status
from rest_framework.response import Response

from core.constants import PartyRole

logger = logging.getLogger(__name__)


class IsClient(permissions.BasePermission):
    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False
        return hasattr(request.user, 'client')


class IsWorker(permissions.BasePermission):
    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False
        return hasattr(request.user, 'worker')


class IsParty(permissions.BasePermission):
    """Client or worker; admin-only accounts cannot take part in contracts."""
    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False
        return hasattr(request.user, 'client') or hasattr(request.user, 'worker')


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, resolved once per request to its role profile."""
    user: object
    role: str
    profile: object
    ip: str = None

    @property
    def is_client(self):
        return self.role == PartyRole.CLIENT

    @property
    def is_worker(self):
        return self.role == PartyRole.WORKER

    @classmethod
    def for_profile(cls, profile, ip=None):
        return cls(user=profile.user, role=str(profile.role), profile=profile, ip=ip)

    @classmethod
    def from_request(cls, request):
        user = request.user
        # A user holds a single role profile; worker wins if both exist.
        if hasattr(user, 'worker'):
            profile = user.worker
        else:
            profile = user.client
        return cls.for_profile(profile, ip=client_ip(request))


def client_ip(request):
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def safe_decrypt(value, field_name='field'):
    """Reverse PII encryption on a stored value, falling back to the stored value."""
    if not value or not isinstance(value, str):
        return ''
    path = getattr(settings, 'PII_DECRYPTOR', '')
    if not path:
        return value
    try:
        return import_string(path)(value)
    except Exception as e:
        logger.warning(f"Decryption failed for {field_name}: {str(e)}")
        return value


def paginate(queryset, page=1, limit=10):
    total = queryset.count()
    offset = (page - 1) * limit
    items = list(queryset[offset:offset + limit])
    pagination = {
        'current_page': page,
        'total_pages': (total + limit - 1) // limit,
        'total_items': total,
        'items_per_page': limit,
    }
    return items, pagination


def success_response(code, message, data=None, status_code=status.HTTP_200_OK):
    body = {'success': True, 'message': message, 'code': code}
    if data is not None:
        body['data'] = data
    return Response(body, status=status_code)
