import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import permissions
from rest_framework.views import APIView

from core.constants import WorkerStatus
from core.exceptions import RecordNotFound, StateConflict
from core.utils import IsWorker, success_response
from .models import Worker
from .serializers import WorkerAvailabilitySerializer

User = get_user_model()
logger = logging.getLogger(__name__)

rating_stats_schema = openapi.Schema(
    type=openapi.TYPE_OBJECT,
    properties={
        'average_rating': openapi.Schema(type=openapi.TYPE_NUMBER),
        'total_ratings': openapi.Schema(type=openapi.TYPE_INTEGER),
        'rating_breakdown': openapi.Schema(
            type=openapi.TYPE_OBJECT,
            properties={
                '5_star': openapi.Schema(type=openapi.TYPE_NUMBER),
                '4_star': openapi.Schema(type=openapi.TYPE_NUMBER),
                '3_star': openapi.Schema(type=openapi.TYPE_NUMBER),
                '2_star': openapi.Schema(type=openapi.TYPE_NUMBER),
                '1_star': openapi.Schema(type=openapi.TYPE_NUMBER),
            }
        )
    }
)


class WorkerAvailabilityView(APIView):
    permission_classes = [permissions.IsAuthenticated, IsWorker]

    @swagger_auto_schema(
        operation_description="Get the authenticated worker's availability.",
        responses={200: WorkerAvailabilitySerializer, 401: 'Unauthorized', 403: 'Forbidden'}
    )
    def get(self, request):
        serializer = WorkerAvailabilitySerializer(request.user.worker)
        return success_response('AVAILABILITY_RETRIEVED', 'Availability retrieved successfully', serializer.data)

    @swagger_auto_schema(
        operation_description="Set availability to 'available' or 'not available'. "
                              "Not allowed while working on a contract.",
        request_body=openapi.Schema(
            type=openapi.TYPE_OBJECT,
            required=['status'],
            properties={
                'status': openapi.Schema(
                    type=openapi.TYPE_STRING, enum=[WorkerStatus.AVAILABLE, WorkerStatus.NOT_AVAILABLE]
                )
            },
        ),
        responses={200: WorkerAvailabilitySerializer, 400: 'Bad Request', 409: 'Worker is working'}
    )
    def put(self, request):
        with transaction.atomic():
            worker = Worker.objects.select_for_update().get(pk=request.user.worker.pk)
            if worker.status == WorkerStatus.WORKING:
                raise StateConflict(
                    'You cannot change your availability while working on a job.',
                    current_state=worker.status
                )
            serializer = WorkerAvailabilitySerializer(worker, data=request.data)
            serializer.is_valid(raise_exception=True)
            serializer.save()
        logger.info(f"Worker {worker.id} set availability to {worker.status}")
        return success_response('AVAILABILITY_UPDATED', 'Availability updated successfully', serializer.data)


class UserRatingStatsView(APIView):
    permission_classes = [permissions.IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Get rating statistics for a user (worker or client).",
        responses={
            200: openapi.Response(description='Rating statistics', schema=rating_stats_schema),
            401: 'Unauthorized',
            404: 'Not Found'
        }
    )
    def get(self, request, user_id=None):
        # If no user_id provided, return stats for the authenticated user
        if user_id is None:
            user = request.user
        else:
            try:
                user = User.objects.get(id=user_id)
            except User.DoesNotExist:
                raise RecordNotFound('User not found', 'USER_NOT_FOUND')

        return success_response('RATING_STATS_RETRIEVED', 'Rating statistics retrieved successfully',
                                user.get_rating_stats())
