from django.urls import path
from .views import WorkerAvailabilityView, UserRatingStatsView

urlpatterns = [
    # Availability
    path('workers/me/availability/', WorkerAvailabilityView.as_view(), name='worker_availability'),

    # Rating Statistics
    path('ratings/', UserRatingStatsView.as_view(), name='user_ratings'),
    path('<int:user_id>/ratings/', UserRatingStatsView.as_view(), name='user_ratings_by_id'),
]
