from django.urls import path
from .views import (
    ClientContractsView, WorkerContractsView, ContractDetailView, ContractStartView,
    ContractCompleteView, ContractConfirmView, ContractCancelView, ContractFeedbackView,
    ContractReviewsView, WorkerReviewsView, ClientReviewsView
)

urlpatterns = [
    path('client/', ClientContractsView.as_view(), name='client_contracts'),
    path('worker/', WorkerContractsView.as_view(), name='worker_contracts'),
    path('<int:pk>/', ContractDetailView.as_view(), name='contract_detail'),
    path('<int:pk>/start/', ContractStartView.as_view(), name='contract_start'),
    path('<int:pk>/complete/', ContractCompleteView.as_view(), name='contract_complete'),
    path('<int:pk>/confirm/', ContractConfirmView.as_view(), name='contract_confirm'),
    path('<int:pk>/cancel/', ContractCancelView.as_view(), name='contract_cancel'),
    path('<int:pk>/feedback/', ContractFeedbackView.as_view(), name='contract_feedback'),
    path('<int:pk>/reviews/', ContractReviewsView.as_view(), name='contract_reviews'),
    path('reviews/worker/<int:worker_id>/', WorkerReviewsView.as_view(), name='worker_reviews'),
    path('reviews/client/<int:client_id>/', ClientReviewsView.as_view(), name='client_reviews'),
]
