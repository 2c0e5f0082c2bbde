import logging

from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from core.utils import Actor, IsClient, IsParty, IsWorker, success_response
from . import lifecycle, reviews
from .serializers import (
    ContractListQuerySerializer, FeedbackSerializer, ReviewListQuerySerializer,
    ReviewSerializer, WorkContractSerializer
)

logger = logging.getLogger(__name__)

contract_response = openapi.Response('Contract', WorkContractSerializer)
error_responses = {
    401: 'Unauthorized',
    404: 'Contract not found or not a party',
    409: 'Invalid state transition or worker not available',
    503: 'Transaction aborted, retry',
}


def _contract_list_response(code, message, result):
    return success_response(code, message, {
        'contracts': WorkContractSerializer(result['contracts'], many=True).data,
        'pagination': result['pagination'],
        'statistics': result['statistics'],
    })


def _review_list_response(code, message, result):
    return success_response(code, message, {
        'reviews': ReviewSerializer(result['reviews'], many=True).data,
        'pagination': result['pagination'],
        'statistics': result['statistics'],
    })


class ClientContractsView(APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(
        operation_description="List the authenticated client's contracts with statistics.",
        query_serializer=ContractListQuerySerializer,
        responses={200: WorkContractSerializer(many=True), 400: 'Bad Request'}
    )
    def get(self, request):
        query = ContractListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        result = lifecycle.list_client_contracts(Actor.from_request(request), query.validated_data)
        return _contract_list_response('CLIENT_CONTRACTS_RETRIEVED', 'Contracts retrieved successfully', result)


class WorkerContractsView(APIView):
    permission_classes = [IsAuthenticated, IsWorker]

    @swagger_auto_schema(
        operation_description="List the authenticated worker's contracts with statistics.",
        query_serializer=ContractListQuerySerializer,
        responses={200: WorkContractSerializer(many=True), 400: 'Bad Request'}
    )
    def get(self, request):
        query = ContractListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        result = lifecycle.list_worker_contracts(Actor.from_request(request), query.validated_data)
        return _contract_list_response('WORKER_CONTRACTS_RETRIEVED', 'Contracts retrieved successfully', result)


class ContractDetailView(APIView):
    permission_classes = [IsAuthenticated, IsParty]

    @swagger_auto_schema(
        operation_description="Get one contract you are a party to.",
        responses={200: contract_response, 404: 'Not Found'}
    )
    def get(self, request, pk):
        contract = lifecycle.contract_details(pk, Actor.from_request(request))
        return success_response('CONTRACT_DETAILS_RETRIEVED', 'Contract details retrieved successfully',
                                WorkContractSerializer(contract).data)


class ContractStartView(APIView):
    permission_classes = [IsAuthenticated, IsWorker]

    @swagger_auto_schema(
        operation_description="Start work on an active contract. The worker must be available.",
        responses={200: contract_response, **error_responses}
    )
    def post(self, request, pk):
        contract = lifecycle.start_work(pk, Actor.from_request(request))
        return success_response('WORK_STARTED', 'Work started successfully', WorkContractSerializer(contract).data)


class ContractCompleteView(APIView):
    permission_classes = [IsAuthenticated, IsWorker]

    @swagger_auto_schema(
        operation_description="Submit the work on an in-progress contract for client confirmation.",
        responses={200: contract_response, **error_responses}
    )
    def post(self, request, pk):
        contract = lifecycle.complete_work(pk, Actor.from_request(request))
        return success_response('WORK_COMPLETION_SUBMITTED', 'Work marked as completed. Awaiting client confirmation',
                                WorkContractSerializer(contract).data)


class ContractConfirmView(APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(
        operation_description="Confirm completion of work submitted by the worker.",
        responses={200: contract_response, **error_responses}
    )
    def post(self, request, pk):
        contract = lifecycle.confirm_work_completion(pk, Actor.from_request(request))
        return success_response('WORK_COMPLETION_CONFIRMED', 'Work completion confirmed successfully',
                                WorkContractSerializer(contract).data)


class ContractCancelView(APIView):
    permission_classes = [IsAuthenticated, IsParty]

    @swagger_auto_schema(
        operation_description="Cancel an active or in-progress contract. Either party may cancel.",
        responses={200: contract_response, **error_responses}
    )
    def post(self, request, pk):
        contract = lifecycle.cancel_contract(pk, Actor.from_request(request))
        return success_response('CONTRACT_CANCELLED', 'Contract cancelled successfully',
                                WorkContractSerializer(contract).data)


class ContractFeedbackView(APIView):
    permission_classes = [IsAuthenticated, IsParty]

    @swagger_auto_schema(
        operation_description="Review the other party of a completed contract. One review per role.",
        request_body=FeedbackSerializer,
        responses={201: ReviewSerializer, 400: 'Bad Request', **error_responses}
    )
    def post(self, request, pk):
        serializer = FeedbackSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        review = reviews.submit_feedback(
            pk, Actor.from_request(request),
            serializer.validated_data['rating'], serializer.validated_data['feedback']
        )
        return success_response('REVIEW_SUBMITTED', 'Review submitted successfully',
                                ReviewSerializer(review).data, status.HTTP_201_CREATED)


class ContractReviewsView(APIView):
    permission_classes = [IsAuthenticated, IsParty]

    @swagger_auto_schema(
        operation_description="Reviews on a contract and whether you can still submit one.",
        responses={200: openapi.Response('Contract reviews'), 404: 'Not Found'}
    )
    def get(self, request, pk):
        result = lifecycle.contract_reviews(pk, Actor.from_request(request))
        return success_response('CONTRACT_REVIEWS_RETRIEVED', 'Contract reviews retrieved successfully', {
            'contract_id': result['contract'].id,
            'contract_status': result['contract'].contract_status,
            'reviews': ReviewSerializer(result['reviews'], many=True).data,
            'can_submit_review': result['can_submit_review'],
        })


class WorkerReviewsView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Reviews received by a worker, with rating statistics.",
        query_serializer=ReviewListQuerySerializer,
        responses={200: ReviewSerializer(many=True), 404: 'Worker not found'}
    )
    def get(self, request, worker_id):
        query = ReviewListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        result = reviews.worker_reviews(worker_id, query.validated_data)
        return _review_list_response('WORKER_REVIEWS_RETRIEVED', 'Worker reviews retrieved successfully', result)


class ClientReviewsView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="Reviews received by a client, with rating statistics.",
        query_serializer=ReviewListQuerySerializer,
        responses={200: ReviewSerializer(many=True), 404: 'Client not found'}
    )
    def get(self, request, client_id):
        query = ReviewListQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        result = reviews.client_reviews(client_id, query.validated_data)
        return _review_list_response('CLIENT_REVIEWS_RETRIEVED', 'Client reviews retrieved successfully', result)
