import logging

from django.db.models import F
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.views import APIView

from core.constants import JobStatus, NegotiationStatus
from core.utils import Actor, IsClient, IsParty, IsWorker, success_response
from apps.users.models import Client
from . import negotiation
from .models import Job, JobApplication, JobInvitation
from .serializers import (
    AgreementSerializer, ApplySerializer, InviteSerializer, JobApplicationSerializer,
    JobInvitationSerializer, JobSerializer, RespondSerializer
)

logger = logging.getLogger(__name__)

envelope_schema = openapi.Schema(
    type=openapi.TYPE_OBJECT,
    properties={
        'success': openapi.Schema(type=openapi.TYPE_BOOLEAN),
        'message': openapi.Schema(type=openapi.TYPE_STRING),
        'code': openapi.Schema(type=openapi.TYPE_STRING),
        'data': openapi.Schema(type=openapi.TYPE_OBJECT),
    }
)

proposal_properties = {
    'proposed_rate': openapi.Schema(type=openapi.TYPE_NUMBER),
    'message': openapi.Schema(type=openapi.TYPE_STRING),
    'estimated_duration': openapi.Schema(type=openapi.TYPE_STRING),
}


def _contract_summary(contract):
    if contract is None:
        return None
    return {
        'id': contract.id,
        'contract_type': contract.contract_type,
        'contract_status': contract.contract_status,
        'agreed_rate': str(contract.agreed_rate),
    }


class JobCreateView(APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(
        operation_description="Create a new job.",
        request_body=openapi.Schema(
            type=openapi.TYPE_OBJECT,
            required=['title', 'description', 'location', 'price'],
            properties={
                'title': openapi.Schema(type=openapi.TYPE_STRING),
                'description': openapi.Schema(type=openapi.TYPE_STRING),
                'location': openapi.Schema(type=openapi.TYPE_STRING),
                'price': openapi.Schema(type=openapi.TYPE_NUMBER),
                'category_id': openapi.Schema(type=openapi.TYPE_INTEGER),
            },
        ),
        responses={201: envelope_schema, 400: 'Bad Request', 401: 'Unauthorized', 403: 'Forbidden'}
    )
    def post(self, request):
        serializer = JobSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        client = request.user.client
        job = serializer.save(client=client, status=JobStatus.OPEN)
        Client.objects.filter(pk=client.pk).update(total_jobs_posted=F('total_jobs_posted') + 1)
        logger.info(f"Client {client.id} created job {job.id}")
        return success_response('JOB_CREATED', 'Job created successfully', JobSerializer(job).data,
                                status.HTTP_201_CREATED)


class JobListView(APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(
        operation_description="List the jobs posted by the authenticated client.",
        responses={200: JobSerializer(many=True), 401: 'Unauthorized', 403: 'Forbidden'}
    )
    def get(self, request):
        jobs = Job.objects.filter(client=request.user.client).select_related('category', 'client__user')
        return success_response('JOBS_RETRIEVED', 'Jobs retrieved successfully', JobSerializer(jobs, many=True).data)


class OpenJobListView(APIView):
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(
        operation_description="List all jobs open for applications.",
        responses={200: JobSerializer(many=True), 401: 'Unauthorized'}
    )
    def get(self, request):
        jobs = Job.objects.filter(status=JobStatus.OPEN).select_related('category', 'client__user')
        return success_response('JOBS_RETRIEVED', 'Open jobs retrieved successfully',
                                JobSerializer(jobs, many=True).data)


class JobApplicationView(APIView):
    permission_classes = [IsAuthenticated, IsWorker]

    @swagger_auto_schema(
        operation_description="Apply to an open job or withdraw a pending application.",
        request_body=openapi.Schema(
            type=openapi.TYPE_OBJECT,
            properties={
                'action': openapi.Schema(type=openapi.TYPE_STRING, enum=['apply', 'withdraw']),
                **proposal_properties,
            }
        ),
        responses={
            201: JobApplicationSerializer,
            200: 'Application withdrawn',
            400: 'Bad Request',
            404: 'Job or application not found',
            409: 'Job not open or already applied'
        }
    )
    def post(self, request, id):
        serializer = ApplySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        actor = Actor.from_request(request)

        if data['action'] == 'withdraw':
            application = negotiation.find_pending_application(id, actor)
            negotiation.withdraw(JobApplication, application.pk, actor)
            return success_response('APPLICATION_WITHDRAWN', 'Application withdrawn successfully')

        application = negotiation.apply(
            id, actor, data['proposed_rate'], data['message'], data['estimated_duration']
        )
        return success_response('APPLICATION_SUBMITTED', 'Application submitted successfully',
                                JobApplicationSerializer(application).data, status.HTTP_201_CREATED)


class JobApplicationsListView(APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(
        operation_description="List all applications for a job (client must own the job).",
        responses={200: JobApplicationSerializer(many=True), 404: 'Not Found'}
    )
    def get(self, request, id):
        applications = negotiation.job_applications(id, Actor.from_request(request))
        return success_response('APPLICATIONS_RETRIEVED', 'Applications retrieved successfully',
                                JobApplicationSerializer(applications, many=True).data)


class UserApplicationsView(APIView):
    permission_classes = [IsAuthenticated, IsWorker]

    @swagger_auto_schema(
        operation_description="List all applications submitted by the authenticated worker.",
        responses={200: JobApplicationSerializer(many=True)}
    )
    def get(self, request):
        applications = negotiation.worker_applications(Actor.from_request(request))
        return success_response('APPLICATIONS_RETRIEVED', 'Applications retrieved successfully',
                                JobApplicationSerializer(applications, many=True).data)


class JobInviteView(APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(
        operation_description="Invite a worker directly to one of your open jobs.",
        request_body=openapi.Schema(
            type=openapi.TYPE_OBJECT,
            required=['worker_id', 'proposed_rate'],
            properties={'worker_id': openapi.Schema(type=openapi.TYPE_INTEGER), **proposal_properties}
        ),
        responses={
            201: JobInvitationSerializer,
            400: 'Bad Request',
            404: 'Job or worker not found',
            409: 'Job not open or worker already invited'
        }
    )
    def post(self, request, id):
        serializer = InviteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        invitation = negotiation.invite(
            id, Actor.from_request(request), data['worker_id'], data['proposed_rate'],
            data['message'], data['estimated_duration']
        )
        return success_response('INVITATION_SENT', 'Invitation sent successfully',
                                JobInvitationSerializer(invitation).data, status.HTTP_201_CREATED)


class ReceivedInvitationsView(APIView):
    permission_classes = [IsAuthenticated, IsWorker]

    @swagger_auto_schema(
        operation_description="List invitations received by the authenticated worker.",
        responses={200: JobInvitationSerializer(many=True)}
    )
    def get(self, request):
        invitations = negotiation.received_invitations(Actor.from_request(request))
        return success_response('INVITATIONS_RETRIEVED', 'Invitations retrieved successfully',
                                JobInvitationSerializer(invitations, many=True).data)


class SentInvitationsView(APIView):
    permission_classes = [IsAuthenticated, IsClient]

    @swagger_auto_schema(
        operation_description="List invitations sent by the authenticated client.",
        responses={200: JobInvitationSerializer(many=True)}
    )
    def get(self, request):
        invitations = negotiation.sent_invitations(Actor.from_request(request))
        return success_response('INVITATIONS_RETRIEVED', 'Invitations retrieved successfully',
                                JobInvitationSerializer(invitations, many=True).data)


class NegotiationView(APIView):
    """Shared plumbing for views acting on one application or invitation."""
    permission_classes = [IsAuthenticated, IsParty]
    model = None
    serializer_class = None

    @property
    def kind(self):
        return self.model._meta.model_name.replace('job', '')

    def record_data(self, record):
        return self.serializer_class(record).data


class NegotiationRespondView(NegotiationView):
    @swagger_auto_schema(
        operation_description="Accept or reject a pending record. Only the receiving party may respond; "
                              "accepting creates the contract.",
        request_body=RespondSerializer,
        responses={200: envelope_schema, 404: 'Not Found', 409: 'Invalid state transition'}
    )
    def post(self, request, pk):
        serializer = RespondSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        action = serializer.validated_data['action']
        record, contract = negotiation.respond(self.model, pk, Actor.from_request(request), action)

        outcome = 'ACCEPTED' if record.status == NegotiationStatus.ACCEPTED else 'REJECTED'
        return success_response(
            f'{self.kind.upper()}_{outcome}',
            f'{self.kind.capitalize()} {outcome.lower()} successfully',
            {self.kind: self.record_data(record), 'contract': _contract_summary(contract)}
        )


class NegotiationDiscussionView(NegotiationView):
    @swagger_auto_schema(
        operation_description="Start a discussion on a pending record and open a conversation "
                              "with the other party.",
        responses={200: envelope_schema, 404: 'Not Found', 409: 'Invalid state transition'}
    )
    def post(self, request, pk):
        record, conversation, counterparty = negotiation.start_discussion(
            self.model, pk, Actor.from_request(request)
        )
        return success_response('DISCUSSION_STARTED', 'Discussion started successfully', {
            self.kind: self.record_data(record),
            'conversation_id': conversation.id,
            'counterparty': counterparty,
        })


class NegotiationAgreementView(NegotiationView):
    @swagger_auto_schema(
        operation_description="Agree to or decline the discussed terms. The contract is created "
                              "once both parties agree.",
        request_body=AgreementSerializer,
        responses={200: envelope_schema, 404: 'Not Found', 409: 'Invalid state transition'}
    )
    def post(self, request, pk):
        serializer = AgreementSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        record, contract = negotiation.mark_agreement(
            self.model, pk, Actor.from_request(request), serializer.validated_data['agreed']
        )
        if contract is not None:
            code, message = 'CONTRACT_CREATED', 'Both parties agreed. Contract created successfully'
        else:
            code, message = 'AGREEMENT_RECORDED', 'Agreement status updated successfully'
        return success_response(code, message, {
            self.kind: self.record_data(record),
            'contract': _contract_summary(contract),
        })


class ApplicationRespondView(NegotiationRespondView):
    model = JobApplication
    serializer_class = JobApplicationSerializer


class ApplicationDiscussionView(NegotiationDiscussionView):
    model = JobApplication
    serializer_class = JobApplicationSerializer


class ApplicationAgreementView(NegotiationAgreementView):
    model = JobApplication
    serializer_class = JobApplicationSerializer


class InvitationRespondView(NegotiationRespondView):
    model = JobInvitation
    serializer_class = JobInvitationSerializer


class InvitationDiscussionView(NegotiationDiscussionView):
    model = JobInvitation
    serializer_class = JobInvitationSerializer


class InvitationAgreementView(NegotiationAgreementView):
    model = JobInvitation
    serializer_class = JobInvitationSerializer


class InvitationWithdrawView(NegotiationView):
    permission_classes = [IsAuthenticated, IsClient]
    model = JobInvitation
    serializer_class = JobInvitationSerializer

    @swagger_auto_schema(
        operation_description="Retract a pending invitation.",
        responses={200: envelope_schema, 404: 'Not Found', 409: 'Invitation already answered'}
    )
    def post(self, request, pk):
        negotiation.withdraw(JobInvitation, pk, Actor.from_request(request))
        return success_response('INVITATION_WITHDRAWN', 'Invitation withdrawn successfully')
