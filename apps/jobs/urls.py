from django.urls import path
from .views import (
    JobCreateView, JobListView, OpenJobListView, JobApplicationView, JobApplicationsListView,
    UserApplicationsView, JobInviteView, ReceivedInvitationsView, SentInvitationsView,
    ApplicationRespondView, ApplicationDiscussionView, ApplicationAgreementView,
    InvitationRespondView, InvitationDiscussionView, InvitationAgreementView, InvitationWithdrawView
)

urlpatterns = [
    path('create/', JobCreateView.as_view(), name='job_create'),
    path('', JobListView.as_view(), name='job_list'),
    path('open/', OpenJobListView.as_view(), name='open_jobs'),
    path('<int:id>/apply/', JobApplicationView.as_view(), name='job_apply'),
    path('<int:id>/applications/', JobApplicationsListView.as_view(), name='job_applications'),
    path('<int:id>/invite/', JobInviteView.as_view(), name='job_invite'),
    path('applications/mine/', UserApplicationsView.as_view(), name='my_applications'),
    path('applications/<int:pk>/respond/', ApplicationRespondView.as_view(), name='application_respond'),
    path('applications/<int:pk>/discussion/', ApplicationDiscussionView.as_view(), name='application_discussion'),
    path('applications/<int:pk>/agreement/', ApplicationAgreementView.as_view(), name='application_agreement'),
    path('invitations/received/', ReceivedInvitationsView.as_view(), name='invitations_received'),
    path('invitations/sent/', SentInvitationsView.as_view(), name='invitations_sent'),
    path('invitations/<int:pk>/respond/', InvitationRespondView.as_view(), name='invitation_respond'),
    path('invitations/<int:pk>/discussion/', InvitationDiscussionView.as_view(), name='invitation_discussion'),
    path('invitations/<int:pk>/agreement/', InvitationAgreementView.as_view(), name='invitation_agreement'),
    path('invitations/<int:pk>/withdraw/', InvitationWithdrawView.as_view(), name='invitation_withdraw'),
]
