from django.urls import path

from . import views

urlpatterns = [
    path('messages/', views.MessageListView.as_view(), name='message-list'),
    path('messages/preview/', views.MessagePreviewView.as_view(), name='message-preview'),
    path('messages/templates/', views.MessageTemplateListView.as_view(), name='message-templates'),
    path('messages/stats/', views.MessageStatsView.as_view(), name='message-stats'),
    path('messages/retry-failed/', views.RetryFailedMessagesView.as_view(), name='message-retry-failed'),
    path('messages/<int:pk>/retry/', views.MessageRetryView.as_view(), name='message-retry'),
    path('webhooks/twilio/status/', views.TwilioStatusWebhookView.as_view(), name='twilio-status-webhook'),
]
