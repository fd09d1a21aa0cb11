from django.urls import path

from messaging import views as messaging_views

# Booking-scoped ticket delivery routes
urlpatterns = [
    path('bookings/<int:pk>/send-ticket/', messaging_views.SendTicketView.as_view(), name='booking-send-ticket'),
    path('bookings/<int:pk>/detect-channel/', messaging_views.DetectChannelView.as_view(), name='booking-detect-channel'),
    path('bookings/<int:pk>/messages/', messaging_views.BookingMessageHistoryView.as_view(), name='booking-messages'),
]
