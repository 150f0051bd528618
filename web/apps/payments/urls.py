from django.urls import path

from .views import PaymentFailureView, PaymentSessionView, PaymentStatusView, VerifyPaymentView

app_name = "payments"

urlpatterns = [
    path("sessions/", PaymentSessionView.as_view(), name="payments-session"),
    path("verify/", VerifyPaymentView.as_view(), name="payments-verify"),
    path("failures/", PaymentFailureView.as_view(), name="payments-failure"),
    path("<uuid:order_id>/", PaymentStatusView.as_view(), name="payments-status"),
]
