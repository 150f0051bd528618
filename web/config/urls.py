from django.urls import include, path

urlpatterns = [
    path("", include("apps.monitoring.urls")),
    path("api/cart/", include("apps.cart.urls")),
    path("api/orders/", include("apps.orders.urls")),
    path("api/payments/", include("apps.payments.urls")),
]
