from django.urls import path

from .views import CartItemDetailView, CartItemsView, CartSummaryView, CartView

app_name = "cart"

urlpatterns = [
    path("", CartView.as_view(), name="cart"),  # GET cart / DELETE clear
    path("summary/", CartSummaryView.as_view(), name="cart-summary"),
    path("items/", CartItemsView.as_view(), name="cart-items"),
    path("items/<str:product_id>/", CartItemDetailView.as_view(), name="cart-item"),
]
