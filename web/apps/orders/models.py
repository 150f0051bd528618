import uuid

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models


class OrderModel(models.Model):
    # UUID PK exposed in the API
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user_id = models.CharField(max_length=64)

    # Human-readable, assigned once at checkout: ORD-000001
    order_number = models.CharField(max_length=32, unique=True, editable=False)

    class PaymentMethod(models.TextChoices):
        GATEWAY = "gateway"
        COD = "cod"

    class PaymentStatus(models.TextChoices):
        PENDING = "pending"
        PAID = "paid"
        FAILED = "failed"
        REFUNDED = "refunded"

    class Status(models.TextChoices):
        PENDING = "pending"
        CONFIRMED = "confirmed"
        PROCESSING = "processing"
        SHIPPED = "shipped"
        DELIVERED = "delivered"
        CANCELLED = "cancelled"
        RETURNED = "returned"

    payment_method = models.CharField(max_length=16, choices=PaymentMethod.choices)
    payment_status = models.CharField(max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    order_status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)

    shipping_address = models.JSONField()
    billing_address = models.JSONField(null=True, blank=True)

    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    shipping_cost = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="INR")

    # Payment processor correlation
    gateway_order_id = models.CharField(max_length=64, null=True, blank=True)
    gateway_payment_id = models.CharField(max_length=64, null=True, blank=True)
    gateway_signature = models.CharField(max_length=128, null=True, blank=True)

    notes = models.TextField(null=True, blank=True)
    tracking_number = models.CharField(max_length=64, null=True, blank=True)
    processing_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.CharField(max_length=255, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user_id", "-created_at"], name="orders_user_recent_idx"),
            models.Index(fields=["order_status"], name="orders_status_idx"),
            models.Index(fields=["payment_status"], name="orders_payment_status_idx"),
        ]


class OrderItemModel(models.Model):
    order = models.ForeignKey(OrderModel, on_delete=models.CASCADE, related_name="items")
    position = models.PositiveIntegerField()
    product_id = models.CharField(max_length=64)
    name = models.CharField(max_length=200)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    quantity = models.PositiveIntegerField()
    image = models.CharField(max_length=500, blank=True, default="")

    class Meta:
        db_table = "order_items"
        ordering = ["position"]


class IdempotencyKey(models.Model):
    user_id = models.CharField(max_length=64)
    key = models.CharField(max_length=200)
    request_hash = models.CharField(max_length=64)
    # 0 while the first request is still being processed
    response_status = models.PositiveSmallIntegerField(default=0)
    response_body = models.JSONField(default=dict, encoder=DjangoJSONEncoder)
    order = models.ForeignKey(OrderModel, null=True, blank=True, on_delete=models.SET_NULL)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "idempotency_keys"
        constraints = [
            models.UniqueConstraint(fields=["user_id", "key"], name="ux_idempotency_user_key"),
        ]
