from django.db import models


class CartModel(models.Model):
    # One cart per user; the identity collaborator owns the user record
    user_id = models.CharField(max_length=64, unique=True)

    # [{"product_id": str, "quantity": int, "price": "12.50"}, ...] in insertion order
    items = models.JSONField(default=list)
    total = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    # Optimistic lock: every write is "UPDATE ... WHERE version = <read version>"
    version = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "carts"
