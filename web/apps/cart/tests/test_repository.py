from decimal import Decimal

import pytest
from django.db.models import F

from apps.cart.models import CartModel
from apps.cart.repository import CartRepository
from apps.catalog.domain import Product
from apps.common.errors import Conflict

MUG = Product(id="mug", name="Mug", price=Decimal("12.50"), stock=50)


def _concurrent_bump(user_id):
    CartModel.objects.filter(user_id=user_id).update(version=F("version") + 1)


@pytest.mark.django_db
def test_lost_race_is_reapplied_on_fresh_state():
    repo = CartRepository()
    repo.mutate("u", lambda c: c.add(MUG, 1), create=True)

    calls = []

    def add_one(cart):
        calls.append(cart.version)
        if len(calls) == 1:
            _concurrent_bump("u")  # another writer lands between read and write
        cart.add(MUG, 1)

    cart = repo.mutate("u", add_one)

    assert calls == [1, 2]
    assert cart.version == 3
    assert repo.get("u").lines[0].quantity == 2


@pytest.mark.django_db
def test_conflict_after_retries(settings):
    settings.CART_WRITE_RETRIES = 2
    repo = CartRepository()
    repo.mutate("u", lambda c: c.add(MUG, 1), create=True)

    def always_loses(cart):
        _concurrent_bump("u")
        cart.add(MUG, 1)

    with pytest.raises(Conflict):
        repo.mutate("u", always_loses)
    assert repo.get("u").lines[0].quantity == 1


@pytest.mark.django_db
def test_mutation_without_cart_does_not_create_one():
    cart = CartRepository().mutate("ghost", lambda c: c.remove("mug"))
    assert cart.is_empty
    assert not CartModel.objects.filter(user_id="ghost").exists()


@pytest.mark.django_db
def test_claim_only_succeeds_once():
    repo = CartRepository()
    repo.mutate("u", lambda c: c.add(MUG, 2), create=True)
    first = repo.get("u")
    second = repo.get("u")

    assert repo.claim(first) is True
    assert repo.claim(second) is False
    assert repo.get("u").is_empty


@pytest.mark.django_db
def test_clear_is_idempotent():
    repo = CartRepository()
    repo.clear("nobody")
    repo.mutate("u", lambda c: c.add(MUG, 2), create=True)
    repo.clear("u")
    version = repo.get("u").version
    repo.clear("u")
    assert repo.get("u").is_empty
    assert repo.get("u").version == version
