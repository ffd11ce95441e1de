import itertools
from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from decimal import Decimal

import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from apps.authentication.models import User
from apps.commissions.accrual import OrderCompletedEvent, accrue_commission
from apps.commissions.eligibility import release_eligible_commissions
from apps.creators.models import CommissionTier, Creator
from apps.payouts.providers import TransferProvider, TransferStatusUpdate

NOW = datetime(2026, 3, 10, 12, 0, 0, tzinfo=dt_timezone.utc)


class FakeTransferProvider(TransferProvider):
    """
    Scripted provider. ``initiate`` and ``lookup`` are consumed in order; an
    exception instance in either list is raised instead of returned.
    """

    name = "fake"

    def __init__(self, initiate=None, lookup=None, statuses=None):
        self.initiate_results = list(initiate or [])
        self.lookup_results = list(lookup or [])
        self.statuses = dict(statuses or {})
        self.requests = []
        self.lookups = []

    def initiate_transfer(self, request):
        self.requests.append(request)
        result = self.initiate_results.pop(0) if self.initiate_results else f"tr-{request.idempotency_key}"
        if isinstance(result, Exception):
            raise result
        return result

    def find_transfer(self, idempotency_key):
        self.lookups.append(idempotency_key)
        result = self.lookup_results.pop(0) if self.lookup_results else None
        if isinstance(result, Exception):
            raise result
        return result

    def get_transfer(self, transfer_id):
        result = self.statuses.get(transfer_id, "sent")
        if isinstance(result, Exception):
            raise result
        if isinstance(result, TransferStatusUpdate):
            return result
        return TransferStatusUpdate(transfer_id=transfer_id, status=result)


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def tiers(db):
    return [
        CommissionTier.objects.create(name="Bronze", slug="bronze", min_monthly_revenue=Decimal("0"), commission_rate=Decimal("15.00")),
        CommissionTier.objects.create(name="Silver", slug="silver", min_monthly_revenue=Decimal("300"), commission_rate=Decimal("18.00")),
        CommissionTier.objects.create(name="Gold", slug="gold", min_monthly_revenue=Decimal("1000"), commission_rate=Decimal("20.00")),
    ]


@pytest.fixture
def make_creator(db):
    counter = itertools.count(1)

    def _make(**overrides) -> Creator:
        n = next(counter)
        fields = {
            "email": f"creator{n}@example.com",
            "display_name": f"Creator {n}",
            "discount_code": f"GLOW{n}",
            "commission_rate": Decimal("15.00"),
            "lock_days": 30,
            "iban": f"FR7630006000011234567890{n:03d}",
            "account_holder_name": f"Creator {n}",
            "bank_verified": True,
        }
        fields.update(overrides)
        return Creator.objects.create(**fields)

    return _make


@pytest.fixture
def creator(make_creator):
    return make_creator()


@pytest.fixture
def accrue(creator):
    def _accrue(order_id, gross, on=None, variant="base", routine_id=None, for_creator=None):
        event = OrderCompletedEvent(
            creator_id=(for_creator or creator).id,
            order_id=order_id,
            gross_amount=Decimal(str(gross)),
            variant=variant,
            routine_id=routine_id,
        )
        return accrue_commission(event, now=on or NOW)

    return _accrue


@pytest.fixture
def make_payable(accrue):
    """Accrue commissions far enough in the past that one eligibility pass releases them."""

    def _make(order_id, gross, **kwargs):
        commission = accrue(order_id, gross, on=NOW - timedelta(days=31), **kwargs)
        release_eligible_commissions(now=NOW)
        commission.refresh_from_db()
        return commission

    return _make


@pytest.fixture
def fake_provider():
    return FakeTransferProvider


@pytest.fixture
def operator(db):
    return User.objects.create_user(email="ops@yeoskin.com", password="secret-pass", full_name="Ops", role="admin")


@pytest.fixture
def creator_user(db, creator):
    user = User.objects.create_user(
        email="portal@example.com", password="secret-pass", full_name="Portal User", role="creator"
    )
    creator.user = user
    creator.save(update_fields=["user"])
    return user


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def operator_client(operator):
    client = APIClient()
    client.force_authenticate(user=operator)
    return client


@pytest.fixture
def creator_client(creator_user):
    client = APIClient()
    client.force_authenticate(user=creator_user)
    return client
