from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from apps.payouts.orchestrator import audit
from core.exceptions import ValidationError

from .models import Creator

logger = logging.getLogger(__name__)


def verify_bank_details(
    creator: Creator,
    iban: str | None = None,
    account_holder_name: str | None = None,
    provider_recipient_id: str | None = None,
    actor=None,
) -> Creator:
    with transaction.atomic():
        creator = Creator.objects.select_for_update().get(pk=creator.pk)
        if iban is not None:
            creator.iban = iban.replace(" ", "").upper() or None
        if account_holder_name is not None:
            creator.account_holder_name = account_holder_name or None
        if provider_recipient_id is not None:
            creator.provider_recipient_id = provider_recipient_id or None
        if not creator.has_payment_destination:
            raise ValidationError("Creator has no IBAN or provider recipient to verify")

        creator.bank_verified = True
        creator.bank_verified_at = timezone.now()
        creator.save()
        audit("bank_verified", creator, actor=actor, destination=creator.payment_destination)

    logger.info("Bank destination verified for creator %s", creator.id)
    return creator


def unverify_bank_details(creator: Creator, reason: str = "", actor=None) -> Creator:
    with transaction.atomic():
        creator = Creator.objects.select_for_update().get(pk=creator.pk)
        creator.bank_verified = False
        creator.bank_verified_at = None
        creator.save(update_fields=["bank_verified", "bank_verified_at", "updated_at"])
        audit("bank_unverified", creator, actor=actor, reason=reason)
    return creator


def deactivate_creator(creator: Creator, actor=None) -> Creator:
    """Soft-deactivate; ledger history and payable balance stay untouched."""
    if not creator.is_active:
        return creator
    creator.deactivate()
    audit("creator_deactivated", creator, actor=actor)
    logger.info("Creator %s deactivated", creator.id)
    return creator
