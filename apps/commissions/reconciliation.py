import logging

from django.utils import timezone

from core.exceptions import InvalidTransitionError, ValidationError

from .models import ReconciliationCase

logger = logging.getLogger(__name__)


def resolve_case(case: ReconciliationCase, note: str, actor=None) -> ReconciliationCase:
    """Close an operator case. Any money movement is recorded separately as a balance adjustment."""
    note = (note or "").strip()
    if not note:
        raise ValidationError("A resolution note is required")
    if case.status == "resolved":
        raise InvalidTransitionError("Case already resolved", current_status=case.status, target_status="resolved")

    case.status = "resolved"
    case.resolution_note = note
    case.resolved_by = actor
    case.resolved_at = timezone.now()
    case.save(update_fields=["status", "resolution_note", "resolved_by", "resolved_at"])
    logger.info("Reconciliation case %s resolved by %s", case.id, getattr(actor, "pk", None))
    return case
