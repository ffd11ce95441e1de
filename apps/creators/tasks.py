import logging

from celery import shared_task

from .tiers import assign_current_tiers

logger = logging.getLogger(__name__)


@shared_task
def refresh_creator_tiers() -> int:
    changed = assign_current_tiers()
    logger.info("Tier refresh moved %s creators", changed)
    return changed
