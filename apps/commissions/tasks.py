from celery import shared_task

from .eligibility import release_eligible_commissions


@shared_task
def release_eligible_commissions_task() -> int:
    return release_eligible_commissions()
