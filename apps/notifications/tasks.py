import logging

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail
from django.utils import timezone

from .models import Notification

logger = logging.getLogger(__name__)


@shared_task
def send_notification_email(notification_id: int) -> bool:
    try:
        notification = Notification.objects.select_related("creator").get(id=notification_id)
    except Notification.DoesNotExist:
        return False
    if notification.emailed_at:
        return False

    send_mail(
        subject=notification.title,
        message=notification.body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[notification.creator.email],
    )
    notification.emailed_at = timezone.now()
    notification.save(update_fields=["emailed_at"])
    logger.info("Emailed notification %s to creator %s", notification.id, notification.creator_id)
    return True
