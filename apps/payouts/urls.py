from rest_framework.routers import DefaultRouter

from .views import PayoutBatchViewSet, PayoutItemViewSet

router = DefaultRouter()
router.register("batches", PayoutBatchViewSet, basename="payout-batch")
router.register("items", PayoutItemViewSet, basename="payout-item")

urlpatterns = router.urls
