from rest_framework.routers import SimpleRouter

from .views import CommissionTierViewSet, CreatorViewSet

router = SimpleRouter()
router.register("tiers", CommissionTierViewSet, basename="commission-tier")
router.register("", CreatorViewSet, basename="creator")

urlpatterns = router.urls
