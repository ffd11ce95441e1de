from django.urls import path

from .views import (
    CreatorDashboardView,
    CreatorLedgerView,
    CreatorTimelineView,
    MonthlyStatementView,
    PayoutForecastView,
    PayoutStatusView,
    RoutineBreakdownView,
)

urlpatterns = [
    path("creator/dashboard/", CreatorDashboardView.as_view(), name="creator-dashboard"),
    path("creator/forecast/", PayoutForecastView.as_view(), name="creator-forecast"),
    path("creator/ledger/", CreatorLedgerView.as_view(), name="creator-ledger"),
    path("creator/timeline/", CreatorTimelineView.as_view(), name="creator-timeline"),
    path("creator/routines/", RoutineBreakdownView.as_view(), name="creator-routines"),
    path("creator/payouts/", PayoutStatusView.as_view(), name="creator-payouts"),
    path("creator/statement/", MonthlyStatementView.as_view(), name="creator-statement"),
]
