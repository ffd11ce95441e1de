from django.utils import timezone
from rest_framework import permissions, status, views
from rest_framework.response import Response

from apps.authentication.permissions import IsAdminOrCreator
from core.exceptions import LedgerError, http_status_for
from core.pagination import parse_limit_offset

from .services import (
    get_creator_dashboard,
    get_creator_ledger,
    get_creator_timeline,
    get_monthly_statement,
    get_payout_forecast,
    get_payout_status,
    get_routine_breakdown,
)


class CreatorAnalyticsView(views.APIView):
    """
    Base for creator read models.

    Creators always see their own data; admins pick a creator with
    ``?creator_id=``.
    """

    permission_classes = [permissions.IsAuthenticated, IsAdminOrCreator]

    def resolve_creator_id(self, request):
        user = request.user
        if getattr(user, "role", None) == "admin":
            return request.query_params.get("creator_id")
        creator = getattr(user, "creator_profile", None)
        return creator.id if creator else None

    def get(self, request, *args, **kwargs):
        creator_id = self.resolve_creator_id(request)
        if not creator_id:
            return Response({"detail": "creator_id is required."}, status=status.HTTP_400_BAD_REQUEST)
        try:
            payload = self.build(request, creator_id)
        except LedgerError as exc:
            return Response({"detail": str(exc)}, status=http_status_for(exc))
        return Response(payload, status=status.HTTP_200_OK)

    def build(self, request, creator_id):
        raise NotImplementedError


class CreatorDashboardView(CreatorAnalyticsView):
    def build(self, request, creator_id):
        return get_creator_dashboard(creator_id)


class PayoutForecastView(CreatorAnalyticsView):
    def build(self, request, creator_id):
        return get_payout_forecast(creator_id)


class CreatorLedgerView(CreatorAnalyticsView):
    def build(self, request, creator_id):
        limit, offset = parse_limit_offset(request.query_params)
        return get_creator_ledger(
            creator_id,
            limit=limit,
            offset=offset,
            transaction_type=request.query_params.get("type") or None,
        )


class CreatorTimelineView(CreatorAnalyticsView):
    def build(self, request, creator_id):
        limit, offset = parse_limit_offset(request.query_params)
        return get_creator_timeline(creator_id, limit=limit, offset=offset)


class RoutineBreakdownView(CreatorAnalyticsView):
    def build(self, request, creator_id):
        return get_routine_breakdown(creator_id)


class PayoutStatusView(CreatorAnalyticsView):
    def build(self, request, creator_id):
        return get_payout_status(creator_id)


class MonthlyStatementView(CreatorAnalyticsView):
    def get(self, request, *args, **kwargs):
        now = timezone.localtime()
        try:
            self.year = int(request.query_params.get("year", now.year))
            self.month = int(request.query_params.get("month", now.month))
        except (TypeError, ValueError):
            return Response({"detail": "year and month must be integers."}, status=status.HTTP_400_BAD_REQUEST)
        return super().get(request, *args, **kwargs)

    def build(self, request, creator_id):
        return get_monthly_statement(creator_id, self.year, self.month)
