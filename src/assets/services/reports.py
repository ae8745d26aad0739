"""Aggregate asset and incident reports."""

import datetime
import logging
from dataclasses import dataclass

from django.db.models import Count, Sum
from django.utils import timezone

from .permissions import scope_assets, scope_incidents

logger = logging.getLogger(__name__)

PRESET_DAYS = {
    "week": 7,
    "month": 30,
    "quarter": 90,
    "year": 365,
}
PRESETS = ("today", *PRESET_DAYS, "all_time")
DEFAULT_PRESET = "month"
TOP_LIMIT = 10
RECENT_LIMIT = 10


class ReportError(ValueError):
    """Invalid report parameters; ``field`` names the bad query param."""

    def __init__(self, field, message):
        super().__init__(message)
        self.field = field


@dataclass
class DateRange:
    start: datetime.datetime | None
    end: datetime.datetime
    preset: str

    def as_dict(self) -> dict:
        return {
            "start": self.start.isoformat() if self.start else None,
            "end": self.end.isoformat(),
            "preset": self.preset,
        }


def _parse_date(field, value) -> datetime.date:
    try:
        return datetime.date.fromisoformat(value)
    except ValueError:
        raise ReportError(field, "Use the YYYY-MM-DD format.")


def resolve_date_range(preset=None, start_date=None, end_date=None, now=None):
    """Turn a preset or an explicit pair of dates into a ``DateRange``.

    Explicit dates win over the preset and are inclusive of the whole
    end day.
    """
    now = now or timezone.now()
    if start_date or end_date:
        if not (start_date and end_date):
            missing = "end_date" if start_date else "start_date"
            raise ReportError(
                missing, "Both start_date and end_date are required."
            )
        start = _parse_date("start_date", start_date)
        end = _parse_date("end_date", end_date)
        if end < start:
            raise ReportError(
                "end_date", "end_date must not precede start_date."
            )
        tz = timezone.get_current_timezone()
        return DateRange(
            start=datetime.datetime.combine(start, datetime.time.min, tz),
            end=datetime.datetime.combine(end, datetime.time.max, tz),
            preset="custom",
        )

    preset = preset or DEFAULT_PRESET
    if preset not in PRESETS:
        raise ReportError("preset", f"Unknown preset '{preset}'.")
    if preset == "all_time":
        return DateRange(start=None, end=now, preset=preset)
    if preset == "today":
        local_today = timezone.localtime(now).date()
        start = datetime.datetime.combine(
            local_today, datetime.time.min, timezone.get_current_timezone()
        )
        return DateRange(start=start, end=now, preset=preset)
    start = now - datetime.timedelta(days=PRESET_DAYS[preset])
    return DateRange(start=start, end=now, preset=preset)


def _in_range(queryset, field, date_range):
    queryset = queryset.filter(**{f"{field}__lte": date_range.end})
    if date_range.start is not None:
        queryset = queryset.filter(**{f"{field}__gte": date_range.start})
    return queryset


def _money(value) -> float:
    return float(value or 0)


def asset_report(user, date_range, school_id=None) -> dict:
    assets = _in_range(scope_assets(user), "created_at", date_range)
    if school_id:
        assets = assets.filter(classroom__school_id=school_id)

    totals = assets.aggregate(count=Count("pk"), value=Sum("value_estimate"))
    by_status = [
        {
            "status": row["status"],
            "count": row["count"],
            "total_value": _money(row["total_value"]),
        }
        for row in assets.values("status")
        .annotate(count=Count("pk"), total_value=Sum("value_estimate"))
        .order_by("status")
    ]
    by_category = [
        {
            "category_id": str(row["template__category_id"]),
            "category_name": row["template__category__name"],
            "count": row["count"],
            "total_value": _money(row["total_value"]),
        }
        for row in assets.filter(template__isnull=False)
        .values("template__category_id", "template__category__name")
        .annotate(count=Count("pk"), total_value=Sum("value_estimate"))
        .order_by("-count", "template__category__name")
    ]
    by_school = [
        {
            "school_id": str(row["classroom__school_id"]),
            "school_name": row["classroom__school__name"],
            "count": row["count"],
            "total_value": _money(row["total_value"]),
        }
        for row in assets.filter(classroom__isnull=False)
        .values("classroom__school_id", "classroom__school__name")
        .annotate(count=Count("pk"), total_value=Sum("value_estimate"))
        .order_by("-count", "classroom__school__name")
    ]
    top_valued = [
        {
            "id": str(asset.pk),
            "template_name": asset.template.name if asset.template else "",
            "serial_number": asset.serial_number,
            "value_estimate": _money(asset.value_estimate),
            "status": asset.status,
            "classroom_id": (
                str(asset.classroom_id) if asset.classroom_id else None
            ),
        }
        for asset in assets.filter(value_estimate__isnull=False).order_by(
            "-value_estimate"
        )[:TOP_LIMIT]
    ]
    return {
        "total_assets": totals["count"],
        "total_value": _money(totals["value"]),
        "by_status": by_status,
        "by_category": by_category,
        "by_school": by_school,
        "assets_without_template": assets.filter(
            template__isnull=True
        ).count(),
        "top_valued_assets": top_valued,
        "date_range": date_range.as_dict(),
        "generated_at": timezone.now().isoformat(),
    }


def incident_report(user, date_range, school_id=None) -> dict:
    incidents = _in_range(scope_incidents(user), "reported_at", date_range)
    if school_id:
        incidents = incidents.filter(asset__classroom__school_id=school_id)

    by_status = [
        {"status": row["status"], "count": row["count"]}
        for row in incidents.values("status")
        .annotate(count=Count("pk"))
        .order_by("status")
    ]
    durations = [
        (resolved_at - reported_at).total_seconds()
        for reported_at, resolved_at in incidents.filter(
            resolved_at__isnull=False
        ).values_list("reported_at", "resolved_at")
    ]
    average_hours = (
        round(sum(durations) / len(durations) / 3600, 2)
        if durations
        else None
    )
    recent = [
        {
            "id": str(incident.pk),
            "asset_id": str(incident.asset_id),
            "description": incident.description,
            "status": incident.status,
            "reported_at": incident.reported_at.isoformat(),
            "resolved_at": (
                incident.resolved_at.isoformat()
                if incident.resolved_at
                else None
            ),
            "reported_by": str(incident.reported_by or ""),
        }
        for incident in incidents.order_by("-reported_at")[:RECENT_LIMIT]
    ]
    top_assets = [
        {
            "asset_id": str(row["asset_id"]),
            "template_name": row["asset__template__name"] or "",
            "serial_number": row["asset__serial_number"],
            "incident_count": row["incident_count"],
        }
        for row in incidents.values(
            "asset_id", "asset__template__name", "asset__serial_number"
        )
        .annotate(incident_count=Count("pk"))
        .order_by("-incident_count", "asset_id")[:TOP_LIMIT]
    ]
    return {
        "total_incidents": incidents.count(),
        "by_status": by_status,
        "average_resolution_hours": average_hours,
        "unresolved_count": incidents.exclude(status="resolved").count(),
        "recent_incidents": recent,
        "top_assets_with_incidents": top_assets,
        "date_range": date_range.as_dict(),
        "generated_at": timezone.now().isoformat(),
    }


def overview(
    user, preset=None, start_date=None, end_date=None, school_id=None
):
    """Both report sections over one date range.

    ``school_id`` only narrows the report for super admins; everyone else
    is already limited to their own school.
    """
    date_range = resolve_date_range(preset, start_date, end_date)
    if not user.is_super_admin:
        school_id = None
    logger.info(
        "Report overview for %s (%s, school=%s)",
        user.pk,
        date_range.preset,
        school_id,
    )
    return {
        "assets": asset_report(user, date_range, school_id),
        "incidents": incident_report(user, date_range, school_id),
        "generated_at": timezone.now().isoformat(),
    }
