"""Asset creation, updates and per-classroom inventory."""

import logging
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, Sum

from ..models import Asset

logger = logging.getLogger(__name__)

TRACKED_FIELDS = (
    "template",
    "classroom",
    "serial_number",
    "purchase_date",
    "value_estimate",
    "image_url",
    "status",
)


def _jsonable(value):
    if value is None or isinstance(value, (str, int, bool)):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if hasattr(value, "pk"):
        return str(value.pk)
    return str(value)


@transaction.atomic
def create_asset(data: dict, user=None) -> Asset:
    asset = Asset(created_by=user)
    for field, value in data.items():
        setattr(asset, field, value)
    asset.save()
    asset.record_event("created", user=user, status=asset.status)
    logger.info("Asset %s created by %s", asset.pk, getattr(user, "pk", None))
    return asset


@transaction.atomic
def update_asset(asset: Asset, changes: dict, user=None) -> Asset:
    """Apply ``changes`` and log what actually changed.

    A status change gets its own ``status_changed`` event; every other
    field lands in one ``updated`` event.
    """
    old_status = asset.status
    changed = {}
    for field, value in changes.items():
        if field not in TRACKED_FIELDS:
            continue
        current = getattr(asset, field)
        if current != value:
            changed[field] = {
                "from": _jsonable(current),
                "to": _jsonable(value),
            }
            setattr(asset, field, value)

    if not changed:
        return asset

    asset.save()
    status_change = changed.pop("status", None)
    if status_change:
        asset.record_event(
            "status_changed",
            user=user,
            **{"from": old_status, "to": asset.status},
        )
    if changed:
        asset.record_event("updated", user=user, changes=changed)
    return asset


def classroom_inventory(classroom) -> list:
    """Assets in ``classroom`` grouped by template and status."""
    rows = (
        Asset.objects.filter(classroom=classroom)
        .values("template_id", "template__name", "status")
        .annotate(quantity=Count("pk"), total_value=Sum("value_estimate"))
        .order_by("template__name", "status")
    )
    ids = {}
    for asset_id, template_id, status in Asset.objects.filter(
        classroom=classroom
    ).values_list("pk", "template_id", "status"):
        ids.setdefault((template_id, status), []).append(str(asset_id))

    return [
        {
            "template_id": (
                str(row["template_id"]) if row["template_id"] else None
            ),
            "template_name": row["template__name"] or "",
            "status": row["status"],
            "quantity": row["quantity"],
            "total_value": float(row["total_value"] or 0),
            "asset_ids": ids.get((row["template_id"], row["status"]), []),
        }
        for row in rows
    ]
