"""Bulk operations service for assets.

Each requested id is handled on its own: an unknown, out-of-scope or
invalid asset is reported in ``errors`` and the rest of the batch still
goes through.
"""

import logging
import uuid

from django.db import transaction as db_transaction

from .inventory import update_asset
from .permissions import scope_assets

logger = logging.getLogger(__name__)


def parse_asset_ids(asset_ids):
    """Split requested ids into valid UUIDs and per-id errors."""
    valid = []
    errors = []
    seen = set()
    for raw in asset_ids:
        try:
            parsed = uuid.UUID(str(raw))
        except (TypeError, ValueError):
            errors.append({"asset_id": str(raw), "error": "Invalid asset id."})
            continue
        if parsed not in seen:
            seen.add(parsed)
            valid.append(parsed)
    return valid, errors


def _load(user, asset_ids):
    ids, errors = parse_asset_ids(asset_ids)
    found = scope_assets(user).in_bulk(ids)
    assets = []
    for asset_id in ids:
        asset = found.get(asset_id)
        if asset is None:
            errors.append({"asset_id": str(asset_id), "error": "Not found."})
        else:
            assets.append(asset)
    return assets, errors


def bulk_delete(user, asset_ids: list) -> dict:
    assets, errors = _load(user, asset_ids)
    deleted = 0
    for asset in assets:
        with db_transaction.atomic():
            asset.delete()
        deleted += 1
    logger.info(
        "Bulk delete by %s: %d of %d", user.pk, deleted, len(asset_ids)
    )
    return {
        "deleted_count": deleted,
        "total_requested": len(asset_ids),
        "errors": errors,
    }


def bulk_update(user, asset_ids: list, changes: dict) -> dict:
    """Apply the same validated ``changes`` to every requested asset."""
    assets, errors = _load(user, asset_ids)
    updated = 0
    for asset in assets:
        update_asset(asset, changes, user=user)
        updated += 1
    logger.info(
        "Bulk update by %s: %d of %d", user.pk, updated, len(asset_ids)
    )
    return {
        "updated_count": updated,
        "total_requested": len(asset_ids),
        "errors": errors,
    }
