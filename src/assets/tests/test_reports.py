"""Tests for reports, the dashboard export and the Excel export."""

import datetime
import json
from decimal import Decimal
from io import BytesIO

import openpyxl
import pytest

from django.urls import reverse
from django.utils import timezone

from assets.factories import AssetFactory, AssetIncidentFactory
from assets.models import Asset
from assets.services.export import ASSET_HEADERS, export_assets_xlsx
from assets.services.reports import (
    ReportError,
    asset_report,
    incident_report,
    overview,
    resolve_date_range,
)

NOW = datetime.datetime(2025, 3, 15, 12, 0, tzinfo=datetime.timezone.utc)


class TestResolveDateRange:
    def test_default_is_last_month(self):
        date_range = resolve_date_range(now=NOW)
        assert date_range.preset == "month"
        assert date_range.start == NOW - datetime.timedelta(days=30)
        assert date_range.end == NOW

    @pytest.mark.parametrize(
        "preset,days",
        [("week", 7), ("month", 30), ("quarter", 90), ("year", 365)],
    )
    def test_rolling_presets(self, preset, days):
        date_range = resolve_date_range(preset, now=NOW)
        assert NOW - date_range.start == datetime.timedelta(days=days)

    def test_all_time_has_no_start(self):
        date_range = resolve_date_range("all_time", now=NOW)
        assert date_range.start is None
        assert date_range.as_dict()["start"] is None

    def test_today_starts_at_local_midnight(self):
        date_range = resolve_date_range("today", now=NOW)
        local = timezone.localtime(date_range.start)
        assert (local.hour, local.minute) == (0, 0)
        assert date_range.start <= NOW

    def test_custom_range_includes_whole_end_day(self):
        date_range = resolve_date_range(
            start_date="2025-01-01", end_date="2025-01-31"
        )
        assert date_range.preset == "custom"
        local_end = timezone.localtime(date_range.end)
        assert local_end.date() == datetime.date(2025, 1, 31)
        assert (local_end.hour, local_end.minute) == (23, 59)

    def test_custom_range_needs_both_dates(self):
        with pytest.raises(ReportError) as exc_info:
            resolve_date_range(start_date="2025-01-01")
        assert exc_info.value.field == "end_date"

    def test_custom_range_order(self):
        with pytest.raises(ReportError):
            resolve_date_range(start_date="2025-02-01", end_date="2025-01-01")

    def test_bad_date_format(self):
        with pytest.raises(ReportError) as exc_info:
            resolve_date_range(start_date="01/02/2025", end_date="2025-02-02")
        assert exc_info.value.field == "start_date"

    def test_unknown_preset(self):
        with pytest.raises(ReportError) as exc_info:
            resolve_date_range("decade")
        assert exc_info.value.field == "preset"


@pytest.mark.django_db
class TestAssetReport:
    def test_totals_and_breakdowns(self, super_admin, asset, classroom):
        AssetFactory(
            classroom=classroom,
            template=asset.template,
            status="retired",
            value_estimate=Decimal("50.00"),
        )
        AssetFactory(template=None, classroom=None, value_estimate=None)
        report = asset_report(super_admin, resolve_date_range("all_time"))

        assert report["total_assets"] == 3
        assert report["total_value"] == 150.0
        assert report["assets_without_template"] == 1
        statuses = {row["status"]: row["count"] for row in report["by_status"]}
        assert statuses == {"available": 2, "retired": 1}
        assert report["by_category"][0]["category_name"] == "Audiovisual"
        assert report["by_category"][0]["count"] == 2
        assert report["by_school"][0]["school_name"] == "Escuela Central"
        assert report["top_valued_assets"][0]["id"] == str(asset.pk)

    def test_old_assets_outside_range(self, super_admin, asset):
        Asset.objects.filter(pk=asset.pk).update(
            created_at=timezone.now() - datetime.timedelta(days=60)
        )
        report = asset_report(super_admin, resolve_date_range("month"))
        assert report["total_assets"] == 0

    def test_scoped_to_users_school(self, teacher, asset):
        AssetFactory()
        report = asset_report(teacher, resolve_date_range("all_time"))
        assert report["total_assets"] == 1


@pytest.mark.django_db
class TestIncidentReport:
    def test_resolution_time_and_counts(self, super_admin, asset):
        reported = timezone.now() - datetime.timedelta(hours=10)
        AssetIncidentFactory(
            asset=asset,
            status="resolved",
            reported_at=reported,
            resolved_at=reported + datetime.timedelta(hours=4),
        )
        AssetIncidentFactory(
            asset=asset,
            status="resolved",
            reported_at=reported,
            resolved_at=reported + datetime.timedelta(hours=2),
        )
        AssetIncidentFactory(asset=asset)

        report = incident_report(super_admin, resolve_date_range("week"))
        assert report["total_incidents"] == 3
        assert report["unresolved_count"] == 1
        assert report["average_resolution_hours"] == 3.0
        top = report["top_assets_with_incidents"][0]
        assert top["asset_id"] == str(asset.pk)
        assert top["incident_count"] == 3

    def test_no_resolved_incidents(self, super_admin):
        AssetIncidentFactory()
        report = incident_report(super_admin, resolve_date_range("week"))
        assert report["average_resolution_hours"] is None


@pytest.mark.django_db
class TestOverviewEndpoint:
    def test_overview(self, api_client, school_admin, asset):
        response = api_client(school_admin).get(
            reverse("assets:report_overview"), {"preset": "year"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["assets"]["total_assets"] == 1
        assert data["assets"]["date_range"]["preset"] == "year"
        assert data["incidents"]["total_incidents"] == 0

    def test_school_filter_ignored_for_non_super_admin(
        self, school_admin, asset, other_school
    ):
        data = overview(school_admin, "all_time", school_id=other_school.pk)
        assert data["assets"]["total_assets"] == 1

    def test_super_admin_school_filter(self, api_client, super_admin, asset):
        AssetFactory()
        response = api_client(super_admin).get(
            reverse("assets:report_overview"),
            {"preset": "all_time", "school_id": str(asset.classroom.school_id)},
        )
        assert response.json()["assets"]["total_assets"] == 1

    def test_foreign_school_is_403(
        self, api_client, school_admin, other_school
    ):
        response = api_client(school_admin).get(
            reverse("assets:report_overview"),
            {"school_id": str(other_school.pk)},
        )
        assert response.status_code == 403

    def test_bad_params_are_422(self, api_client, school_admin):
        response = api_client(school_admin).get(
            reverse("assets:report_overview"), {"start_date": "2025-01-01"}
        )
        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"] == ["query", "end_date"]

    def test_export_is_json_attachment(self, api_client, school_admin, asset):
        response = api_client(school_admin).get(
            reverse("assets:report_overview_export")
        )
        assert response.status_code == 200
        assert response["Content-Disposition"].startswith(
            'attachment; filename="reporte-'
        )
        data = json.loads(response.content)
        assert set(data) == {"assets", "incidents", "generated_at"}


@pytest.mark.django_db
class TestExcelExport:
    def test_workbook_sheets_and_rows(self, asset, classroom):
        AssetFactory(classroom=classroom, status="maintenance")
        wb = openpyxl.load_workbook(export_assets_xlsx())

        assert wb.sheetnames == ["Summary", "Assets"]
        summary = {
            row[0]: row[1]
            for row in wb["Summary"].iter_rows(values_only=True)
            if row and row[0]
        }
        assert summary["Total Assets"] == 2
        assert summary["Maintenance"] == 1
        assert summary["Total Estimated Value"] == "$200.00"

        rows = list(wb["Assets"].iter_rows(values_only=True))
        assert list(rows[0]) == ASSET_HEADERS
        assert len(rows) == 3
        exported = {row[0]: row for row in rows[1:]}
        row = exported[str(asset.pk)]
        assert row[1] == "Projector Epson X200 HD Ultra"
        assert row[5] == "Escuela Central"
        assert row[8] == "Available"

    def test_export_endpoint_respects_scope(self, api_client, teacher, asset):
        AssetFactory()
        response = api_client(teacher).get(reverse("assets:asset_export"))
        assert response.status_code == 200
        assert response["Content-Disposition"].startswith(
            'attachment; filename="activos-'
        )
        wb = openpyxl.load_workbook(BytesIO(response.content))
        assert wb["Assets"].max_row == 2
