"""Tests for the asset endpoints."""

import base64
import uuid
from io import BytesIO
from unittest.mock import patch

import pytest
from PIL import Image

from django.urls import reverse

from assets.factories import AssetFactory, ClassroomFactory
from assets.models import Asset, AssetEvent, QRCode


def url(name, **kwargs):
    return reverse(f"assets:{name}", kwargs=kwargs or None)


def png_data_url(size=(40, 30), color="red"):
    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    encoded = base64.b64encode(buf.getvalue()).decode()
    return f"data:image/png;base64,{encoded}"


@pytest.mark.django_db
class TestAssetCrud:
    def test_create_asset(self, api_client, inventory_manager, classroom, template):
        response = api_client(inventory_manager).post(
            url("asset_list"),
            {
                "template_id": str(template.pk),
                "classroom_id": str(classroom.pk),
                "serial_number": "EPS-001",
                "purchase_date": "2024-02-01",
                "value_estimate": "1500.50",
            },
        )
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "available"
        assert data["value_estimate"] == 1500.5
        assert data["template"]["name"] == template.name
        assert data["classroom"]["id"] == str(classroom.pk)

        asset = Asset.objects.get(pk=data["id"])
        assert asset.created_by == inventory_manager
        event = asset.events.get()
        assert event.event_type == "created"

    def test_teacher_cannot_create(self, api_client, teacher, classroom):
        response = api_client(teacher).post(
            url("asset_list"), {"classroom_id": str(classroom.pk)}
        )
        assert response.status_code == 403

    def test_classroom_required_for_school_users(
        self, api_client, inventory_manager, template
    ):
        response = api_client(inventory_manager).post(
            url("asset_list"), {"template_id": str(template.pk)}
        )
        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"] == ["body", "classroom_id"]

    def test_super_admin_may_create_unplaced_asset(
        self, api_client, super_admin, template
    ):
        response = api_client(super_admin).post(
            url("asset_list"), {"template_id": str(template.pk)}
        )
        assert response.status_code == 201
        assert response.json()["classroom_id"] is None

    def test_cannot_place_in_other_schools_classroom(
        self, api_client, inventory_manager
    ):
        foreign = ClassroomFactory()
        response = api_client(inventory_manager).post(
            url("asset_list"), {"classroom_id": str(foreign.pk)}
        )
        assert response.status_code == 422

    def test_negative_value_is_422(self, api_client, inventory_manager, classroom):
        response = api_client(inventory_manager).post(
            url("asset_list"),
            {"classroom_id": str(classroom.pk), "value_estimate": -1},
        )
        assert response.status_code == 422

    def test_list_is_scoped_to_school(self, api_client, teacher, asset):
        AssetFactory()
        response = api_client(teacher).get(url("asset_list"))
        assert response["X-Total-Count"] == "1"
        assert response.json()[0]["id"] == str(asset.pk)

    def test_list_filters(self, api_client, super_admin, asset, classroom):
        AssetFactory(
            classroom=classroom, status="maintenance", serial_number="ZZ-777"
        )
        AssetFactory()
        client = api_client(super_admin)

        response = client.get(url("asset_list"), {"status": "maintenance"})
        assert response["X-Total-Count"] == "1"

        response = client.get(
            url("asset_list"), {"classroom_id": str(classroom.pk)}
        )
        assert response["X-Total-Count"] == "2"

        response = client.get(
            url("asset_list"),
            {"category_id": str(asset.template.category_id)},
        )
        assert response["X-Total-Count"] == "1"

        response = client.get(url("asset_list"), {"search": "zz-777"})
        assert [row["serial_number"] for row in response.json()] == ["ZZ-777"]

    def test_unknown_status_filter_is_422(self, api_client, teacher):
        response = api_client(teacher).get(
            url("asset_list"), {"status": "lost"}
        )
        assert response.status_code == 422

    def test_other_school_asset_is_404(self, api_client, teacher):
        foreign = AssetFactory()
        response = api_client(teacher).get(url("asset_detail", pk=foreign.pk))
        assert response.status_code == 404

    def test_update_records_status_and_field_events(
        self, api_client, inventory_manager, asset
    ):
        response = api_client(inventory_manager).put(
            url("asset_detail", pk=asset.pk),
            {"status": "maintenance", "serial_number": "SN-0002"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "maintenance"

        status_event = asset.events.get(event_type="status_changed")
        assert status_event.metadata == {
            "from": "available",
            "to": "maintenance",
        }
        updated = asset.events.get(event_type="updated")
        assert updated.metadata["changes"]["serial_number"] == {
            "from": "SN-0001",
            "to": "SN-0002",
        }

    def test_noop_update_records_nothing(
        self, api_client, inventory_manager, asset
    ):
        api_client(inventory_manager).patch(
            url("asset_detail", pk=asset.pk), {"serial_number": "SN-0001"}
        )
        assert not asset.events.exists()

    def test_school_user_cannot_clear_classroom(
        self, api_client, inventory_manager, asset, classroom
    ):
        response = api_client(inventory_manager).patch(
            url("asset_detail", pk=asset.pk), {"classroom_id": None}
        )
        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"] == ["body", "classroom_id"]
        asset.refresh_from_db()
        assert asset.classroom == classroom

    def test_super_admin_can_clear_classroom(
        self, api_client, super_admin, asset
    ):
        response = api_client(super_admin).patch(
            url("asset_detail", pk=asset.pk), {"classroom_id": None}
        )
        assert response.status_code == 200
        assert response.json()["classroom_id"] is None

    def test_teacher_cannot_delete(self, api_client, teacher, asset):
        response = api_client(teacher).delete(url("asset_detail", pk=asset.pk))
        assert response.status_code == 403

    def test_delete(self, api_client, school_admin, asset):
        response = api_client(school_admin).delete(
            url("asset_detail", pk=asset.pk)
        )
        assert response.status_code == 204
        assert not Asset.objects.filter(pk=asset.pk).exists()


@pytest.mark.django_db
class TestAssetImage:
    def test_plain_url(self, api_client, inventory_manager, asset):
        response = api_client(inventory_manager).patch(
            url("asset_image", pk=asset.pk),
            {"image_url": "https://cdn.example.com/photo.jpg"},
        )
        assert response.status_code == 200
        assert response.json()["image_url"] == "https://cdn.example.com/photo.jpg"
        event = asset.events.get(event_type="image_updated")
        assert event.metadata == {"source": "url"}

    def test_data_url_is_stored_as_jpeg(
        self, api_client, inventory_manager, asset
    ):
        response = api_client(inventory_manager).patch(
            url("asset_image", pk=asset.pk), {"image_url": png_data_url()}
        )
        assert response.status_code == 200
        asset.refresh_from_db()
        assert asset.photo.name.endswith(".jpg")
        assert response.json()["image_url"] == asset.photo.url
        with asset.photo.open("rb") as fh:
            img = Image.open(fh)
            assert img.format == "JPEG"
            assert img.size == (40, 30)

    def test_large_capture_is_downscaled(
        self, api_client, inventory_manager, asset
    ):
        api_client(inventory_manager).patch(
            url("asset_image", pk=asset.pk),
            {"image_url": png_data_url(size=(4000, 1000))},
        )
        asset.refresh_from_db()
        with asset.photo.open("rb") as fh:
            assert max(Image.open(fh).size) == 3264

    def test_corrupt_data_url_is_422(self, api_client, inventory_manager, asset):
        bogus = "data:image/png;base64," + base64.b64encode(b"nope").decode()
        response = api_client(inventory_manager).patch(
            url("asset_image", pk=asset.pk), {"image_url": bogus}
        )
        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"] == ["body", "image_url"]

    def test_not_a_url_is_422(self, api_client, inventory_manager, asset):
        response = api_client(inventory_manager).patch(
            url("asset_image", pk=asset.pk), {"image_url": "just text"}
        )
        assert response.status_code == 422


@pytest.mark.django_db
class TestBulk:
    def test_bulk_delete_reports_per_id_errors(
        self, api_client, school_admin, asset, classroom
    ):
        second = AssetFactory(classroom=classroom)
        foreign = AssetFactory()
        missing = uuid.uuid4()
        response = api_client(school_admin).post(
            url("asset_bulk_delete"),
            {
                "asset_ids": [
                    str(asset.pk),
                    str(second.pk),
                    str(foreign.pk),
                    str(missing),
                    "junk",
                ]
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert data["deleted_count"] == 2
        assert data["total_requested"] == 5
        failed = {err["asset_id"] for err in data["errors"]}
        assert failed == {str(foreign.pk), str(missing), "junk"}
        assert Asset.objects.filter(pk=foreign.pk).exists()

    def test_bulk_update(self, api_client, inventory_manager, asset, classroom):
        second = AssetFactory(classroom=classroom)
        response = api_client(inventory_manager).patch(
            url("asset_bulk_update"),
            {
                "asset_ids": [str(asset.pk), str(second.pk)],
                "updates": {"status": "in_use"},
            },
        )
        assert response.status_code == 200
        assert response.json()["updated_count"] == 2
        assert set(
            Asset.objects.values_list("status", flat=True)
        ) == {"in_use"}
        assert (
            AssetEvent.objects.filter(event_type="status_changed").count()
            == 2
        )

    def test_bulk_update_validates_updates(
        self, api_client, inventory_manager, asset
    ):
        response = api_client(inventory_manager).patch(
            url("asset_bulk_update"),
            {"asset_ids": [str(asset.pk)], "updates": {"status": "lost"}},
        )
        assert response.status_code == 422

    def test_bulk_update_keeps_classroom_for_school_users(
        self, api_client, inventory_manager, asset, classroom
    ):
        response = api_client(inventory_manager).patch(
            url("asset_bulk_update"),
            {"asset_ids": [str(asset.pk)], "updates": {"classroom_id": None}},
        )
        assert response.status_code == 422
        asset.refresh_from_db()
        assert asset.classroom == classroom

    def test_bulk_requires_ids(self, api_client, inventory_manager):
        response = api_client(inventory_manager).post(
            url("asset_bulk_delete"), {"asset_ids": []}
        )
        assert response.status_code == 422

    def test_teacher_cannot_bulk_delete(self, api_client, teacher, asset):
        response = api_client(teacher).post(
            url("asset_bulk_delete"), {"asset_ids": [str(asset.pk)]}
        )
        assert response.status_code == 403


@pytest.mark.django_db
class TestQrAndStickers:
    def test_generate_and_fetch_qr(self, api_client, inventory_manager, asset):
        client = api_client(inventory_manager)
        assert client.get(url("asset_qr_codes", pk=asset.pk)).status_code == 404

        response = client.post(url("asset_qr_codes", pk=asset.pk))
        assert response.status_code == 201
        data = response.json()
        assert data["qr_url"] == f"https://aulas.example.com/assets/{asset.pk}"
        assert data["image_url"].endswith(".png")

        response = client.get(url("asset_qr_codes", pk=asset.pk))
        assert response.json()["id"] == data["id"]

    def test_regenerate_keeps_one_qr(self, api_client, inventory_manager, asset):
        client = api_client(inventory_manager)
        client.post(url("asset_qr_codes", pk=asset.pk))
        client.post(url("asset_qr_codes", pk=asset.pk))
        assert QRCode.objects.filter(asset=asset).count() == 1
        events = asset.events.filter(event_type="qr_generated")
        assert sorted(e.metadata["regenerated"] for e in events) == [
            False,
            True,
        ]

    def test_sticker_text(self, api_client, teacher, asset):
        response = api_client(teacher).get(url("asset_sticker", pk=asset.pk))
        assert response.status_code == 200
        assert response["Content-Type"].startswith("text/plain")
        body = response.content.decode()
        assert f'"https://aulas.example.com/assets/{asset.pk}"' in body
        assert body.count("PRINT 1") == 1

    def test_print_queues_task(self, api_client, inventory_manager, asset):
        with patch("assets.tasks.print_asset_sticker.delay") as mock_delay:
            response = api_client(inventory_manager).post(
                url("asset_sticker_print", pk=asset.pk),
                {"address": "AA:BB:CC:DD:EE:FF"},
            )
        assert response.status_code == 202
        mock_delay.assert_called_once_with(
            str(asset.pk),
            address="AA:BB:CC:DD:EE:FF",
            user_id=inventory_manager.pk,
        )

    def test_teacher_cannot_print(self, api_client, teacher, asset):
        with patch("assets.tasks.print_asset_sticker.delay") as mock_delay:
            response = api_client(teacher).post(
                url("asset_sticker_print", pk=asset.pk)
            )
        assert response.status_code == 403
        mock_delay.assert_not_called()

    def test_label_sheet(self, api_client, teacher, asset):
        foreign = AssetFactory()
        response = api_client(teacher).get(
            url("asset_labels"), {"ids": f"{asset.pk},{foreign.pk},junk"}
        )
        assert response.status_code == 200
        html = response.content.decode()
        assert f"ID:{asset.short_id}" in html
        assert f"ID:{foreign.short_id}" not in html
        assert html.count("data:image/png;base64,") == 1

    def test_label_sheet_requires_ids(self, api_client, teacher):
        response = api_client(teacher).get(url("asset_labels"))
        assert response.status_code == 422


@pytest.mark.django_db
class TestEventsAndIncidents:
    def test_events_listed_newest_first(self, api_client, teacher, asset):
        asset.record_event("created")
        asset.record_event("updated", field="x")
        response = api_client(teacher).get(url("asset_events", pk=asset.pk))
        assert [row["event_type"] for row in response.json()] == [
            "updated",
            "created",
        ]

    def test_teacher_reports_incident(self, api_client, teacher, asset):
        response = api_client(teacher).post(
            url("asset_incidents", pk=asset.pk),
            {"description": "La lámpara no enciende"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "open"
        assert data["reported_by"] == str(teacher.pk)
        event = asset.events.get(event_type="incident_reported")
        assert event.metadata == {"incident_id": data["id"]}

    def test_incident_requires_description(self, api_client, teacher, asset):
        response = api_client(teacher).post(
            url("asset_incidents", pk=asset.pk), {}
        )
        assert response.status_code == 422

    def test_resolve_incident(self, api_client, teacher, asset):
        client = api_client(teacher)
        incident_id = client.post(
            url("asset_incidents", pk=asset.pk), {"description": "Roto"}
        ).json()["id"]

        response = client.put(
            url("incident_detail", pk=incident_id), {"status": "resolved"}
        )
        assert response.status_code == 200
        assert response.json()["resolved_at"] is not None
        assert asset.events.filter(event_type="incident_resolved").exists()

    def test_incident_list_scoped_and_filtered(
        self, api_client, teacher, asset
    ):
        from assets.factories import AssetIncidentFactory

        AssetIncidentFactory(asset=asset)
        AssetIncidentFactory(asset=asset, status="resolved")
        AssetIncidentFactory()
        client = api_client(teacher)
        assert client.get(url("incident_list"))["X-Total-Count"] == "2"
        response = client.get(url("incident_list"), {"status": "open"})
        assert response["X-Total-Count"] == "1"

    def test_teacher_cannot_delete_incident(self, api_client, teacher, asset):
        from assets.factories import AssetIncidentFactory

        incident = AssetIncidentFactory(asset=asset)
        response = api_client(teacher).delete(
            url("incident_detail", pk=incident.pk)
        )
        assert response.status_code == 403


@pytest.mark.django_db
class TestDashboard:
    def test_counts_are_scoped(self, api_client, teacher, asset):
        AssetFactory()
        response = api_client(teacher).get(url("dashboard"))
        data = response.json()
        assert data["total_schools"] == 1
        assert data["total_assets"] == 1
        assert data["assets_by_status"]["available"] == 1
        assert data["open_incidents"] == 0
