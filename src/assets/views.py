"""Inventory JSON API views."""

import json
import logging

from django.db.models import Count, Q
from django.http import HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404, render
from django.utils import timezone

from aulas.api import (
    ApiError,
    api_view,
    field_error,
    list_response,
    paginate,
    parse_json,
    uuid_param,
    validation_error,
)

from .forms import (
    AssetCategoryForm,
    AssetForm,
    AssetImageForm,
    AssetTemplateForm,
    ClassroomForm,
    IncidentForm,
    IncidentUpdateForm,
    SchoolForm,
)
from .models import (
    Asset,
    AssetCategory,
    AssetIncident,
    AssetTemplate,
    Classroom,
    School,
)
from .services import bulk, reports
from .services.export import export_assets_xlsx
from .services.images import InvalidImage, set_asset_image
from .services.inventory import classroom_inventory, create_asset, update_asset
from .services.permissions import (
    can_access_school,
    can_manage_assets,
    can_manage_catalog,
    can_manage_schools,
    scope_assets,
    scope_classrooms,
    scope_incidents,
    scope_schools,
)
from .services.qrcodes import generate_qr_code, qr_data_uri
from .services.sticker import asset_link, build_sticker

logger = logging.getLogger(__name__)

MAX_LABELS = 200


def _iso(value):
    return value.isoformat() if value else None


def _str_or_none(value):
    return str(value) if value else None


def school_payload(school) -> dict:
    return {
        "id": str(school.pk),
        "name": school.name,
        "address": school.address,
        "description": school.description,
        "logo_url": school.logo_url,
        "created_at": _iso(school.created_at),
        "updated_at": _iso(school.updated_at),
    }


def classroom_payload(classroom) -> dict:
    return {
        "id": str(classroom.pk),
        "school_id": str(classroom.school_id),
        "name": classroom.name,
        "code": classroom.code,
        "capacity": classroom.capacity,
        "created_at": _iso(classroom.created_at),
        "updated_at": _iso(classroom.updated_at),
    }


def category_payload(category) -> dict:
    return {
        "id": str(category.pk),
        "name": category.name,
        "description": category.description,
        "created_at": _iso(category.created_at),
        "updated_at": _iso(category.updated_at),
    }


def template_payload(template) -> dict:
    return {
        "id": str(template.pk),
        "category_id": str(template.category_id),
        "name": template.name,
        "description": template.description,
        "manufacturer": template.manufacturer,
        "model_number": template.model_number,
        "created_at": _iso(template.created_at),
        "updated_at": _iso(template.updated_at),
    }


def qr_payload(qr_code) -> dict:
    return {
        "id": str(qr_code.pk),
        "asset_id": str(qr_code.asset_id),
        "payload": qr_code.payload,
        "qr_url": qr_code.qr_url,
        "image_url": qr_code.image.url if qr_code.image else None,
        "created_at": _iso(qr_code.created_at),
        "updated_at": _iso(qr_code.updated_at),
    }


def asset_payload(asset) -> dict:
    try:
        qr_code = asset.qr_code
    except Asset.qr_code.RelatedObjectDoesNotExist:
        qr_code = None
    return {
        "id": str(asset.pk),
        "template_id": _str_or_none(asset.template_id),
        "classroom_id": _str_or_none(asset.classroom_id),
        "serial_number": asset.serial_number,
        "purchase_date": _iso(asset.purchase_date),
        "value_estimate": (
            float(asset.value_estimate)
            if asset.value_estimate is not None
            else None
        ),
        "image_url": asset.display_image,
        "status": asset.status,
        "created_at": _iso(asset.created_at),
        "updated_at": _iso(asset.updated_at),
        "template": (
            template_payload(asset.template) if asset.template else None
        ),
        "classroom": (
            classroom_payload(asset.classroom) if asset.classroom else None
        ),
        "qr_code": qr_payload(qr_code) if qr_code else None,
    }


def event_payload(event) -> dict:
    return {
        "id": str(event.pk),
        "asset_id": str(event.asset_id),
        "event_type": event.event_type,
        "user_id": _str_or_none(event.user_id),
        "metadata": event.metadata,
        "created_at": _iso(event.created_at),
    }


def incident_payload(incident) -> dict:
    return {
        "id": str(incident.pk),
        "asset_id": str(incident.asset_id),
        "description": incident.description,
        "photo_url": incident.photo_url,
        "status": incident.status,
        "reported_by": _str_or_none(incident.reported_by_id),
        "reported_at": _iso(incident.reported_at),
        "resolved_at": _iso(incident.resolved_at),
        "updated_at": _iso(incident.updated_at),
    }


def require(allowed: bool):
    if not allowed:
        raise ApiError(403, "Not enough permissions.")


def _validated(form_class, request, **kwargs):
    data = parse_json(request)
    form = form_class(data, user=request.user, **kwargs)
    if not form.is_valid():
        raise validation_error(form)
    return form


def _update(form_class, request, instance):
    return _validated(
        form_class,
        request,
        instance=instance,
        partial=True,
    )


# --- Schools ---


@api_view(["GET", "POST"])
def school_list(request):
    user = request.user
    if request.method == "GET":
        schools, total = paginate(request, scope_schools(user))
        return list_response([school_payload(s) for s in schools], total)

    require(user.is_super_admin)
    form = _validated(SchoolForm, request)
    school = form.apply(School())
    school.save()
    logger.info("School %s created by %s", school.pk, user.pk)
    return JsonResponse(school_payload(school), status=201)


@api_view(["GET", "PUT", "PATCH", "DELETE"])
def school_detail(request, pk):
    user = request.user
    school = get_object_or_404(scope_schools(user), pk=pk)
    if request.method == "GET":
        return JsonResponse(school_payload(school))

    if request.method == "DELETE":
        require(user.is_super_admin)
        school.delete()
        logger.info("School %s deleted by %s", pk, user.pk)
        return HttpResponse(status=204)

    require(can_manage_schools(user))
    form = _update(SchoolForm, request, school)
    form.apply(school).save()
    return JsonResponse(school_payload(school))


@api_view(["GET"])
def school_classrooms(request, pk):
    school = get_object_or_404(scope_schools(request.user), pk=pk)
    classrooms, total = paginate(request, school.classrooms.all())
    return list_response([classroom_payload(c) for c in classrooms], total)


# --- Classrooms ---


@api_view(["GET", "POST"])
def classroom_list(request):
    user = request.user
    if request.method == "GET":
        queryset = scope_classrooms(user)
        school_id = uuid_param(request, "school_id")
        if school_id:
            queryset = queryset.filter(school_id=school_id)
        classrooms, total = paginate(request, queryset)
        return list_response([classroom_payload(c) for c in classrooms], total)

    require(can_manage_schools(user))
    form = _validated(ClassroomForm, request)
    classroom = form.apply(Classroom())
    classroom.save()
    return JsonResponse(classroom_payload(classroom), status=201)


@api_view(["GET", "PUT", "PATCH", "DELETE"])
def classroom_detail(request, pk):
    user = request.user
    classroom = get_object_or_404(scope_classrooms(user), pk=pk)
    if request.method == "GET":
        return JsonResponse(classroom_payload(classroom))

    require(can_manage_schools(user))
    if request.method == "DELETE":
        classroom.delete()
        logger.info("Classroom %s deleted by %s", pk, user.pk)
        return HttpResponse(status=204)

    form = _update(ClassroomForm, request, classroom)
    form.apply(classroom).save()
    return JsonResponse(classroom_payload(classroom))


@api_view(["GET"])
def classroom_inventory_view(request, pk):
    classroom = get_object_or_404(scope_classrooms(request.user), pk=pk)
    return JsonResponse(
        {
            "classroom": classroom_payload(classroom),
            "items": classroom_inventory(classroom),
        }
    )


# --- Categories & templates ---


@api_view(["GET", "POST"])
def category_list(request):
    if request.method == "GET":
        categories, total = paginate(request, AssetCategory.objects.all())
        return list_response([category_payload(c) for c in categories], total)

    require(can_manage_catalog(request.user))
    form = _validated(AssetCategoryForm, request)
    category = form.apply(AssetCategory())
    category.save()
    return JsonResponse(category_payload(category), status=201)


@api_view(["GET", "PUT", "PATCH", "DELETE"])
def category_detail(request, pk):
    category = get_object_or_404(AssetCategory, pk=pk)
    if request.method == "GET":
        return JsonResponse(category_payload(category))

    require(can_manage_catalog(request.user))
    if request.method == "DELETE":
        if category.templates.exists():
            raise ApiError(
                400,
                "Cannot delete a category that still has templates.",
            )
        category.delete()
        return HttpResponse(status=204)

    form = _update(AssetCategoryForm, request, category)
    form.apply(category).save()
    return JsonResponse(category_payload(category))


@api_view(["GET", "POST"])
def template_list(request):
    if request.method == "GET":
        queryset = AssetTemplate.objects.all()
        category_id = uuid_param(request, "category_id")
        if category_id:
            queryset = queryset.filter(category_id=category_id)
        templates, total = paginate(request, queryset)
        return list_response([template_payload(t) for t in templates], total)

    require(can_manage_catalog(request.user))
    form = _validated(AssetTemplateForm, request)
    template = form.apply(AssetTemplate())
    template.save()
    return JsonResponse(template_payload(template), status=201)


@api_view(["GET", "PUT", "PATCH", "DELETE"])
def template_detail(request, pk):
    template = get_object_or_404(AssetTemplate, pk=pk)
    if request.method == "GET":
        return JsonResponse(template_payload(template))

    require(can_manage_catalog(request.user))
    if request.method == "DELETE":
        template.delete()
        return HttpResponse(status=204)

    form = _update(AssetTemplateForm, request, template)
    form.apply(template).save()
    return JsonResponse(template_payload(template))


@api_view(["GET"])
def template_by_category(request, category_id):
    category = get_object_or_404(AssetCategory, pk=category_id)
    templates, total = paginate(request, category.templates.all())
    return list_response([template_payload(t) for t in templates], total)


# --- Assets ---


def _filtered_assets(request):
    queryset = scope_assets(request.user)

    status = request.GET.get("status", "")
    if status:
        if status not in {slug for slug, _label in Asset.STATUS_CHOICES}:
            raise field_error("status", "Unknown status.", "query")
        queryset = queryset.filter(status=status)

    filters = {
        "category_id": "template__category_id",
        "template_id": "template_id",
        "classroom_id": "classroom_id",
        "school_id": "classroom__school_id",
    }
    for param, lookup in filters.items():
        value = uuid_param(request, param)
        if value:
            queryset = queryset.filter(**{lookup: value})

    search = request.GET.get("search", "").strip()
    if search:
        queryset = queryset.filter(
            Q(serial_number__icontains=search)
            | Q(template__name__icontains=search)
            | Q(template__manufacturer__icontains=search)
        )
    return queryset


@api_view(["GET", "POST"])
def asset_list(request):
    user = request.user
    if request.method == "GET":
        assets, total = paginate(request, _filtered_assets(request))
        return list_response([asset_payload(a) for a in assets], total)

    require(can_manage_assets(user))
    form = _validated(AssetForm, request)
    asset = create_asset(form.changes(), user=user)
    return JsonResponse(asset_payload(asset), status=201)


def _get_asset(request, pk):
    return get_object_or_404(scope_assets(request.user), pk=pk)


@api_view(["GET", "PUT", "PATCH", "DELETE"])
def asset_detail(request, pk):
    user = request.user
    asset = _get_asset(request, pk)
    if request.method == "GET":
        return JsonResponse(asset_payload(asset))

    require(can_manage_assets(user))
    if request.method == "DELETE":
        asset.delete()
        logger.info("Asset %s deleted by %s", pk, user.pk)
        return HttpResponse(status=204)

    form = _update(AssetForm, request, asset)
    update_asset(asset, form.changes(), user=user)
    return JsonResponse(asset_payload(asset))


@api_view(["PATCH"])
def asset_image(request, pk):
    require(can_manage_assets(request.user))
    asset = _get_asset(request, pk)
    form = _validated(AssetImageForm, request)
    try:
        set_asset_image(asset, form.cleaned_data["image_url"], request.user)
    except InvalidImage as exc:
        raise field_error("image_url", str(exc))
    return JsonResponse(asset_payload(asset))


def _asset_ids(data):
    asset_ids = data.get("asset_ids")
    if not isinstance(asset_ids, list) or not asset_ids:
        raise field_error("asset_ids", "Provide a non-empty list of ids.")
    return asset_ids


@api_view(["POST"])
def asset_bulk_delete(request):
    require(can_manage_assets(request.user))
    data = parse_json(request)
    result = bulk.bulk_delete(request.user, _asset_ids(data))
    return JsonResponse(result)


@api_view(["PATCH"])
def asset_bulk_update(request):
    require(can_manage_assets(request.user))
    data = parse_json(request)
    asset_ids = _asset_ids(data)
    updates = data.get("updates")
    if not isinstance(updates, dict) or not updates:
        raise field_error("updates", "Provide the fields to update.")
    form = AssetForm(updates, partial=True, user=request.user)
    if not form.is_valid():
        raise validation_error(form)
    result = bulk.bulk_update(request.user, asset_ids, form.changes())
    return JsonResponse(result)


@api_view(["GET", "POST"])
def asset_qr_codes(request, pk):
    asset = _get_asset(request, pk)
    if request.method == "GET":
        try:
            return JsonResponse(qr_payload(asset.qr_code))
        except Asset.qr_code.RelatedObjectDoesNotExist:
            raise ApiError(404, "This asset has no QR code yet.")

    require(can_manage_assets(request.user))
    qr_code = generate_qr_code(asset, user=request.user)
    return JsonResponse(qr_payload(qr_code), status=201)


@api_view(["GET"])
def asset_events(request, pk):
    asset = _get_asset(request, pk)
    events, total = paginate(request, asset.events.all())
    return list_response([event_payload(e) for e in events], total)


@api_view(["GET", "POST"])
def asset_incidents(request, pk):
    asset = _get_asset(request, pk)
    if request.method == "GET":
        incidents, total = paginate(request, asset.incidents.all())
        return list_response([incident_payload(i) for i in incidents], total)

    form = _validated(IncidentForm, request)
    incident = form.apply(
        AssetIncident(asset=asset, reported_by=request.user)
    )
    incident.save()
    asset.record_event(
        "incident_reported", user=request.user, incident_id=str(incident.pk)
    )
    logger.info("Incident %s reported on asset %s", incident.pk, asset.pk)
    return JsonResponse(incident_payload(incident), status=201)


@api_view(["GET"])
def asset_sticker(request, pk):
    asset = _get_asset(request, pk)
    return HttpResponse(build_sticker(asset), content_type="text/plain")


@api_view(["POST"])
def asset_sticker_print(request, pk):
    from .tasks import print_asset_sticker

    require(can_manage_assets(request.user))
    asset = _get_asset(request, pk)
    data = parse_json(request)
    address = data.get("address") or None
    if address is not None and not isinstance(address, str):
        raise field_error("address", "Expected a Bluetooth address.")
    print_asset_sticker.delay(
        str(asset.pk), address=address, user_id=request.user.pk
    )
    return JsonResponse(
        {"detail": "Print queued.", "asset_id": str(asset.pk)}, status=202
    )


@api_view(["GET"])
def asset_labels(request):
    """Printable sheet of QR labels for ``?ids=a,b,c``."""
    raw_ids = [
        value.strip()
        for value in request.GET.get("ids", "").split(",")
        if value.strip()
    ]
    if not raw_ids:
        raise field_error("ids", "Provide at least one asset id.", "query")
    if len(raw_ids) > MAX_LABELS:
        raise field_error(
            "ids", f"At most {MAX_LABELS} labels per sheet.", "query"
        )

    parsed, _errors = bulk.parse_asset_ids(raw_ids)
    assets = scope_assets(request.user).in_bulk(parsed)
    labels = []
    for asset_id in parsed:
        asset = assets.get(asset_id)
        if asset is not None:
            labels.append(
                {
                    "asset": asset,
                    "qr_data_uri": qr_data_uri(asset_link(asset.pk)),
                }
            )
    return render(request, "assets/qr_sheet.html", {"labels": labels})


@api_view(["GET"])
def asset_export(request):
    buffer = export_assets_xlsx(_filtered_assets(request))
    filename = f"activos-{timezone.localdate():%Y-%m-%d}.xlsx"
    response = HttpResponse(
        buffer.getvalue(),
        content_type=(
            "application/vnd.openxmlformats-officedocument"
            ".spreadsheetml.sheet"
        ),
    )
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response


# --- Incidents ---


@api_view(["GET"])
def incident_list(request):
    queryset = scope_incidents(request.user)
    status = request.GET.get("status", "")
    if status:
        valid = {slug for slug, _label in AssetIncident.STATUS_CHOICES}
        if status not in valid:
            raise field_error("status", "Unknown status.", "query")
        queryset = queryset.filter(status=status)
    incidents, total = paginate(request, queryset)
    return list_response([incident_payload(i) for i in incidents], total)


@api_view(["GET", "PUT", "DELETE"])
def incident_detail(request, pk):
    user = request.user
    incident = get_object_or_404(scope_incidents(user), pk=pk)
    if request.method == "GET":
        return JsonResponse(incident_payload(incident))

    if request.method == "DELETE":
        require(can_manage_assets(user))
        incident.delete()
        return HttpResponse(status=204)

    form = _update(IncidentUpdateForm, request, incident)
    new_status = form.cleaned_data.pop("status", None)
    for field in ("description", "photo_url"):
        if field in form.cleaned_data:
            setattr(incident, field, form.cleaned_data[field])
    incident.save()
    if new_status is not None:
        incident.set_status(new_status, user=user)
    return JsonResponse(incident_payload(incident))


# --- Dashboard & reports ---


@api_view(["GET"])
def dashboard(request):
    user = request.user
    assets = scope_assets(user)
    by_status = dict(
        assets.order_by().values_list("status").annotate(count=Count("pk"))
    )
    incidents = scope_incidents(user)
    return JsonResponse(
        {
            "total_schools": scope_schools(user).count(),
            "total_classrooms": scope_classrooms(user).count(),
            "total_assets": assets.count(),
            "assets_by_status": {
                slug: by_status.get(slug, 0)
                for slug, _label in Asset.STATUS_CHOICES
            },
            "total_incidents": incidents.count(),
            "open_incidents": incidents.exclude(status="resolved").count(),
            "recent_incidents": [
                incident_payload(i) for i in incidents[:5]
            ],
        }
    )


def _overview(request):
    school_id = uuid_param(request, "school_id")
    if school_id and not can_access_school(request.user, school_id):
        raise ApiError(403, "Not enough permissions.")
    try:
        return reports.overview(
            request.user,
            preset=request.GET.get("preset") or None,
            start_date=request.GET.get("start_date") or None,
            end_date=request.GET.get("end_date") or None,
            school_id=school_id,
        )
    except reports.ReportError as exc:
        raise field_error(exc.field, str(exc), "query")


@api_view(["GET"])
def report_overview(request):
    return JsonResponse(_overview(request))


@api_view(["GET"])
def report_overview_export(request):
    snapshot = _overview(request)
    filename = f"reporte-{timezone.localdate():%Y-%m-%d}.json"
    response = HttpResponse(
        json.dumps(snapshot, indent=2, ensure_ascii=False),
        content_type="application/json",
    )
    response["Content-Disposition"] = f'attachment; filename="{filename}"'
    return response
