"""URL configuration for the inventory API."""

from django.urls import path

from . import views

app_name = "assets"

urlpatterns = [
    # Schools & classrooms
    path("schools/", views.school_list, name="school_list"),
    path("schools/<uuid:pk>", views.school_detail, name="school_detail"),
    path(
        "schools/<uuid:pk>/classrooms/",
        views.school_classrooms,
        name="school_classrooms",
    ),
    path("classrooms/", views.classroom_list, name="classroom_list"),
    path(
        "classrooms/<uuid:pk>",
        views.classroom_detail,
        name="classroom_detail",
    ),
    path(
        "classrooms/<uuid:pk>/inventory",
        views.classroom_inventory_view,
        name="classroom_inventory",
    ),
    # Catalog
    path(
        "assets/categories/",
        views.category_list,
        name="category_list",
    ),
    path(
        "assets/categories/<uuid:pk>",
        views.category_detail,
        name="category_detail",
    ),
    path(
        "assets/templates/",
        views.template_list,
        name="template_list",
    ),
    path(
        "assets/templates/by_category/<uuid:category_id>",
        views.template_by_category,
        name="template_by_category",
    ),
    path(
        "assets/templates/<uuid:pk>",
        views.template_detail,
        name="template_detail",
    ),
    # Assets
    path("assets/", views.asset_list, name="asset_list"),
    path("assets/export", views.asset_export, name="asset_export"),
    path("assets/labels/", views.asset_labels, name="asset_labels"),
    path(
        "assets/bulk-delete",
        views.asset_bulk_delete,
        name="asset_bulk_delete",
    ),
    path(
        "assets/bulk-update",
        views.asset_bulk_update,
        name="asset_bulk_update",
    ),
    path("assets/<uuid:pk>", views.asset_detail, name="asset_detail"),
    path("assets/<uuid:pk>/image", views.asset_image, name="asset_image"),
    path(
        "assets/<uuid:pk>/qr-codes/",
        views.asset_qr_codes,
        name="asset_qr_codes",
    ),
    path(
        "assets/<uuid:pk>/events/",
        views.asset_events,
        name="asset_events",
    ),
    path(
        "assets/<uuid:pk>/incidents/",
        views.asset_incidents,
        name="asset_incidents",
    ),
    path(
        "assets/<uuid:pk>/sticker",
        views.asset_sticker,
        name="asset_sticker",
    ),
    path(
        "assets/<uuid:pk>/sticker/print",
        views.asset_sticker_print,
        name="asset_sticker_print",
    ),
    # Incidents
    path("incidents/", views.incident_list, name="incident_list"),
    path(
        "incidents/<uuid:pk>",
        views.incident_detail,
        name="incident_detail",
    ),
    # Dashboard & reports
    path("dashboard/", views.dashboard, name="dashboard"),
    path(
        "reports/overview",
        views.report_overview,
        name="report_overview",
    ),
    path(
        "reports/overview/export",
        views.report_overview_export,
        name="report_overview_export",
    ),
]
