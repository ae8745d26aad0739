"""Inventory export to Excel (.xlsx)."""

from io import BytesIO

import openpyxl
from openpyxl.styles import Font, PatternFill

from django.conf import settings
from django.db.models import Sum

from ..models import Asset

# Stream rows from the database past this many assets
ITERATOR_THRESHOLD = 1000
ITERATOR_CHUNK_SIZE = 1000

ASSET_HEADERS = [
    "ID",
    "Template",
    "Category",
    "Manufacturer",
    "Model",
    "School",
    "Classroom",
    "Serial Number",
    "Status",
    "Purchase Date",
    "Value Estimate",
    "Image URL",
    "Created Date",
    "Last Updated",
]


def _asset_row(asset) -> list:
    template = asset.template
    classroom = asset.classroom
    return [
        str(asset.pk),
        template.name if template else "",
        template.category.name if template else "",
        template.manufacturer if template else "",
        template.model_number if template else "",
        classroom.school.name if classroom else "",
        classroom.name if classroom else "",
        asset.serial_number,
        asset.get_status_display(),
        asset.purchase_date.isoformat() if asset.purchase_date else "",
        float(asset.value_estimate) if asset.value_estimate else "",
        asset.image_url,
        asset.created_at.strftime("%Y-%m-%dT%H:%M:%S"),
        asset.updated_at.strftime("%Y-%m-%dT%H:%M:%S"),
    ]


def export_assets_xlsx(queryset=None) -> BytesIO:
    """Build a workbook with a status summary sheet and an asset sheet.

    The caller passes an already scoped queryset; the default is every
    asset. Returns the rewound buffer.
    """
    if queryset is None:
        queryset = Asset.objects.with_related()

    wb = openpyxl.Workbook()

    ws_summary = wb.active
    ws_summary.title = "Summary"
    header_font = Font(bold=True)
    header_fill = PatternFill(
        start_color="2563EB", end_color="2563EB", fill_type="solid"
    )

    total_count = queryset.count()
    ws_summary.append([f"{settings.SITE_NAME} - Inventario"])
    ws_summary["A1"].font = Font(bold=True, size=14)
    ws_summary.append([])
    ws_summary.append(["Total Assets", total_count])
    for slug, label in Asset.STATUS_CHOICES:
        ws_summary.append([label, queryset.filter(status=slug).count()])

    ws_summary.append([])
    total_value = float(
        queryset.aggregate(total=Sum("value_estimate"))["total"] or 0
    )
    ws_summary.append(["Total Estimated Value", f"${total_value:,.2f}"])

    ws_assets = wb.create_sheet("Assets")
    ws_assets.append(ASSET_HEADERS)
    for col_idx, _header in enumerate(ASSET_HEADERS, 1):
        cell = ws_assets.cell(row=1, column=col_idx)
        cell.font = header_font
        cell.fill = header_fill

    asset_iter = (
        queryset.iterator(chunk_size=ITERATOR_CHUNK_SIZE)
        if total_count > ITERATOR_THRESHOLD
        else queryset
    )
    for asset in asset_iter:
        ws_assets.append(_asset_row(asset))

    # Auto-size columns
    for ws in [ws_summary, ws_assets]:
        for column_cells in ws.columns:
            max_length = max(
                len(str(cell.value or "")) for cell in column_cells
            )
            ws.column_dimensions[column_cells[0].column_letter].width = min(
                max_length + 2, 50
            )

    buffer = BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer
