"""TSPL sticker layout for 50mm x 25mm asset labels.

The label carries a QR code linking to the asset's page, the fixed
caption ``AULA``, the template name (one or two lines, font chosen by
length) and the last eight characters of the asset id. Positions are in
printer dots (203 dpi) and have been tuned against real labels; change
them only after a test print.
"""

import math

from django.conf import settings

LABEL_WIDTH_MM = 50
LABEL_HEIGHT_MM = 25
GAP_MM = 2

CAPTION = "AULA"
MAX_LINES = 2

QR_X = 16
QR_Y = 24
QR_CELL_WIDTH = 5

TEXT_X = 185
CAPTION_Y = 24
CAPTION_LINE_HEIGHT = 40

# Names up to this length use the largest font
LARGE_TEXT_MAX = 15
TIER_STEP = 7.5

TIER_FONTS = {3: "3", 2: "2", 1: "1"}
TIER_LINE_BUDGETS = {3: 10, 2: 14, 1: 20}
TIER_LINE_HEIGHTS = {3: 40, 2: 32, 1: 24}

# ID line position by number of caption + name lines above it
ID_LINE_Y = {1: 95, 2: 135, 3: 175}
ID_FONT = "1"
ID_SUFFIX_LENGTH = 8


def font_tier(text: str) -> int:
    """Return 3 (largest) to 1 (smallest) for ``text``."""
    overflow = len(text) - LARGE_TEXT_MAX
    if overflow <= 0:
        return 3
    return max(1, 3 - math.ceil(overflow / TIER_STEP))


def wrap_lines(text: str, budget: int, max_lines: int = MAX_LINES) -> list:
    """Greedily pack words into lines of at most ``budget`` characters.

    A word longer than the budget gets a line of its own, unsplit.
    Lines past ``max_lines`` are dropped.
    """
    lines = []
    current = ""
    for word in text.split():
        if not current:
            current = word
        elif len(current) + 1 + len(word) <= budget:
            current = f"{current} {word}"
        else:
            lines.append(current)
            current = word
    if current:
        lines.append(current)
    return lines[:max_lines]


def _quote(text: str) -> str:
    return '"' + text.replace('"', '\\["]') + '"'


def asset_link(asset_id, base_url: str | None = None) -> str:
    """Deep link to the asset's detail page in the dashboard."""
    if base_url is None:
        base_url = settings.BASE_APP_URL
    return f"{base_url}/assets/{asset_id}"


def render_sticker(asset_id, name: str, base_url: str | None = None) -> str:
    """Build the TSPL program for one label."""
    asset_id = str(asset_id)
    commands = [
        f"SIZE {LABEL_WIDTH_MM} mm,{LABEL_HEIGHT_MM} mm",
        f"GAP {GAP_MM} mm,0 mm",
        "DIRECTION 1",
        "DENSITY 8",
        "CLS",
        f"QRCODE {QR_X},{QR_Y},L,{QR_CELL_WIDTH},A,0,"
        + _quote(asset_link(asset_id, base_url)),
    ]

    y = CAPTION_Y
    caption_lines = wrap_lines(CAPTION, TIER_LINE_BUDGETS[3])
    for line in caption_lines:
        commands.append(
            f"TEXT {TEXT_X},{y},{_quote(TIER_FONTS[3])},0,1,1,{_quote(line)}"
        )
        y += CAPTION_LINE_HEIGHT

    tier = font_tier(name)
    name_lines = wrap_lines(name, TIER_LINE_BUDGETS[tier])
    for line in name_lines:
        commands.append(
            f"TEXT {TEXT_X},{y},{_quote(TIER_FONTS[tier])},0,1,1,"
            f"{_quote(line)}"
        )
        y += TIER_LINE_HEIGHTS[tier]

    lines_above = len(caption_lines) + len(name_lines)
    id_y = ID_LINE_Y[min(max(lines_above, 1), 3)]
    commands.append(
        f"TEXT {TEXT_X},{id_y},{_quote(ID_FONT)},0,1,1,"
        + _quote(f"ID:{asset_id[-ID_SUFFIX_LENGTH:]}")
    )
    commands.append("PRINT 1")
    return "\r\n".join(commands) + "\r\n"


def build_sticker(asset) -> str:
    name = asset.template.name if asset.template else ""
    return render_sticker(asset.pk, name)
