"""Tests for the TSPL sticker layout."""

import uuid

import pytest

from assets.services.sticker import (
    ID_LINE_Y,
    asset_link,
    build_sticker,
    font_tier,
    render_sticker,
    wrap_lines,
)

ASSET_ID = uuid.UUID("3f2b8c1e-9d4a-4e7b-8a51-c0ffee123456")
BASE_URL = "https://aulas.example.com"


def text_lines(sticker):
    return [line for line in sticker.split("\r\n") if line.startswith("TEXT")]


class TestFontTier:
    @pytest.mark.parametrize("length", [0, 1, 10, 15])
    def test_short_names_use_largest_font(self, length):
        assert font_tier("x" * length) == 3

    @pytest.mark.parametrize("length", [16, 20, 22])
    def test_medium_names_use_middle_font(self, length):
        assert font_tier("x" * length) == 2

    @pytest.mark.parametrize("length", [23, 29, 60, 500])
    def test_long_names_use_smallest_font(self, length):
        assert font_tier("x" * length) == 1


class TestWrapLines:
    def test_packs_words_greedily(self):
        assert wrap_lines("Projector Epson X200 HD Ultra", 20) == [
            "Projector Epson X200",
            "HD Ultra",
        ]

    def test_never_more_than_two_lines(self):
        lines = wrap_lines("uno dos tres cuatro cinco seis siete", 5)
        assert lines == ["uno", "dos"]

    def test_overlong_word_kept_whole(self):
        word = "Electroencefalógrafo"
        assert wrap_lines(f"{word} portátil", 10) == [word, "portátil"]

    def test_collapses_whitespace(self):
        assert wrap_lines("  Mesa \t  plegable  ", 20) == ["Mesa plegable"]

    def test_empty_text(self):
        assert wrap_lines("", 10) == []


class TestRenderSticker:
    def test_preamble(self):
        sticker = render_sticker(ASSET_ID, "Mesa", BASE_URL)
        assert sticker.split("\r\n")[:5] == [
            "SIZE 50 mm,25 mm",
            "GAP 2 mm,0 mm",
            "DIRECTION 1",
            "DENSITY 8",
            "CLS",
        ]

    def test_qr_payload_is_asset_link(self):
        sticker = render_sticker(ASSET_ID, "Mesa", BASE_URL)
        link = f"{BASE_URL}/assets/{ASSET_ID}"
        assert f'QRCODE 16,24,L,5,A,0,"{link}"' in sticker

    @pytest.mark.parametrize(
        "name",
        ["", "Mesa", "Projector Epson X200 HD Ultra", "palabra " * 40],
    )
    def test_single_print_and_qrcode(self, name):
        sticker = render_sticker(ASSET_ID, name, BASE_URL)
        commands = sticker.split("\r\n")
        assert commands.count("PRINT 1") == 1
        assert sum(c.startswith("QRCODE") for c in commands) == 1
        assert sticker.endswith("PRINT 1\r\n")

    def test_caption_and_short_name(self):
        lines = text_lines(render_sticker(ASSET_ID, "Mesa", BASE_URL))
        assert lines == [
            'TEXT 185,24,"3",0,1,1,"AULA"',
            'TEXT 185,64,"3",0,1,1,"Mesa"',
            'TEXT 185,135,"1",0,1,1,"ID:ee123456"',
        ]

    def test_long_name_two_lines_smallest_font(self):
        lines = text_lines(
            render_sticker(ASSET_ID, "Projector Epson X200 HD Ultra", BASE_URL)
        )
        assert lines == [
            'TEXT 185,24,"3",0,1,1,"AULA"',
            'TEXT 185,64,"1",0,1,1,"Projector Epson X200"',
            'TEXT 185,88,"1",0,1,1,"HD Ultra"',
            f'TEXT 185,{ID_LINE_Y[3]},"1",0,1,1,"ID:ee123456"',
        ]
        assert ID_LINE_Y[3] == 175

    def test_missing_name_moves_id_up(self):
        lines = text_lines(render_sticker(ASSET_ID, "", BASE_URL))
        assert lines[-1] == 'TEXT 185,95,"1",0,1,1,"ID:ee123456"'
        assert len(lines) == 2

    def test_quotes_are_escaped(self):
        sticker = render_sticker(ASSET_ID, 'TV 55"', BASE_URL)
        assert '"TV 55\\["]"' in sticker


@pytest.mark.django_db
class TestBuildSticker:
    def test_uses_template_name_and_base_url(self, asset, settings):
        settings.BASE_APP_URL = "https://escuela.example.org"
        sticker = build_sticker(asset)
        assert f'"https://escuela.example.org/assets/{asset.pk}"' in sticker
        assert "Projector Epson X200" in sticker
        assert f"ID:{str(asset.pk)[-8:]}" in sticker

    def test_asset_without_template(self, asset):
        asset.template = None
        sticker = build_sticker(asset)
        assert sticker.count("TEXT") == 2

    def test_asset_link_defaults_to_setting(self, settings):
        settings.BASE_APP_URL = "https://x.example"
        assert asset_link(ASSET_ID) == f"https://x.example/assets/{ASSET_ID}"
