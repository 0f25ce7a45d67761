"""Tests for instabuilder.services.image_renderer: layout, composition and PNG output."""

from io import BytesIO
from unittest.mock import MagicMock

import httpx
import pytest
from PIL import Image, ImageFont

from instabuilder.config import Settings
from instabuilder.models import Slide, SolidBackground, new_text_element
from instabuilder.services.backgrounds import BackgroundImageLoader
from instabuilder.services.font_service import FontCache, FontResolver, FontSet
from instabuilder.services.grain import GrainTexture
from instabuilder.services.image_renderer import RenderFailure, SlideRasterizer, wrap_line

from conftest import StubFontResolver, oversized_png_url, png_bytes, run


def _decode(png: bytes) -> Image.Image:
    with Image.open(BytesIO(png)) as img:
        return img.convert("RGB")


def _black_slide(*elements, aspect_ratio="1:1"):
    return Slide(
        background=SolidBackground(color="#000000"),
        aspect_ratio=aspect_ratio,
        elements=list(elements),
    )


# ── wrap_line ──────────────────────────────────────────────────────────

class TestWrapLine:
    font = ImageFont.load_default(size=20)

    def test_fits(self):
        assert wrap_line("hello world", self.font, 1000) == ["hello world"]

    def test_wraps_on_words(self):
        text = "the quick brown fox jumps over the lazy dog " * 3
        lines = wrap_line(text, self.font, 120)
        assert len(lines) > 1
        assert all(self.font.getlength(line) <= 120 for line in lines)
        assert " ".join(lines).split() == text.split()

    def test_breaks_long_words(self):
        word = "x" * 200
        lines = wrap_line(word, self.font, 100)
        assert "".join(lines) == word
        assert all(self.font.getlength(line) <= 100 for line in lines)

    def test_empty(self):
        assert wrap_line("", self.font, 100) == [" "]


# ── Layout ─────────────────────────────────────────────────────────────

class TestLayoutElement:
    def test_two_lines_centered_on_anchor(self, rasterizer, fonts):
        header = new_text_element("header", text="Hello\nWorld", y_percent=40)
        layout = rasterizer.layout_element(header, fonts, (1080, 1080))
        assert layout.anchor_y == pytest.approx(432)
        assert len(layout.lines) == 2
        assert layout.center_y == pytest.approx(432)
        assert [line.text for line in layout.lines] == ["Hello", "World"]
        for line in layout.lines:
            assert line.center_x == pytest.approx(540)

    def test_line_boxes_stack(self, rasterizer, fonts):
        el = new_text_element("body", text="a\nb\nc")
        layout = rasterizer.layout_element(el, fonts, (1080, 1350))
        tops = [line.top for line in layout.lines]
        assert tops[1] - tops[0] == pytest.approx(layout.line_height)
        assert tops[2] - tops[1] == pytest.approx(layout.line_height)
        assert layout.height == pytest.approx(3 * layout.line_height)
        assert all(line.top < line.baseline < line.top + line.height for line in layout.lines)

    @pytest.mark.parametrize("anchor", ["top", "center", "bottom"])
    def test_vertical_anchor(self, rasterizer, fonts, anchor):
        el = new_text_element("subtitle", text="one\ntwo", y_percent=50, vertical_anchor=anchor)
        layout = rasterizer.layout_element(el, fonts, (1080, 1350))
        edge = {"top": layout.top, "center": layout.center_y, "bottom": layout.bottom}[anchor]
        assert edge == pytest.approx(675)

    def test_align_left_and_right(self, rasterizer, fonts):
        padding = 24 * 1080 / 380
        left = rasterizer.layout_element(new_text_element("body", text="Left", align="left"), fonts, (1080, 1080))
        right = rasterizer.layout_element(new_text_element("body", text="Right", align="right"), fonts, (1080, 1080))
        assert left.lines[0].left == pytest.approx(padding)
        assert right.lines[0].left + right.lines[0].width == pytest.approx(1080 - padding)

    def test_long_text_wraps_inside_padding(self, rasterizer, fonts):
        el = new_text_element("header", text="A headline that is far too long for a single line on the slide")
        layout = rasterizer.layout_element(el, fonts, (1080, 1350))
        content_width = 1080 - 2 * 24 * 1080 / 380
        assert len(layout.lines) > 1
        assert all(line.width <= content_width for line in layout.lines)

    def test_font_size_scales(self, rasterizer, fonts):
        layout = rasterizer.layout_element(new_text_element("header", font_size=38), fonts, (1080, 1080))
        assert layout.font_size == pytest.approx(108)
        assert layout.line_height == pytest.approx(108 * 1.3)

    def test_proportions_independent_of_width(self, fonts):
        small = SlideRasterizer(None, settings=Settings(_env_file=None, slide_width=1080))
        large = SlideRasterizer(None, settings=Settings(_env_file=None, slide_width=2160))
        el = new_text_element("header", text="Scale\nme", y_percent=30, vertical_anchor="top")
        for ratio in ("1:1", "4:5", "9:16"):
            small_size = small.mapper.size_for(ratio)
            large_size = large.mapper.size_for(ratio)
            a = small.layout_element(el, fonts, small_size)
            b = large.layout_element(el, fonts, large_size)
            assert b.font_size == pytest.approx(2 * a.font_size)
            assert a.line_height / small_size[1] == pytest.approx(b.line_height / large_size[1])
            assert a.top / small_size[1] == pytest.approx(b.top / large_size[1])

    def test_wrap_width_follows_design_padding(self, fonts):
        rasterizer = SlideRasterizer(None, settings=Settings(_env_file=None, design_padding=80))
        el = new_text_element("header", text="A headline that is far too long for a single line on the slide")
        layout = rasterizer.layout_element(el, fonts, (1080, 1350))
        assert rasterizer.mapper.content_width() == pytest.approx(1080 - 2 * 80 * 1080 / 380)
        assert all(line.width <= rasterizer.mapper.content_width() for line in layout.lines)

    def test_substitution_is_logged(self, rasterizer, fonts, caplog):
        caplog.set_level("INFO", logger="instabuilder.services.image_renderer")
        rasterizer.layout_element(new_text_element("tag", text="x"), fonts, (1080, 1080))
        assert "Substituting Inter 400 for Montserrat 600" in caplog.text

    def test_exact_font_not_logged(self, rasterizer, fonts, caplog):
        caplog.set_level("INFO", logger="instabuilder.services.image_renderer")
        rasterizer.layout_element(new_text_element("header", text="x"), fonts, (1080, 1080))
        assert "Substituting" not in caplog.text

    def test_empty_font_set(self, rasterizer):
        with pytest.raises(RenderFailure):
            rasterizer.layout_element(new_text_element("body"), FontSet([]), (1080, 1080))


# ── Full render ────────────────────────────────────────────────────────

class TestRenderSlide:
    def test_hello_world_slide(self, rasterizer, fonts):
        header = new_text_element("header", text="Hello\nWorld", y_percent=40)
        slide = _black_slide(header)
        img = _decode(run(rasterizer.render_slide(slide)))
        assert img.size == (1080, 1080)

        layout = rasterizer.layout_element(header, fonts, (1080, 1080))
        left, top, right, bottom = img.convert("L").getbbox()
        slack = layout.font_size * 0.25
        assert top >= layout.top - slack
        assert bottom <= layout.bottom + slack
        assert (top + bottom) / 2 == pytest.approx(432, abs=slack)
        assert (left + right) / 2 == pytest.approx(540, abs=8)

    @pytest.mark.parametrize("ratio, size", [("1:1", (1080, 1080)), ("4:5", (1080, 1350)), ("9:16", (1080, 1920))])
    def test_output_size(self, rasterizer, ratio, size):
        assert _decode(run(rasterizer.render_slide(_black_slide(aspect_ratio=ratio)))).size == size

    def test_accepts_payload_dict(self, rasterizer):
        png = run(rasterizer.render_slide({"aspectRatio": "16:9", "elements": [{"type": "header", "text": "x"}]}))
        assert _decode(png).size == (1080, 1350)

    def test_fonts_requested_for_elements(self, rasterizer):
        slide = _black_slide(new_text_element("header"), new_text_element("tag"))
        run(rasterizer.render_slide(slide))
        assert rasterizer.font_resolver.requested[-1] == [("Playfair Display", 800), ("Montserrat", 600)]

    def test_solid_background(self, rasterizer):
        slide = Slide(background=SolidBackground(color="#ff0000"), aspect_ratio="1:1")
        assert _decode(run(rasterizer.render_slide(slide))).getpixel((0, 0)) == (255, 0, 0)

    def test_bad_gradient_paints_default(self, rasterizer):
        slide = Slide.from_payload({"background": {"type": "gradient", "gradient": "conic-gradient(red, blue)"}})
        assert _decode(run(rasterizer.render_slide(slide))).getpixel((5, 5)) == (10, 10, 15)

    def test_gradient_background(self, rasterizer):
        slide = Slide.from_payload({
            "aspectRatio": "1:1",
            "background": {"type": "gradient", "gradient": "linear-gradient(to bottom, #000000, #ffffff)"},
        })
        img = _decode(run(rasterizer.render_slide(slide)))
        assert img.getpixel((540, 2))[0] < 10
        assert img.getpixel((540, 1077))[0] > 245

    def test_image_background(self, settings, failing_client):
        image_client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, content=png_bytes((0, 0, 255))))
        )
        rasterizer = SlideRasterizer(
            StubFontResolver(failing_client, settings),
            image_loader=BackgroundImageLoader(image_client, settings),
            settings=settings,
        )
        slide = Slide.from_payload({"background": {"type": "image", "imageUrl": "https://example.com/bg.png"}})
        r, g, b = _decode(run(rasterizer.render_slide(slide))).getpixel((100, 100))
        assert r <= 2 and g <= 2 and b >= 253

    def test_unreachable_image_paints_default(self, rasterizer):
        slide = Slide.from_payload({"background": {"type": "image", "imageUrl": "https://example.com/gone.png"}})
        assert _decode(run(rasterizer.render_slide(slide))).getpixel((5, 5)) == (10, 10, 15)

    def test_oversized_image_paints_default(self, rasterizer):
        slide = Slide.from_payload({"background": {"type": "image", "imageUrl": oversized_png_url()}})
        assert _decode(run(rasterizer.render_slide(slide))).getpixel((5, 5)) == (10, 10, 15)

    def test_later_elements_paint_on_top(self, rasterizer):
        white = new_text_element("header", text="Stack", color="#ffffff", y_percent=50)
        red = new_text_element("header", text="Stack", color="#ff0000", y_percent=50)
        colors = {color for _, color in _decode(run(rasterizer.render_slide(_black_slide(white, red)))).getcolors(1 << 24)}
        assert (255, 0, 0) in colors
        assert (255, 255, 255) not in colors

    def test_unparseable_text_color_uses_default(self, rasterizer):
        el = new_text_element("header", text="Hi", color="not-a-color")
        colors = {color for _, color in _decode(run(rasterizer.render_slide(_black_slide(el)))).getcolors(1 << 24)}
        assert (255, 255, 255) in colors


# ── Grain ──────────────────────────────────────────────────────────────

class TestGrainStep:
    def _rasterizer(self, settings, failing_client):
        grain = MagicMock(wraps=GrainTexture(settings))
        return SlideRasterizer(StubFontResolver(failing_client, settings), grain=grain, settings=settings), grain

    def test_zero_intensity_skips_grain(self, settings, failing_client):
        rasterizer, grain = self._rasterizer(settings, failing_client)
        slide = _black_slide(new_text_element("header", text="Grain"))
        first = run(rasterizer.render_slide(slide, grain_intensity=0))
        second = run(rasterizer.render_slide(slide, grain_intensity=0))
        grain.composite.assert_not_called()
        assert first == second

    def test_grain_applied(self, settings, failing_client):
        rasterizer, grain = self._rasterizer(settings, failing_client)
        slide = Slide(background=SolidBackground(color="#808080"), aspect_ratio="1:1")
        plain = _decode(run(rasterizer.render_slide(slide, grain_intensity=0)))
        grainy = _decode(run(rasterizer.render_slide(slide, grain_intensity=80)))
        grain.composite.assert_called_once()
        assert grainy.size == plain.size
        assert grainy.tobytes() != plain.tobytes()


# ── Failures ───────────────────────────────────────────────────────────

class TestRenderFailure:
    def test_no_fonts(self, rasterizer):
        with pytest.raises(RenderFailure):
            rasterizer.rasterize(_black_slide(), 0, FontSet([]))

    def test_no_font_sources(self, settings, failing_client):
        rasterizer = SlideRasterizer(FontResolver(failing_client, FontCache(), settings), settings=settings)
        with pytest.raises(RenderFailure):
            run(rasterizer.render_slide(_black_slide(new_text_element("header"))))

    def test_composition_error_is_wrapped(self, rasterizer, fonts, monkeypatch):
        def broken(*args, **kwargs):
            raise ValueError("boom")

        monkeypatch.setattr(rasterizer, "paint_background", broken)
        with pytest.raises(RenderFailure) as exc:
            rasterizer.rasterize(_black_slide(), 0, fonts)
        assert isinstance(exc.value.__cause__, ValueError)
