from __future__ import annotations

import math
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from PIL import Image, ImageDraw, ImageFont

from ..config import MergeConfig
from ..models import Fragment, FragmentKind, Page

# Outline colour per merge state
KIND_COLORS: Dict[str, tuple] = {
    FragmentKind.plain.value: (255, 0, 0, 200),  # red
    FragmentKind.row_merged.value: (0, 160, 0, 220),  # green
    FragmentKind.column_merged.value: (0, 0, 255, 220),  # blue
}

LINK_COLOR = (0, 0, 0, 255)

# Tried in order; the first that loads wins.  CJK faces first so
# invoice labels render as glyphs rather than boxes.
FONT_CANDIDATES = (
    "NotoSansCJK-Regular.ttc",
    "NotoSansSC-Regular.otf",
    "simhei.ttf",
    "msyh.ttc",
    "arial.ttf",
)


def _get_color(color_overrides: Optional[Dict[str, tuple]], key: str) -> tuple:
    """Colour for *key*, from overrides when given, else :data:`KIND_COLORS`."""
    if color_overrides and key in color_overrides:
        return color_overrides[key]
    return KIND_COLORS[key]


def _load_font(size: int):
    for name in FONT_CANDIDATES:
        try:
            return ImageFont.truetype(name, size)
        except (OSError, IOError):
            continue
    return ImageFont.load_default()


def fragment_polygon(frag: Fragment, scale: float) -> List[Tuple[float, float]]:
    """Corner points of *frag* in image pixels.

    The box is anchored at ``(x, y)`` (left end of the baseline) and turned
    by ``frag.angle`` degrees counter-clockwise as seen on the page.
    """
    theta = math.radians(frag.angle)
    # Page y grows downwards, so counter-clockwise means negative dy.
    ux, uy = math.cos(theta), -math.sin(theta)
    vx, vy = -math.sin(theta), -math.cos(theta)
    x0, y0 = frag.x, frag.y
    w, h = frag.width, frag.height
    corners = [
        (x0, y0),
        (x0 + ux * w, y0 + uy * w),
        (x0 + ux * w + vx * h, y0 + uy * w + vy * h),
        (x0 + vx * h, y0 + vy * h),
    ]
    return [(px * scale, py * scale) for px, py in corners]


def _draw_text(draw: ImageDraw.ImageDraw, xy, text: str, fill, font) -> None:
    try:
        draw.text(xy, text, fill=fill, font=font)
    except UnicodeEncodeError:
        # Bitmap fallback font only covers latin-1.
        safe = text.encode("latin-1", errors="replace").decode("latin-1")
        draw.text(xy, safe, fill=fill, font=font)


def draw_merge_overlay(
    page: Page,
    out_path: Path | str,
    scale: float = 1.0,
    background: Image.Image | None = None,
    color_overrides: Optional[Dict[str, tuple]] = None,
    cfg: MergeConfig | None = None,
) -> Path:
    """Render the fragments of *page* as a PNG for visual QA.

    Each fragment is outlined in the colour of its merge state
    (plain red, row-merged green, column-merged blue); rotated fragments
    are drawn as turned quadrilaterals.  Page links are listed as text in a
    strip added below the page.

    If *background* is given it is resized to the page at *scale* and
    used as the base.  *color_overrides* maps ``FragmentKind`` values to
    RGBA tuples.  Returns the written path.
    """
    if cfg is None:
        cfg = MergeConfig()

    out_path = Path(out_path)
    img_w = max(1, int(page.width * scale))
    img_h = max(1, int(page.height * scale))

    font = _load_font(max(8, int(cfg.overlay_font_size * scale)))
    line_h = max(10, int(cfg.overlay_font_size * scale * 1.4))
    strip_h = (len(page.links) * line_h + line_h // 2) if page.links else 0

    canvas = Image.new("RGBA", (img_w, img_h + strip_h), (255, 255, 255, 255))
    if background is not None:
        bg = background.convert("RGBA")
        if bg.size != (img_w, img_h):
            bg = bg.resize((img_w, img_h))
        canvas.paste(bg, (0, 0))

    draw = ImageDraw.Draw(canvas, "RGBA")
    for frag in page.fragments:
        color = _get_color(color_overrides, FragmentKind(frag.kind).value)
        width = (
            cfg.overlay_outline_width
            if frag.kind == FragmentKind.plain
            else cfg.overlay_merged_outline_width
        )
        if frag.is_rotated(cfg.rotation_tolerance_deg):
            pts = fragment_polygon(frag, scale)
            draw.line(pts + [pts[0]], fill=color, width=width)
        else:
            x0, y0, x1, y1 = frag.bbox()
            draw.rectangle(
                [(x0 * scale, y0 * scale), (x1 * scale, y1 * scale)],
                outline=color,
                width=width,
            )
        if cfg.overlay_draw_text and frag.text:
            x0, y0, _, _ = frag.bbox()
            _draw_text(
                draw,
                (x0 * scale, max(0.0, y0 * scale - line_h)),
                frag.text,
                (color[0], color[1], color[2]),
                font,
            )

    for i, link in enumerate(page.links):
        _draw_text(draw, (4, img_h + i * line_h + 2), link, LINK_COLOR, font)

    out_path.parent.mkdir(parents=True, exist_ok=True)
    canvas.convert("RGB").save(out_path)
    return out_path
