"""Slider puzzle rendering.

Cuts a jigsaw-shaped tile out of a background image and returns both images
as inline data URLs together with the tile's true offset. The offset is the
answer to the challenge and must never be sent to the client.
"""
from __future__ import annotations

import base64
import io
import random
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, ImageDraw, ImageOps

from mz_admin.core.captcha import CANVAS_HEIGHT, CANVAS_WIDTH, TILE_HEIGHT, TILE_WIDTH

# Radius of the round tab on the tile's top and right edges.
TAB_RADIUS = 8
EDGE_MARGIN = 10
HOLE_SHADE = (0, 0, 0, 140)
JPEG_QUALITY = 85


@dataclass(frozen=True)
class Puzzle:
    """A rendered challenge. ``x``/``y`` are the true top-left tile offset."""

    background: str
    tile: str
    x: int
    y: int


def _tile_mask(width: int, height: int) -> Image.Image:
    """Return an L-mode mask of the jigsaw piece on a ``width`` x ``height`` canvas.

    The square body is inset by the tab radius so that the tabs on the top and
    right edges stay inside the tile bounds.
    """
    r = TAB_RADIUS
    mask = Image.new("L", (width, height), 0)
    draw = ImageDraw.Draw(mask)
    body = (0, r, width - r - 1, height - 1)
    draw.rectangle(body, fill=255)

    body_center_x = (body[0] + body[2]) // 2
    body_center_y = (body[1] + body[3]) // 2
    # Top tab
    draw.ellipse((body_center_x - r, 0, body_center_x + r, 2 * r), fill=255)
    # Right tab
    draw.ellipse((body[2] - r, body_center_y - r, body[2] + r, body_center_y + r), fill=255)
    return mask


def _to_data_url(img: Image.Image, fmt: str) -> str:
    buf = io.BytesIO()
    if fmt == "JPEG":
        img.convert("RGB").save(buf, format="JPEG", quality=JPEG_QUALITY)
        mime = "image/jpeg"
    else:
        img.save(buf, format="PNG")
        mime = "image/png"
    return f"data:{mime};base64,{base64.b64encode(buf.getvalue()).decode('ascii')}"


def placeholder_image(width: int = CANVAS_WIDTH, height: int = CANVAS_HEIGHT) -> Image.Image:
    """Create a gradient image used when no background asset can be read."""
    img = Image.new("RGB", (width, height))
    pixels = img.load()
    for y in range(height):
        for x in range(width):
            r = int(255 * x / width)
            g = int(255 * y / height)
            b = 128 + int(64 * ((x // 20 + y // 20) % 2))
            pixels[x, y] = (r, g, b)  # type: ignore[index]
    return img


def random_offset(rng: random.Random | None = None) -> tuple[int, int]:
    """Pick a tile offset that keeps the whole tile inside the canvas."""
    rng = rng or random
    x = rng.randint(TILE_WIDTH, CANVAS_WIDTH - TILE_WIDTH - EDGE_MARGIN)
    y = rng.randint(EDGE_MARGIN, CANVAS_HEIGHT - TILE_HEIGHT - EDGE_MARGIN)
    return x, y


def render_puzzle(
    source: Image.Image,
    x: int,
    y: int,
) -> Puzzle:
    """Render the background-with-hole and the tile strip for a given offset.

    Args:
        source: Background image of any size; it is cropped to the canvas.
        x: Left edge of the tile on the canvas.
        y: Top edge of the tile on the canvas.

    Returns:
        The rendered `Puzzle`.

    Raises:
        ValueError: If the offset does not fit the canvas.
    """
    if not (0 <= x <= CANVAS_WIDTH - TILE_WIDTH and 0 <= y <= CANVAS_HEIGHT - TILE_HEIGHT):
        raise ValueError("Tile offset outside canvas")

    canvas = ImageOps.fit(source.convert("RGBA"), (CANVAS_WIDTH, CANVAS_HEIGHT))
    mask = _tile_mask(TILE_WIDTH, TILE_HEIGHT)
    box = (x, y, x + TILE_WIDTH, y + TILE_HEIGHT)

    piece = canvas.crop(box)
    piece.putalpha(mask)
    # The tile strip spans the canvas height so the client only moves it along x.
    strip = Image.new("RGBA", (TILE_WIDTH, CANVAS_HEIGHT), (0, 0, 0, 0))
    strip.paste(piece, (0, y), piece)

    shade = Image.new("RGBA", (TILE_WIDTH, TILE_HEIGHT), HOLE_SHADE)
    background = canvas.copy()
    background.paste(shade, (x, y), mask)

    return Puzzle(
        background=_to_data_url(background, "JPEG"),
        tile=_to_data_url(strip, "PNG"),
        x=x,
        y=y,
    )


def create_puzzle(
    image_path: Path | None,
    rng: random.Random | None = None,
) -> Puzzle:
    """Load a background (or the placeholder when ``image_path`` is None) and render it.

    Raises:
        OSError: If the image file cannot be opened or decoded.
        ValueError: If rendering fails.
    """
    if image_path is None:
        source = placeholder_image()
    else:
        with Image.open(image_path) as img:
            img.load()
            source = img.copy()
    x, y = random_offset(rng)
    return render_puzzle(source, x, y)
