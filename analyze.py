#!/usr/bin/env python3
"""
Photo palette analysis.

Loads a photograph, extracts its palette and scene metrics, and renders the
result as prose, HTML or a swatch sheet.
Four stages: Load → Extract → Scene Metrics → Render
"""

import json
from dataclasses import dataclass, asdict

import numpy as np
from PIL import Image

from extract_palette import PaletteResult, extract_palette
from palette_settings import PaletteSettings, DEFAULT_SETTINGS
from scene_metrics import (
    SceneMetrics, METRIC_DESCRIPTIONS, scene_metrics_for, group_swatches,
    lightness_order,
)


# =============================================================================
# Constants
# =============================================================================

TARGET_WIDTH = 144  # Area analysis width
SALIENCE_WIDTH = 256  # Salience analysis width

# Image size limits (security: prevent decompression bombs)
MAX_IMAGE_PIXELS = 50_000_000  # 50 megapixels
MAX_IMAGE_DIMENSION = 10_000  # 10k pixels per side


# =============================================================================
# Stage 1: Load
# =============================================================================

@dataclass
class PixelBuffer:
    """A decoded RGBA raster: flat uint8 data, row length width * 4."""
    data: np.ndarray
    width: int
    height: int


def pixel_buffer_from_array(array: np.ndarray) -> PixelBuffer:
    """Build a buffer from an (H, W, 3) or (H, W, 4) uint8 array."""
    array = np.asarray(array, dtype=np.uint8)
    if array.ndim != 3 or array.shape[2] not in (3, 4):
        raise ValueError(f"Expected an (H, W, 3) or (H, W, 4) array, got shape {array.shape}")
    if array.shape[2] == 3:
        alpha = np.full(array.shape[:2] + (1,), 255, dtype=np.uint8)
        array = np.concatenate([array, alpha], axis=2)
    height, width = array.shape[:2]
    return PixelBuffer(data=np.ascontiguousarray(array).reshape(-1), width=width, height=height)


def pixel_buffer_from_image(img: Image.Image) -> PixelBuffer:
    return pixel_buffer_from_array(np.array(img.convert('RGBA')))


def resize_to_width(img: Image.Image, width: int) -> Image.Image:
    """Resize to `width`, keeping the aspect ratio."""
    src_width, src_height = img.size
    height = max(1, round(src_height * width / src_width))
    return img.resize((width, height), Image.Resampling.BILINEAR)


def open_image(image_path: str) -> Image.Image:
    """
    Open and validate an image.

    Raises:
        FileNotFoundError: If image file doesn't exist
        ValueError: If file is not a valid image or exceeds size limits
    """
    try:
        img = Image.open(image_path)
    except FileNotFoundError:
        raise FileNotFoundError(f"Image not found: {image_path}")
    except Exception as e:
        raise ValueError(f"Could not open image: {e}")

    width, height = img.size
    if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
        raise ValueError(
            f"Image dimensions {width}x{height} exceed maximum "
            f"{MAX_IMAGE_DIMENSION}x{MAX_IMAGE_DIMENSION}"
        )
    if width * height > MAX_IMAGE_PIXELS:
        raise ValueError(
            f"Image has {width * height:,} pixels, exceeding maximum {MAX_IMAGE_PIXELS:,}"
        )
    if width == 0 or height == 0:
        raise ValueError(f"Image has no pixels: {width}x{height}")

    try:
        return img.convert('RGBA')
    except OSError as e:
        raise ValueError(f"Could not decode image: {e}")


def load_palette_buffers(image_path: str, area_width: int = TARGET_WIDTH,
                         salience_width: int = SALIENCE_WIDTH) -> tuple[PixelBuffer, PixelBuffer]:
    """Decode an image into the area and salience buffers."""
    img = open_image(image_path)
    area = pixel_buffer_from_image(resize_to_width(img, area_width))
    salience = pixel_buffer_from_image(resize_to_width(img, salience_width))
    return area, salience


# =============================================================================
# Stage 2-3: Extract + Scene Metrics
# =============================================================================

def palette_from_image(image_path: str,
                       settings: PaletteSettings = DEFAULT_SETTINGS) -> PaletteResult:
    area, salience = load_palette_buffers(image_path)
    return extract_palette(
        area.data, area.width, area.height,
        salience.data, salience.width, salience.height,
        settings=settings,
    )


def run_pipeline(image_path: str,
                 settings: PaletteSettings = DEFAULT_SETTINGS) -> tuple[PaletteResult, SceneMetrics]:
    """Run load, extraction and scene metrics.

    Returns:
        Tuple of (palette_result, scene_metrics) for rendering.
    """
    result = palette_from_image(image_path, settings)
    return result, scene_metrics_for(result)


# =============================================================================
# Stage 4: Render
# =============================================================================

def render(result: PaletteResult, metrics: SceneMetrics) -> str:
    """Render a palette result as prose."""
    lines = []

    lines.append(f"PALETTE: {len(result.colors)} colors")
    if not result.colors:
        lines.append("No colors found.")
        return "\n".join(lines)
    lines.append("")

    lines.append("COLORS:")
    lines.append("")
    for i, swatch in enumerate(result.colors):
        role = 'Primary' if i == 0 else ('Salient' if swatch.protected else 'Area')
        rank = f" | Salience rank: {swatch.salience_rank}" if swatch.protected else ""
        lines.append(f"[{role}] {swatch.color.upper()}")
        lines.append(f"  Coverage: {swatch.percentage}% ({swatch.count:,} samples){rank}")
        lines.append(f"  HSL: ({swatch.hue:.0f}°, {swatch.saturation}%, {swatch.lightness}%)")
        lines.append("")

    lines.append("SCENE:")
    lines.append("")
    formatted = metrics.format_metrics()
    for key, (title, _) in METRIC_DESCRIPTIONS.items():
        lines.append(f"  {title + ':':<20} {formatted[key]}")
    lines.append("")

    groups = group_swatches(result.colors)
    lines.append(f"DISTRIBUTION: {len(groups)} groups")
    for group in groups:
        members = ", ".join(f"{s.color.upper()} {s.percentage}%" for s in group)
        lines.append(f"  - {members}")

    return "\n".join(lines)


def text_color_for_background(lightness: float) -> str:
    """Return black or white text color based on background lightness."""
    return "#000" if lightness > 50 else "#fff"


def render_html(result: PaletteResult, metrics: SceneMetrics, image_path: str) -> str:
    """Render a palette result as a standalone HTML report."""
    from html import escape

    safe_path = escape(image_path)

    css = """
        * { box-sizing: border-box; margin: 0; padding: 0; }
        body {
            font-family: system-ui, -apple-system, sans-serif;
            background: #0d0f10;
            color: #f2f2f2;
            line-height: 1.5;
            padding: 2rem;
            max-width: 900px;
            margin: 0 auto;
        }
        h1 { font-size: 1.5rem; margin-bottom: 0.5rem; }
        h2 {
            font-size: 0.8rem;
            text-transform: uppercase;
            letter-spacing: 0.1em;
            color: #b1b4b7;
            margin: 2rem 0 1rem;
        }
        .meta { color: #b1b4b7; font-size: 0.9rem; margin-bottom: 1rem; }
        .palette-strip, .gradient-bar {
            display: flex;
            border-radius: 999px;
            overflow: hidden;
            border: 1px solid rgba(255,255,255,0.12);
        }
        .palette-strip { height: 36px; }
        .gradient-bar { height: 18px; }
        .metrics {
            display: grid;
            grid-template-columns: 1fr auto;
            gap: 0.6rem 1rem;
            padding: 1rem;
            border-radius: 16px;
            border: 1px solid rgba(255,255,255,0.12);
            background: rgba(255,255,255,0.06);
        }
        .metrics .label { color: #b1b4b7; }
        .metrics .value { font-family: monospace; text-align: right; }
        .group { display: flex; flex-wrap: wrap; gap: 0.75rem; }
        .group + .group {
            margin-top: 0.75rem;
            padding-top: 0.75rem;
            border-top: 1px solid rgba(255,255,255,0.12);
        }
        .color-card {
            width: calc(50% - 0.4rem);
            padding: 0.75rem;
            border-radius: 16px;
            border: 1px solid rgba(255,255,255,0.12);
            background: rgba(255,255,255,0.06);
        }
        .color-card .swatch {
            height: 48px;
            border-radius: 12px;
            margin-bottom: 0.5rem;
            display: flex;
            align-items: center;
            justify-content: center;
            font-size: 0.7rem;
        }
        .color-card .hex { font-weight: 600; }
        .color-card .values { font-family: monospace; color: #b1b4b7; font-size: 0.8rem; }
    """

    lines = [
        '<!DOCTYPE html>',
        '<html lang="en">',
        '<head>',
        '  <meta charset="UTF-8">',
        '  <meta name="viewport" content="width=device-width, initial-scale=1.0">',
        f'  <title>Palette: {safe_path}</title>',
        f'  <style>{css}</style>',
        '</head>',
        '<body>',
    ]

    lines.append('<h1>Color data</h1>')
    lines.append(f'<p class="meta">Source: {safe_path}</p>')
    lines.append(f'<p class="meta">{len(result.colors)} colors</p>')

    if result.colors:
        # Scene metrics
        lines.append('<h2>Scene</h2>')
        lines.append('<div class="metrics">')
        formatted = metrics.format_metrics()
        for key, (title, description) in METRIC_DESCRIPTIONS.items():
            lines.append(f'  <div class="label" title="{escape(description)}">{title}</div>')
            lines.append(f'  <div class="value">{formatted[key]}</div>')
        lines.append('</div>')

        # Palette strip
        lines.append('<h2>Palette</h2>')
        lines.append('<div class="palette-strip">')
        for swatch in result.colors:
            lines.append(f'  <div style="background:{swatch.color}; flex:{max(1, swatch.percentage)}"></div>')
        lines.append('</div>')

        # Gradient map
        ordered = [swatch.color for swatch in lightness_order(result.colors)]
        if len(ordered) == 1:
            ordered = ordered * 2
        lines.append('<h2>Gradient map</h2>')
        lines.append(f'<div class="gradient-bar" style="background:linear-gradient(to right, {", ".join(ordered)})"></div>')

        # Distribution groups
        lines.append('<h2>Color distribution</h2>')
        for group in group_swatches(result.colors):
            lines.append('<div class="group">')
            for swatch in group:
                text_color = text_color_for_background(swatch.lightness)
                lines.append('  <div class="color-card">')
                lines.append(f'    <div class="swatch" style="background:{swatch.color}; color:{text_color}">'
                             f'{"salient" if swatch.protected else ""}</div>')
                lines.append(f'    <div class="hex">{swatch.color.upper()}</div>')
                lines.append(f'    <div class="values">Coverage {swatch.percentage}%</div>')
                lines.append(f'    <div class="values">HSL({swatch.hue:.0f}, {swatch.saturation}%, {swatch.lightness}%)</div>')
                lines.append('  </div>')
            lines.append('</div>')

    lines.append('</body>')
    lines.append('</html>')

    return '\n'.join(lines)


def render_swatch_sheet(result: PaletteResult, output_path: str) -> None:
    """
    Save a PNG grid of the palette swatches with their coverage.

    Args:
        result: Palette to draw
        output_path: Path to save the output image
    """
    from PIL import ImageDraw

    swatch_size = 80
    padding = 10
    text_height = 25
    count = max(1, len(result.colors))
    cols = min(count, 7)
    rows = (count + cols - 1) // cols

    img_width = cols * (swatch_size + padding) + padding
    img_height = rows * (swatch_size + text_height + padding) + padding

    img = Image.new('RGB', (img_width, img_height), (240, 240, 240))
    draw = ImageDraw.Draw(img)

    for i, swatch in enumerate(result.colors):
        row = i // cols
        col = i % cols

        x = padding + col * (swatch_size + padding)
        y = padding + row * (swatch_size + text_height + padding)

        draw.rectangle([x, y, x + swatch_size, y + swatch_size], fill=swatch.color)

        text = f"{swatch.percentage}%"
        bbox = draw.textbbox((0, 0), text)
        text_width = bbox[2] - bbox[0]
        text_x = x + (swatch_size - text_width) // 2
        draw.text((text_x, y + swatch_size + 4), text, fill=(0, 0, 0))

    img.save(output_path)


# =============================================================================
# Main Pipeline
# =============================================================================

def analyze_image(image_path: str) -> tuple[str, str]:
    """Run the full analysis pipeline on an image.

    Returns:
        Tuple of (prose_output, html_output)
    """
    result, metrics = run_pipeline(image_path)
    prose = render(result, metrics)
    html = render_html(result, metrics, image_path)
    return prose, html


def main(argv=None):
    import argparse
    import sys
    from pathlib import Path

    parser = argparse.ArgumentParser(
        description='Extract a color palette and scene metrics from a photo.'
    )
    parser.add_argument(
        '--input', '-i',
        required=True,
        help='Path to the image file'
    )
    parser.add_argument(
        '--output', '-o',
        nargs='?',
        const=True,
        default=None,
        help='Write HTML report. Optionally specify path, otherwise auto-names from input.'
    )
    parser.add_argument(
        '--json',
        action='store_true',
        help='Print the palette as JSON instead of prose'
    )
    parser.add_argument(
        '--swatches',
        default=None,
        help='Write a PNG swatch sheet to this path'
    )

    args = parser.parse_args(argv)
    image_path = Path(args.input)

    try:
        result, metrics = run_pipeline(str(image_path))
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error analyzing image: {e}", file=sys.stderr)
        return 1

    if args.json:
        payload = result.to_dict()
        payload['scene'] = asdict(metrics)
        print(json.dumps(payload, indent=2))
    else:
        print(render(result, metrics))

    if args.swatches:
        try:
            render_swatch_sheet(result, args.swatches)
            print(f"\nWrote: {args.swatches}")
        except OSError as e:
            print(f"Error writing swatches: {e}", file=sys.stderr)
            return 1

    if args.output:
        if args.output is True:
            output_path = image_path.with_name(f"{image_path.stem}-palette.html")
        else:
            output_path = Path(args.output)

        try:
            output_path.write_text(render_html(result, metrics, str(image_path)))
            print(f"\nWrote: {output_path}")
        except OSError as e:
            print(f"Error writing output: {e}", file=sys.stderr)
            return 1

    return 0


if __name__ == '__main__':
    raise SystemExit(main())
