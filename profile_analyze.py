#!/usr/bin/env python3
"""Profile the palette pipeline to identify performance bottlenecks."""

import cProfile
import pstats
import io
import sys
import time
from pathlib import Path

from analyze import load_palette_buffers
from clustering import get_samples, assign_samples_to_centers
from extract_palette import (
    cluster_area, compose_centers, build_swatches, merge_low_coverage_swatches,
    normalize_percentages, extract_palette,
)
from palette_settings import DEFAULT_SETTINGS
from salience import analyze_salience
from scene_metrics import get_contrast_metrics, get_scene_metrics


def profile_image(image_path: str, verbose: bool = True):
    """Time each stage of the pipeline for a single image."""
    settings = DEFAULT_SETTINGS

    if verbose:
        print(f"\n{'='*60}")
        print(f"Profiling: {Path(image_path).name}")
        print(f"{'='*60}")

    timings = {}

    # Load
    start = time.perf_counter()
    area, salience_buffer = load_palette_buffers(image_path)
    timings['load'] = time.perf_counter() - start

    # Area clustering
    start = time.perf_counter()
    samples = get_samples(area.data, area.width, area.height, settings.stride)
    area_pass = cluster_area(samples, settings)
    timings['area_clustering'] = time.perf_counter() - start

    if verbose:
        print(f"  Samples: {len(samples):,}")
        print(f"  Coarse buckets: {area_pass.stats.unique_count:,}")

    # Salience
    start = time.perf_counter()
    salience = analyze_salience(salience_buffer.data, salience_buffer.width,
                                salience_buffer.height, area_pass.initial_centers, settings)
    timings['salience'] = time.perf_counter() - start

    if verbose:
        print(f"  Salience candidates: {len(salience.candidates):,}")
        print(f"  Salience entries: {len(salience.entries)}")

    # Composition + assignment + post-processing
    start = time.perf_counter()
    composed = compose_centers([c.center for c in area_pass.clusters], salience.entries,
                               settings.max_colors, settings)
    final = assign_samples_to_centers(samples, composed.centers)
    swatches = build_swatches(final, composed.salience_ranks, len(samples))
    colors = normalize_percentages(merge_low_coverage_swatches(swatches, len(samples), settings))
    timings['compose'] = time.perf_counter() - start

    # Metrics
    start = time.perf_counter()
    luminance_contrast, color_contrast = get_contrast_metrics(samples)
    get_scene_metrics(colors, luminance_contrast, color_contrast)
    timings['metrics'] = time.perf_counter() - start

    total = sum(timings.values())
    timings['total'] = total

    if verbose:
        print(f"\nStage timings:")
        for stage, t in timings.items():
            pct = (t / total * 100) if stage != 'total' else 100
            print(f"  {stage:20s}: {t:6.3f}s ({pct:5.1f}%)")

    return timings, len(colors)


def detailed_profile(image_path: str):
    """Run detailed cProfile on extract_palette (the whole core)."""

    print(f"\n{'='*60}")
    print(f"Detailed profile of extract_palette()")
    print(f"{'='*60}")

    # Decode first (outside profiling)
    area, salience = load_palette_buffers(image_path)

    profiler = cProfile.Profile()
    profiler.enable()
    result = extract_palette(area.data, area.width, area.height,
                             salience.data, salience.width, salience.height)
    profiler.disable()

    stream = io.StringIO()
    stats = pstats.Stats(profiler, stream=stream)
    stats.sort_stats('cumulative')
    stats.print_stats(30)  # Top 30 functions

    print(stream.getvalue())

    return result


def main(argv=None):
    args = sys.argv[1:] if argv is None else argv
    if args:
        images = [Path(arg) for arg in args]
    else:
        images_dir = Path(__file__).parent / "source_images"
        images = sorted(images_dir.glob("*.jpeg")) + sorted(images_dir.glob("*.jpg"))

    if not images:
        print("No images found in source_images/", file=sys.stderr)
        return 1

    print(f"Found {len(images)} test images")

    all_timings = []
    for img in images:
        timings, n_colors = profile_image(str(img))
        all_timings.append((img.name, timings, n_colors))

    # Summary
    print(f"\n{'='*60}")
    print("SUMMARY")
    print(f"{'='*60}")
    print(f"{'Image':<35} {'Colors':>8} {'Salience':>9} {'Total':>8}")
    print("-" * 64)
    for name, timings, n_colors in all_timings:
        print(f"{name:<35} {n_colors:>8} {timings['salience']:>8.3f}s {timings['total']:>7.3f}s")

    detailed_profile(str(images[0]))
    return 0


if __name__ == "__main__":
    sys.exit(main())
