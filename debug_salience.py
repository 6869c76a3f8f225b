#!/usr/bin/env python3
"""Debug script to inspect the salience pass and center composition."""

import argparse
import sys
from pathlib import Path

import numpy as np

from analyze import load_palette_buffers
from clustering import get_samples
from color_space import rgb_to_hsl, to_hex
from extract_palette import cluster_area, compose_centers, select_salience_by_hue_diversity
from palette_settings import DEFAULT_SETTINGS
from salience import SalienceAnalysis, analyze_salience


def describe_center(center: tuple) -> str:
    hue, lightness, saturation = rgb_to_hsl(*center)
    return f"{to_hex(center)} HSL({hue:.0f}°, {saturation}%, {lightness}%)"


def summarize_candidates(analysis: SalienceAnalysis):
    """Print score statistics for the retained salience candidates."""
    salience = analysis.salience_field
    scores = analysis.candidates.scores

    print(f"\n  Sampled pixels: {len(salience.scores):,} ({salience.shape[1]}x{salience.shape[0]})")
    print(f"  Valid salient pixels: {int(salience.valid.sum()):,}")
    print(f"  Candidates kept: {len(scores):,}")
    if len(scores):
        print(f"    Max score: {scores.max():.4f}")
        print(f"    Mean score: {scores.mean():.4f}")
        print(f"    Median score: {np.median(scores):.4f}")
        print(f"    Min kept score: {scores.min():.4f}")


def visualize_salience(analysis: SalienceAnalysis, output_path: str):
    """
    Save a per-pixel salience heat-map next to the candidate colors.

    Invalid pixels are drawn at zero.
    """
    import matplotlib.pyplot as plt

    salience = analysis.salience_field
    rows, cols = salience.shape
    heat = np.where(salience.valid, salience.scores, 0.0).reshape(rows, cols)

    fig, axes = plt.subplots(1, 2, figsize=(14, 6))

    ax = axes[0]
    image = ax.imshow(heat, cmap='magma')
    ax.set_title('Salience (saturation × local contrast)')
    ax.axis('off')
    fig.colorbar(image, ax=ax, fraction=0.046)

    ax = axes[1]
    entries = analysis.entries
    if entries:
        colors = [np.array(entry.center) / 255.0 for entry in entries]
        labels = [
            f"{to_hex(entry.center)}{' (warm)' if entry.force_warm else ''}"
            for entry in entries
        ]
        ax.barh(range(len(entries)), [entry.score for entry in entries], color=colors)
        ax.set_yticks(range(len(entries)))
        ax.set_yticklabels(labels)
        ax.invert_yaxis()
    ax.set_xlabel('Aggregated salience')
    ax.set_title('Salience entries')

    plt.tight_layout()
    plt.savefig(output_path, dpi=150)
    plt.close()
    print(f"Saved salience visualization to {output_path}")


def main(argv=None):
    parser = argparse.ArgumentParser(description='Inspect the salience pass for one image.')
    parser.add_argument('image', help='Path to the image file')
    parser.add_argument('--heatmap', default=None, help='Write a salience heat-map PNG')
    args = parser.parse_args(argv)

    image_path = Path(args.image)
    if not image_path.exists():
        print(f"Error: File not found: {image_path}", file=sys.stderr)
        return 1

    settings = DEFAULT_SETTINGS

    print(f"Analyzing: {image_path}")
    print("=" * 60)

    area, salience_buffer = load_palette_buffers(str(image_path))
    samples = get_samples(area.data, area.width, area.height, settings.stride)
    area_pass = cluster_area(samples, settings)
    initial_centers = area_pass.initial_centers
    clusters = area_pass.clusters

    print(f"\nArea seeds ({len(initial_centers)}):")
    for center in initial_centers:
        print(f"  {describe_center(center)}")

    print(f"\nArea clusters ({len(clusters)}):")
    for cluster in clusters:
        print(f"  {describe_center(cluster.center)} - {cluster.count:,} samples")

    analysis = analyze_salience(salience_buffer.data, salience_buffer.width,
                                salience_buffer.height, initial_centers, settings)
    summarize_candidates(analysis)

    print(f"\nRanked salience centers ({len(analysis.ranked)}):")
    for entry in analysis.ranked:
        warm = " warm" if entry.is_warm else ""
        print(f"  {describe_center(entry.center)} score={entry.score:.3f}{warm}")

    if analysis.warm_candidate is not None:
        print(f"\nWarm rescue: {describe_center(analysis.warm_candidate.center)} "
              f"score={analysis.warm_candidate.score:.3f}")
        inserted = analysis.entries and analysis.entries[0] is analysis.warm_candidate
        print(f"  {'Inserted at front' if inserted else 'Skipped (similar warm center exists)'}")
    else:
        print("\nWarm rescue: none")

    selected = select_salience_by_hue_diversity(analysis.entries, settings.salience_slots, settings)
    print(f"\nHue-diverse selection ({len(selected)}):")
    for entry in selected:
        print(f"  {describe_center(entry.center)} score={entry.score:.3f}")

    composed = compose_centers([c.center for c in clusters], analysis.entries,
                               settings.max_colors, settings)
    print("\n" + "=" * 60)
    print("COMPOSED CENTERS")
    print("=" * 60)
    for center, rank in zip(composed.centers, composed.salience_ranks):
        source = "area" if rank is None else f"salience #{rank}"
        print(f"  {describe_center(center)} [{source}]")

    if args.heatmap:
        visualize_salience(analysis, args.heatmap)

    return 0


if __name__ == "__main__":
    sys.exit(main())
