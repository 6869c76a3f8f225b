"""
Tunable constants for palette extraction.

Module-level constants are the defaults; PaletteSettings bundles them into a
single immutable value that every pipeline stage receives.
"""

from dataclasses import dataclass


# =============================================================================
# Constants
# =============================================================================

# Palette slots
AREA_SLOTS = 5
SALIENCE_SLOTS = 2
SAMPLE_STRIDE = 1

# Seeding and k-means
SEED_DISTANCE = 60  # RGB distance between vivid seeds (/1.5 for bucket seeds)
KM_ITERATIONS = 6  # Fixed Lloyd iterations, no convergence check
VIVID_SATURATION_MIN = 40
VIVID_CANDIDATE_LIMIT = 120

# Salience
SALIENCE_SATURATION_MIN = 10
SALIENCE_CONTRAST_MIN = 0.03
SALIENCE_SAMPLE_LIMIT = 4000
SALIENCE_CANDIDATE_LIMIT = 12
SALIENCE_HUE_SEPARATION = 60  # Degrees that earn the hue-diversity bonus

# Center composition
DEDUPE_DISTANCE = 45
DEDUPE_HUE_DISTANCE = 18

# Warm rescue
WARM_HUE_MIN = 20
WARM_HUE_MAX = 70
WARM_FORCE_HUE_DISTANCE = 40
WARM_BIN_SIZE = 10

# Low-coverage merge
MERGE_COVERAGE_THRESHOLD = 4  # Percent
MERGE_HUE_THRESHOLD = 10
MERGE_LIGHTNESS_THRESHOLD = 6
DARK_LIGHTNESS = 8  # Below this on both sides hue is meaningless

# Swatch grouping (display families)
GROUP_HUE_THRESHOLD = 14
GROUP_LIGHTNESS_THRESHOLD = 8
GROUP_LOOSE_HUE_THRESHOLD = 22
GROUP_LOOSE_LIGHTNESS_THRESHOLD = 4


@dataclass(frozen=True)
class PaletteSettings:
    """Immutable bundle of every threshold the pipeline reads."""
    area_slots: int = AREA_SLOTS
    salience_slots: int = SALIENCE_SLOTS
    sample_stride: int = SAMPLE_STRIDE
    seed_distance: float = SEED_DISTANCE
    km_iterations: int = KM_ITERATIONS
    vivid_saturation_min: int = VIVID_SATURATION_MIN
    vivid_candidate_limit: int = VIVID_CANDIDATE_LIMIT
    salience_saturation_min: int = SALIENCE_SATURATION_MIN
    salience_contrast_min: float = SALIENCE_CONTRAST_MIN
    salience_sample_limit: int = SALIENCE_SAMPLE_LIMIT
    salience_candidate_limit: int = SALIENCE_CANDIDATE_LIMIT
    salience_hue_separation: float = SALIENCE_HUE_SEPARATION
    dedupe_distance: float = DEDUPE_DISTANCE
    dedupe_hue_distance: float = DEDUPE_HUE_DISTANCE
    warm_hue_min: float = WARM_HUE_MIN
    warm_hue_max: float = WARM_HUE_MAX
    warm_force_hue_distance: float = WARM_FORCE_HUE_DISTANCE
    warm_bin_size: float = WARM_BIN_SIZE
    merge_coverage_threshold: float = MERGE_COVERAGE_THRESHOLD
    merge_hue_threshold: float = MERGE_HUE_THRESHOLD
    merge_lightness_threshold: float = MERGE_LIGHTNESS_THRESHOLD
    dark_lightness: float = DARK_LIGHTNESS

    def __post_init__(self):
        if self.area_slots < 1:
            raise ValueError(f"area_slots must be at least 1, got {self.area_slots}")
        if self.salience_slots < 0:
            raise ValueError(f"salience_slots must be non-negative, got {self.salience_slots}")
        if self.km_iterations < 1:
            raise ValueError(f"km_iterations must be at least 1, got {self.km_iterations}")
        if self.salience_sample_limit < 0:
            raise ValueError(
                f"salience_sample_limit must be non-negative, got {self.salience_sample_limit}"
            )
        if self.warm_bin_size <= 0:
            raise ValueError(f"warm_bin_size must be positive, got {self.warm_bin_size}")

    @property
    def max_colors(self) -> int:
        return self.area_slots + self.salience_slots

    @property
    def stride(self) -> int:
        """Sampling stride, never below 1."""
        return max(1, int(self.sample_stride))

    @property
    def bucket_seed_distance(self) -> float:
        """Looser distance used for bucket, salience and fallback seeds."""
        return self.seed_distance / 1.5

    def is_warm_hue(self, hue: float) -> bool:
        return self.warm_hue_min <= hue <= self.warm_hue_max


DEFAULT_SETTINGS = PaletteSettings()
