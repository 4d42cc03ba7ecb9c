import os
from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class DetectionStrategy:
    """Threshold set for one pass of the contour detector."""
    name: str
    saturation_thresh: int
    value_thresh: int
    canny_low: int
    canny_high: int
    morph_kernel: int


# Ordered from strict white-card detection to relaxed, shadow-tolerant detection
DEFAULT_STRATEGIES: Tuple[DetectionStrategy, ...] = (
    DetectionStrategy("strict", 60, 140, 30, 100, 5),
    DetectionStrategy("relaxed", 80, 120, 40, 120, 7),
    DetectionStrategy("shadow", 100, 100, 50, 150, 9),
)


@dataclass(frozen=True)
class DetectorConfig:
    max_side: int = 1200
    strategies: Tuple[DetectionStrategy, ...] = DEFAULT_STRATEGIES
    min_area_ratio: float = 0.005
    max_area_ratio: float = 0.50
    min_fill_ratio: float = 0.60
    aspect_range: Tuple[float, float] = (1.1, 2.2)
    min_saturation_std: float = 8.0
    min_visible_ratio: float = 0.85
    dedup_overlap: float = 0.4
    blur_kernel: int = 5
    reading_rows: int = 6


DEFAULT_DETECTOR_CONFIG = DetectorConfig()

CARD_WIDTH = 200
CARD_HEIGHT = 300


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    port: int = 8000
    classifier_model_path: str = "./models/classifier.keras"
    synthetic_mode: bool = False
    synthetic_seed: int = 0
    jpeg_quality: int = 90
    detector: DetectorConfig = field(default_factory=DetectorConfig)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            port=int(os.environ.get("PORT", 8000)),
            classifier_model_path=os.environ.get("SETSCAN_CLASSIFIER_MODEL", cls.classifier_model_path),
            synthetic_mode=_env_flag("SETSCAN_SYNTHETIC"),
            synthetic_seed=int(os.environ.get("SETSCAN_SYNTHETIC_SEED", 0)),
            jpeg_quality=int(os.environ.get("SETSCAN_JPEG_QUALITY", 90)),
        )
