"""Configuration dataclasses for panelslicer.

Each concern gets its own dataclass:
- ScanConfig: local color segmentation and gutter splitting
- RecognizerConfig: preparing images for, and reading results from, an
  external vision recognizer
- BatchConfig: orchestrator concurrency and pause polling

Configurations can be loaded from YAML files and overridden from the
environment (PANELSLICER_* variables).
"""

from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

log = logging.getLogger("Config")

MAX_CONCURRENCY = 5

DEFAULT_PROMPT = """Identify ALL bounding boxes for distinct elements in this image.

Rules:
- Comics/Manga: Separate each panel (look for gutters)
- Sprites: Box each sprite individually
- Tight fit: Exclude whitespace
- Output: {"boxes":[[ymin,xmin,ymax,xmax],...]} (normalized 0-1)

Return ONLY valid JSON, no markdown."""


class _DictMixin:
    """Shared copy/serialization helpers for the config dataclasses."""

    def copy(self):
        """Return a deep copy of this configuration."""
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]):
        """Create from dictionary, ignoring unknown keys."""
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class ScanConfig(_DictMixin):
    """Parameters of the local scan (segmentation + gutter split).

    Pixel parameters are absolute; fractional ones are relative to the
    smaller image side.
    """

    color_threshold: int = 20       # Distance from background color (also split sensitivity 1-100)
    min_threshold: int = 10         # Floor applied to color_threshold
    alpha_floor: int = 10           # Pixels below this alpha are transparent

    # Component size filter
    min_dimension_px: int = 64
    min_dimension_frac: float = 0.05

    # Merging
    merge_buffer: float = 0.005     # Normalized slack for near-touching boxes

    # Gutter splitting
    leaf_size_px: int = 80          # Rects thinner than this are never split
    min_side_px: int = 30           # Minimum thickness of each side of a cut
    flat_energy: float = 5.0        # Noise floor of the energy profile

    debug: bool = False

    @property
    def effective_threshold(self) -> int:
        return max(self.min_threshold, self.color_threshold)


@dataclass
class RecognizerConfig(_DictMixin):
    """Parameters for the external recognizer path."""

    max_upload_dim: int = 768       # Larger side of the transmitted image
    jpeg_quality: int = 65
    min_size_px: int = 64           # Boxes at or below this size are dropped
    system_prompt: str = DEFAULT_PROMPT


@dataclass
class BatchConfig(_DictMixin):
    """Orchestrator parameters."""

    concurrency: int = 1
    pause_poll_interval: float = 0.2  # Seconds between pause checks


@dataclass
class AppConfig:
    """Top-level configuration grouping every concern."""

    scan: ScanConfig = field(default_factory=ScanConfig)
    recognizer: RecognizerConfig = field(default_factory=RecognizerConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)

    def copy(self) -> "AppConfig":
        """Return a deep copy of this configuration."""
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scan": self.scan.to_dict(),
            "recognizer": self.recognizer.to_dict(),
            "batch": self.batch.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AppConfig":
        """Create from a nested dictionary (missing sections use defaults)."""
        data = data or {}
        return cls(
            scan=ScanConfig.from_dict(data.get("scan") or {}),
            recognizer=RecognizerConfig.from_dict(data.get("recognizer") or {}),
            batch=BatchConfig.from_dict(data.get("batch") or {}),
        )


# Preset configurations for different source material
PRESETS: Dict[str, AppConfig] = {
    "Comics": AppConfig(
        scan=ScanConfig(
            color_threshold=20,
            min_dimension_px=64,
            merge_buffer=0.005,
        ),
        batch=BatchConfig(concurrency=2),
    ),
    "Sprites": AppConfig(
        scan=ScanConfig(
            color_threshold=12,
            min_dimension_px=16,
            min_dimension_frac=0.01,
            merge_buffer=0.002,
        ),
        recognizer=RecognizerConfig(min_size_px=16),
        batch=BatchConfig(concurrency=3),
    ),
    "Screenshots": AppConfig(
        scan=ScanConfig(
            color_threshold=40,
            min_dimension_px=96,
            flat_energy=3.0,
        ),
        recognizer=RecognizerConfig(max_upload_dim=1024),
    ),
}


def get_preset(name: str) -> AppConfig:
    """Return a copy of a preset, matched case-insensitively."""
    for key, preset in PRESETS.items():
        if key.lower() == name.strip().lower():
            return preset.copy()
    raise KeyError(f"Unknown preset {name!r} (available: {', '.join(PRESETS)})")


def load_config(path: Union[str, Path], base: Optional[AppConfig] = None) -> AppConfig:
    """Load a YAML configuration file.

    The file holds optional ``scan``, ``recognizer`` and ``batch`` sections.
    Values override those of ``base`` (defaults when omitted).

    Args:
        path: YAML file path
        base: Configuration to start from

    Returns:
        New configuration
    """
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level, got {type(data).__name__}")

    merged = (base or AppConfig()).to_dict()
    for section in ("scan", "recognizer", "batch"):
        values = data.get(section) or {}
        if not isinstance(values, dict):
            raise ValueError(f"{path}: section {section!r} must be a mapping, got {type(values).__name__}")
        unknown = set(values) - set(merged[section])
        if unknown:
            log.warning(f"{path}: ignoring unknown {section} keys {sorted(unknown)}")
        merged[section].update(values)

    log.info(f"Config loaded from {Path(path).resolve()} | sections={sorted(data.keys())}")
    return AppConfig.from_dict(merged)


def apply_env_overrides(
    config: AppConfig,
    environ: Optional[Mapping[str, str]] = None,
) -> AppConfig:
    """Apply PANELSLICER_* environment overrides.

    - PANELSLICER_PRESET: start from a named preset
    - PANELSLICER_THRESHOLD: scan color threshold
    - PANELSLICER_CONCURRENCY: batch concurrency

    Returns:
        New configuration (the input is left untouched)
    """
    env = os.environ if environ is None else environ
    result = config.copy()

    preset = env.get("PANELSLICER_PRESET")
    if preset:
        result = get_preset(preset)

    threshold = env.get("PANELSLICER_THRESHOLD")
    if threshold:
        result.scan.color_threshold = int(threshold)

    concurrency = env.get("PANELSLICER_CONCURRENCY")
    if concurrency:
        result.batch.concurrency = int(concurrency)

    return result
