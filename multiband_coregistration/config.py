"""
Configuration module for band co-registration.

Handles loading and validation of alignment settings from YAML files.
"""

import logging
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import List

import yaml

from .grouping import REFERENCE_TOLERANCE
from .refinement import ECC_EPSILON, ECC_GAUSS_FILTER_SIZE, ECC_MAX_ITERATIONS
from .transforms import TRANSLATION_THRESHOLD

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = ['.tif', '.tiff', '.jpg', '.jpeg']


@dataclass
class AlignmentConfig:
    """
    Settings of the co-registration pipeline.

    Attributes:
        reference_tolerance: Max |relative offset| of the reference band
        translation_threshold: Offsets above this become a metadata translation
        ecc_enabled: Run the photometric refinement stage
        ecc_max_iterations: Iteration cap of the ECC search
        ecc_epsilon: Minimum correlation improvement of the ECC search
        ecc_gauss_filter_size: Gaussian pre-filter size used by ECC (odd)
        extensions: File suffixes picked up from the input directory
        workers: Threads used for the non-reference bands of a group
        write_report: Write the JSON transform report
        report_name: File name of the transform report
        compute_quality: Compare every aligned band with its reference
    """
    reference_tolerance: float = REFERENCE_TOLERANCE
    translation_threshold: float = TRANSLATION_THRESHOLD
    ecc_enabled: bool = True
    ecc_max_iterations: int = ECC_MAX_ITERATIONS
    ecc_epsilon: float = ECC_EPSILON
    ecc_gauss_filter_size: int = ECC_GAUSS_FILTER_SIZE
    extensions: List[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    workers: int = 1
    write_report: bool = True
    report_name: str = "transforms.json"
    compute_quality: bool = False

    def __post_init__(self):
        self.extensions = [
            ext.lower() if ext.startswith('.') else f".{ext.lower()}"
            for ext in self.extensions
        ]
        self.validate()

    def validate(self) -> None:
        """Raise ValueError on settings the pipeline cannot run with."""
        if self.workers < 1:
            raise ValueError(f"workers must be >= 1, got {self.workers}")
        if self.ecc_max_iterations < 1:
            raise ValueError(f"ecc_max_iterations must be >= 1, got {self.ecc_max_iterations}")
        if self.ecc_epsilon <= 0:
            raise ValueError(f"ecc_epsilon must be positive, got {self.ecc_epsilon}")
        if self.ecc_gauss_filter_size < 1 or self.ecc_gauss_filter_size % 2 == 0:
            raise ValueError(
                f"ecc_gauss_filter_size must be a positive odd number, got {self.ecc_gauss_filter_size}"
            )
        if self.reference_tolerance <= 0:
            raise ValueError(f"reference_tolerance must be positive, got {self.reference_tolerance}")
        if self.translation_threshold < 0:
            raise ValueError(f"translation_threshold must be >= 0, got {self.translation_threshold}")
        if not self.extensions:
            raise ValueError("extensions must not be empty")

    @classmethod
    def from_yaml(cls, config_path: str) -> "AlignmentConfig":
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            AlignmentConfig with the loaded settings; missing keys keep
            their defaults

        Example YAML structure:
            ecc_enabled: true
            ecc_max_iterations: 50
            ecc_epsilon: 0.001
            extensions: [".tif", ".jpg"]
            workers: 4
            compute_quality: true
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Configuration file must contain a mapping: {config_path}")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")

        logger.info(f"Loading configuration from {config_path}")
        return cls(**data)

    def to_yaml(self, config_path: str) -> None:
        """Save configuration to a YAML file."""
        with open(config_path, 'w') as f:
            yaml.dump(asdict(self), f, default_flow_style=False, sort_keys=False)

        logger.info(f"Configuration saved to {config_path}")
