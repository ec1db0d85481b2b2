"""Configuration for review analysis."""

from dataclasses import dataclass
from typing import Tuple

DEFAULT_RESOLUTION_EXTENSIONS: Tuple[str, ...] = ('.ts', '.tsx', '.js', '.jsx')
DEFAULT_SOURCE_EXTENSIONS: Tuple[str, ...] = ('.ts', '.tsx', '.js', '.jsx', '.mjs', '.cjs')


@dataclass
class ReviewConfiguration:
    """Configuration for diff ordering, symbol extraction and usage scanning."""
    repo_path: str = "."
    batch_size: int = 10  # Files extracted concurrently per batch
    scan_workers: int = 8  # Worker threads for the usage scan
    resolution_extensions: Tuple[str, ...] = DEFAULT_RESOLUTION_EXTENSIONS
    source_extensions: Tuple[str, ...] = DEFAULT_SOURCE_EXTENSIONS
    high_usage_threshold: int = 10
    medium_usage_threshold: int = 3

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.scan_workers < 1:
            raise ValueError(f"scan_workers must be positive, got {self.scan_workers}")
        if self.medium_usage_threshold > self.high_usage_threshold:
            raise ValueError(
                "medium_usage_threshold must not exceed high_usage_threshold "
                f"({self.medium_usage_threshold} > {self.high_usage_threshold})"
            )
        self.resolution_extensions = tuple(self.resolution_extensions)
        self.source_extensions = tuple(self.source_extensions)

    def is_source_file(self, path: str) -> bool:
        """Check whether a path has one of the analysed source extensions."""
        return path.lower().endswith(self.source_extensions)
