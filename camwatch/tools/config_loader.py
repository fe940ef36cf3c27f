"""
Configuration loader for worker profiles and environment variables.
"""

import os
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any, Dict, Optional
import yaml


@dataclass
class WorkerConfig:
    """
    Operator-tunable constants for one maintenance pass.

    Attributes:
        mobile_lifetime_hours: TTL given to mobile reports without ``expiresAt``
        other_lifetime_hours: TTL given to other hazards without ``expiresAt``
        hotspot_radius_m: Neighbourhood radius for clustering (inclusive)
        hotspot_window_days: Lookback window for clustering and delayed deletion
        hotspot_threshold: Reports needed within the radius to form a hotspot
        preserve_hotspot_days: Retention granted on promotion and on hotspot expiry
        fixed_remove_threshold: Count at or below which a fixed camera is hidden
        write_batch_size: Cap on operations per bulk write (None = unbounded)
        spatial_index: Neighbour search, "h3" or "scan"
        summary_precision: Decimal places of the hotspot summary grid key
        records_collection: Record collection name
        reports_collection: Raw-report collection name (None = not used)
        summaries_collection: Hotspot summary collection name
    """
    mobile_lifetime_hours: float = 10
    other_lifetime_hours: float = 10
    hotspot_radius_m: float = 200
    hotspot_window_days: float = 10
    hotspot_threshold: int = 3
    preserve_hotspot_days: float = 10
    fixed_remove_threshold: int = -3
    write_batch_size: Optional[int] = None
    spatial_index: str = "h3"
    summary_precision: int = 4
    records_collection: str = "cameras"
    reports_collection: Optional[str] = "camera_reports"
    summaries_collection: str = "camera_hotspots"

    def validate(self) -> "WorkerConfig":
        """
        Check value ranges.

        Raises:
            ValueError: Listing every invalid setting
        """
        problems = []
        for name in ("mobile_lifetime_hours", "other_lifetime_hours", "hotspot_radius_m",
                     "hotspot_window_days", "preserve_hotspot_days"):
            if getattr(self, name) <= 0:
                problems.append(f"{name} must be > 0 (got {getattr(self, name)})")
        if self.hotspot_threshold < 1:
            problems.append(f"hotspot_threshold must be >= 1 (got {self.hotspot_threshold})")
        if self.fixed_remove_threshold >= 0:
            problems.append(
                f"fixed_remove_threshold must be negative (got {self.fixed_remove_threshold})"
            )
        if self.write_batch_size is not None and self.write_batch_size < 1:
            problems.append(f"write_batch_size must be >= 1 or null (got {self.write_batch_size})")
        if self.spatial_index not in ("h3", "scan"):
            problems.append(f"spatial_index must be 'h3' or 'scan' (got {self.spatial_index!r})")
        if not 0 <= self.summary_precision <= 10:
            problems.append(f"summary_precision must be in [0, 10] (got {self.summary_precision})")

        if problems:
            raise ValueError("Invalid worker configuration:\n  " + "\n  ".join(problems))
        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "WorkerConfig":
        """Build a config from a mapping; missing keys keep their defaults."""
        data = data or {}
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**data).validate()


class ConfigLoader:
    """Load worker profiles from YAML files and environment."""

    # Installed with the package as package data.
    CONFIG_DIR = Path(__file__).parent.parent / "configs"
    DEFAULT_PROFILE = "default"

    @classmethod
    def load_profile(cls, profile_name: str = DEFAULT_PROFILE) -> WorkerConfig:
        """
        Load a worker profile.

        Args:
            profile_name: Name of the profile (default, compact)

        Returns:
            Validated WorkerConfig

        Raises:
            FileNotFoundError: If profile doesn't exist
            ValueError: If the profile has unknown keys or invalid values
        """
        profile_path = cls.CONFIG_DIR / f"{profile_name}.yaml"

        if not profile_path.exists():
            available = sorted(f.stem for f in cls.CONFIG_DIR.glob("*.yaml"))
            raise FileNotFoundError(
                f"Profile '{profile_name}' not found. Available profiles: {', '.join(available)}"
            )

        with open(profile_path, "r") as f:
            return WorkerConfig.from_dict(yaml.safe_load(f))

    @classmethod
    def get_profile_from_env(cls) -> Optional[str]:
        """Get profile name from CAMWATCH_PROFILE environment variable."""
        return os.getenv("CAMWATCH_PROFILE")

    @classmethod
    def load_default_or_env_profile(cls) -> WorkerConfig:
        profile = cls.get_profile_from_env() or cls.DEFAULT_PROFILE
        return cls.load_profile(profile)


def get_config(profile_name: Optional[str] = None) -> WorkerConfig:
    """Convenience function to get the active configuration."""
    if profile_name:
        return ConfigLoader.load_profile(profile_name)
    return ConfigLoader.load_default_or_env_profile()
