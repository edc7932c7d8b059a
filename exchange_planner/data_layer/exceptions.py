"""Custom exceptions for the exchange planner."""

from typing import Iterable


class ConfigurationError(Exception):
    """Raised when the bucket catalog or policy tables are structurally unusable.

    Configuration errors are fatal: the engine never returns a partial plan
    and never substitutes defaults for missing structure.
    """


class MissingBucketFamilyError(ConfigurationError):
    """Raised when a required bucket family is absent from the catalog."""

    def __init__(self, system_id: str, missing_families: Iterable[str]):
        """Initialize exception with the system and the missing families.

        Args:
            system_id: Exchange system whose catalog was checked
            missing_families: Family names that have no group bucket
        """
        self.system_id = system_id
        self.missing_families = sorted(missing_families)
        super().__init__(
            f"Missing bucket family for {system_id}: {', '.join(self.missing_families)}"
        )


class CatalogNotFoundError(ConfigurationError):
    """Raised when no bucket profiles exist for the requested exchange system."""

    def __init__(self, system_id: str):
        self.system_id = system_id
        super().__init__(
            f"No bucket profile version found for {system_id}. "
            "Run the catalog sync/profile-build step for this system first."
        )


class UnknownBucketFamilyError(ConfigurationError):
    """Raised when a group bucket's legacy code does not resolve to a family."""

    def __init__(self, bucket_key: str, legacy_code: str):
        self.bucket_key = bucket_key
        self.legacy_code = legacy_code
        super().__init__(
            f"Group bucket {bucket_key} has unknown family code '{legacy_code}'"
        )
