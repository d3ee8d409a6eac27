"""Error taxonomy for script generation.

Recoverable failures (a detector, checker or output line-processor raising) are
caught where they happen and never surface as one of these types.
"""

from __future__ import annotations

from collections.abc import Iterable


class BuildError(Exception):
    """Base class for failures that terminate a build."""

    exit_code = 1


class UnsupportedPlatformError(BuildError):
    exit_code = 2


class UnsupportedVersionError(BuildError):
    exit_code = 3

    def __init__(self, platform: str, version: str | None, supported: Iterable[str] = ()) -> None:
        self.platform = platform
        self.version = version
        self.supported = list(supported)
        msg = f"Platform '{platform}' version '{version}' is unsupported."
        if self.supported:
            msg += f" Supported versions: {', '.join(self.supported)}"
        super().__init__(msg)


class InvalidUsageError(BuildError):
    exit_code = 4


class ConfigurationMissingError(BuildError):
    exit_code = 5

    def __init__(self, setting: str, reason: str = "") -> None:
        self.setting = setting
        msg = f"Setting '{setting}' is required."
        if reason:
            msg += f" {reason}"
        super().__init__(msg)
