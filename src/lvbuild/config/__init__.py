"""Configuration modules for lvbuild."""

from .release_config import CONFIG_FILE_NAME, ReleaseConfig

__all__ = [
    "CONFIG_FILE_NAME",
    "ReleaseConfig",
]
