"""Platform services package."""

from grantledger.services.platform.interface import PlatformServices
from grantledger.services.platform.local import (
    FileChooser,
    LocalPlatform,
    UnavailablePlatform,
)

__all__ = [
    "FileChooser",
    "LocalPlatform",
    "PlatformServices",
    "UnavailablePlatform",
]
