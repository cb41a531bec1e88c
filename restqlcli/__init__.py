"""restqlcli package."""

from .api import build, run
from .core.version import __version__

__all__ = ["build", "run", "__version__"]
