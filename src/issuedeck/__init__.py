"""issuedeck: local-first issue tracker data layer with convention-based project discovery."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("issuedeck")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from issuedeck.core import DataController, Issue, Tag

__all__ = ["DataController", "Issue", "Tag", "__version__"]
