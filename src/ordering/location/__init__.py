"""Location directory factory.

get_directory() / set_directory() swap the implementation; the in-memory
directory is the default until a deployment installs its own.
"""

from ordering.location.fake_adapter import InMemoryLocationDirectory
from ordering.location.port import LocationDirectory

_current_directory: LocationDirectory | None = None


def get_directory() -> LocationDirectory:
    global _current_directory
    if _current_directory is None:
        _current_directory = InMemoryLocationDirectory()
    return _current_directory


def set_directory(directory: LocationDirectory) -> None:
    global _current_directory
    _current_directory = directory


def reset_directory() -> None:
    global _current_directory
    _current_directory = None
