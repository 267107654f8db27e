from .event import Event
from .place import Place
from .digest import Digest

__all__ = [
    "Event",
    "Place",
    "Digest",
]
