"""Remote board backends."""

from .protocol import BoardProvider
from .trello import TrelloProvider

__all__ = [
    "BoardProvider",
    "TrelloProvider",
]
