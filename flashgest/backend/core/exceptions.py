"""
Exceptions raised by flashgest.
"""


class FlashgestError(Exception):
    """Base exception for all flashgest errors."""
    pass


class BucketInvariantError(FlashgestError):
    """Raised when a card is found in more than one bucket."""
    pass


class CardNotFoundError(FlashgestError):
    """Raised when a card id is not in the card collection."""
    pass


class GestureUnavailableError(FlashgestError):
    """Raised when the camera or the hand landmark model cannot be acquired."""
    pass
