"""Exception types raised by draftstream."""


class DraftstreamError(Exception):
    """Base class for all draftstream errors."""


class StoreError(DraftstreamError):
    """A persistent store could not complete a read or write."""


class GenerationError(DraftstreamError):
    """The text generator failed to open or continue a stream."""


class ConversationError(DraftstreamError):
    """A conversation was mutated in a way its invariants forbid."""
