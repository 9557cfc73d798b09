"""Exception types raised by Command Tower services."""


class CommandTowerError(Exception):
    """Base class for all Command Tower errors."""
    pass


class CollaboratorError(CommandTowerError):
    """Raised when an external service (catalog, decklist, pricing) fails."""
    pass


class NotFoundError(CollaboratorError):
    """Raised when a service answered but found nothing matching."""
    pass


class CommanderNotFoundError(NotFoundError):
    """Raised when no commander matches the colour selection and query."""
    pass


class DecklistNotFoundError(NotFoundError):
    """Raised when EDHREC has no average deck for a commander."""
    pass


class ScryfallAPIError(CollaboratorError):
    """Raised when Scryfall API calls fail."""
    pass


class EDHRECAPIError(CollaboratorError):
    """Raised when EDHREC API calls fail."""
    pass
