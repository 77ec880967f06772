"""Domain exceptions shared by every layer."""


class TaaltuigError(Exception):
    """Base class for errors raised by the scheduling core."""


class ConfigurationError(TaaltuigError):
    """Scheduling configuration is missing or malformed. Never retried."""


class ItemNotFoundError(TaaltuigError):
    """A review item id is not present in the store (or not owned by the user)."""

    def __init__(self, review_item_id: str):
        super().__init__(f"Review item not found: {review_item_id}")
        self.review_item_id = review_item_id


class StoreClosedError(TaaltuigError):
    """A store handle was used outside its open/close lifecycle."""
