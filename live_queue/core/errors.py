class LiveQueueError(Exception):
    """Base class for all application errors."""


class RenderError(LiveQueueError):
    """Raised when a template cannot be rendered."""


class PersistenceError(LiveQueueError):
    """Raised when the state file cannot be written."""
