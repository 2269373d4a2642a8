"""
Error taxonomy for the dispatch layer.

Validation and persistence errors are recovered at component boundaries;
dispatch errors surface to the caller of DispatchRouter.dispatch.
"""


class TrackingError(Exception):
    """Base class for all analytics dispatch errors"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TrackingError):
    """Malformed or incomplete event (400 at the relay boundary)"""


class MissingVariantError(TrackingError):
    """An envelope reached the router without an experiment arm"""


class DispatchError(TrackingError):
    """Transport failure on the relay channel"""


class PersistenceError(TrackingError):
    """Corrupt or unreadable stored state"""
