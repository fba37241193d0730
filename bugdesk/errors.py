"""bugdesk error hierarchy."""


class BugdeskError(Exception):
    """Base error for all bugdesk operations."""


class StorageError(BugdeskError):
    """The persisted snapshot could not be read."""


class PermissionDenied(BugdeskError):
    """
    Raised by the calling layer when the acting user lacks a permission.

    The store never raises this: it performs whatever it is asked to do.
    `message` is the blocking text shown to the user before the operation
    is abandoned.
    """

    def __init__(self, resource: str, action: str, message: str):
        super().__init__(message)
        self.resource = resource
        self.action = action
        self.message = message
