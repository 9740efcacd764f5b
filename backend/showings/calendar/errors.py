"""Calendar integration errors.

Neither error ever reaches a booking request: the sync worker catches them,
records ``calendar_sync_error`` where appropriate, and moves on.
"""


class SyncError(Exception):
    """An external calendar call failed."""

    def __init__(self, operation: str, detail: str = "") -> None:
        message = f"Calendar {operation} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.operation = operation


class CredentialMissingError(Exception):
    """The resource owner has no usable calendar credential."""

    def __init__(self, user_id: object) -> None:
        super().__init__(f"No calendar credential for user {user_id}")
        self.user_id = user_id
