"""Domain errors surfaced by the session service."""


class SessionServiceError(Exception):
    """Base error with a client-facing kind and HTTP status."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(SessionServiceError):
    """A session or restaurant does not exist."""

    kind = "not_found"
    status_code = 404


class SessionNotFoundError(NotFoundError):
    """The requested session is absent or expired."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class UnknownRestaurantError(NotFoundError):
    """The restaurant is not part of the session roster."""

    def __init__(self, restaurant_id: str) -> None:
        super().__init__(f"Restaurant not in session: {restaurant_id}")
        self.restaurant_id = restaurant_id


class InvalidInputError(SessionServiceError):
    """The request is malformed and must be fixed by the caller."""

    kind = "invalid_input"
    status_code = 400


class ConflictError(SessionServiceError):
    """A conditional write lost a race with another writer."""

    kind = "conflict"
    status_code = 409


class StoreUnavailableError(SessionServiceError):
    """The key-value store failed or timed out."""

    kind = "store_unavailable"
    status_code = 503


class UnauthorizedError(SessionServiceError):
    """Admin credentials are missing or wrong."""

    kind = "unauthorized"
    status_code = 401
