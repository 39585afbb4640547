"""
Exception classes for playlist-manager.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message plus an optional details
dictionary, and can be turned into the structured failure payload returned
by the service layer.

Exception Hierarchy:
    PlaylistManagerError (base)
        ConfigError - Configuration file issues
        DatabaseError - SQLite user registry issues
        Unauthenticated - No valid user or access token
            TokenRefreshRequired - Token expired and cannot be refreshed
        UpstreamFetchError - Read failure against the Spotify API
        RemoteStoreError - Delete/insert batch failure
        InvalidOperation - Operation not allowed for this playlist
        NotFound - User or playlist reference invalid
        Conflict - Preference already present
        OperationCancelled - Cancellation observed between pages/batches
"""

from typing import Any


class PlaylistManagerError(Exception):
    """
    Base exception for all playlist-manager errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch every failure of the sync engine with a
    single except clause.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context
                 (e.g. user id, playlist id, HTTP status).

    Example:
        try:
            orchestrator.sort_by_release_date(user_id, playlist_id)
        except PlaylistManagerError as e:
            logger.error(f"Operation failed: {e.message}")
            return e.to_failure()
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description shown to the caller.
            details: Optional dictionary containing additional context.
                     Common keys include:
                     - 'user_id': Local user the operation ran for
                     - 'playlist_id': Playlist involved in the error
                     - 'original_error': The underlying exception text
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message

    def to_failure(self) -> dict[str, Any]:
        """
        Build the structured failure payload for callers.

        Returns:
            {"error": True, "message": <message>}
        """
        return {"error": True, "message": self.message}


class ConfigError(PlaylistManagerError):
    """
    Raised when there's an issue with the configuration file.

    This is a CRITICAL error that should stop program execution.

    Common causes:
        - config.yaml not found
        - config.yaml has invalid YAML syntax
        - Required fields missing (client_id, client_secret)
        - Invalid field values (e.g. batch size out of range)
    """
    pass


class DatabaseError(PlaylistManagerError):
    """
    Raised when there's an issue with the SQLite user registry.

    Common causes:
        - Parent directory of the database file does not exist
        - Schema version mismatch
        - Corrupted JSON in a preference column
    """
    pass


class Unauthenticated(PlaylistManagerError):
    """
    Raised when no valid user or access token can be resolved.

    Also raised when Spotify answers 401 on a read, which means the
    stored access token has been revoked or expired early.
    """
    pass


class TokenRefreshRequired(Unauthenticated):
    """
    Raised when the access token is expired and no refresh token exists.

    The user has to log in again through the OAuth flow.
    """
    pass


class UpstreamFetchError(PlaylistManagerError):
    """
    Raised when reading from the Spotify API fails.

    Nothing has been modified remotely when this is raised, so retrying
    the whole operation is always safe.

    Attributes:
        http_status: HTTP status code returned by Spotify, if any.
        is_rate_limit: True if Spotify answered 429.
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        http_status: int | None = None,
        is_rate_limit: bool = False
    ) -> None:
        super().__init__(message, details)
        self.http_status = http_status
        self.is_rate_limit = is_rate_limit


class RemoteStoreError(PlaylistManagerError):
    """
    Raised when a delete or insert batch fails.

    The batches of one rewrite are issued sequentially, so every batch
    before batch_index has already been applied remotely. When that is the
    case (partial=True) the destination playlist is left in a mixed state
    and the message says so; re-running the whole operation fetches the
    mixed state and rewrites it again.

    Attributes:
        operation: "delete" or "insert".
        batch_index: Zero-based index of the failing batch.
        cause: The underlying exception.
        partial: True if earlier batches of the same rewrite succeeded.
    """

    def __init__(
        self,
        message: str,
        operation: str,
        batch_index: int,
        cause: BaseException | None = None,
        partial: bool = False,
        details: dict | None = None
    ) -> None:
        super().__init__(message, details)
        self.operation = operation
        self.batch_index = batch_index
        self.cause = cause
        self.partial = partial
        self.details.setdefault("operation", operation)
        self.details.setdefault("batch_index", batch_index)
        self.details.setdefault("partial", partial)


class InvalidOperation(PlaylistManagerError):
    """
    Raised when an operation is not allowed for the given playlist.

    Example:
        raise InvalidOperation("The playlist Liked Songs can not be sorted")
    """
    pass


class NotFound(PlaylistManagerError):
    """Raised when a user, playlist or preference entry does not exist."""
    pass


class Conflict(PlaylistManagerError):
    """Raised when adding a preference entry that is already present."""
    pass


class OperationCancelled(PlaylistManagerError):
    """
    Raised when a cancellation signal is observed between pages or batches.

    A batch that was already in flight is always allowed to finish, so the
    remote playlist may be partially rewritten when this is raised during a
    delete or insert phase.
    """
    pass
