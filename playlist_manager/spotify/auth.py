"""
Access token resolution for playlist-manager.

The sync engine never talks OAuth itself: it asks a TokenProvider for a
live bearer token of a local user and hands that token to the remote
track store. This module provides:

    TokenProvider        Abstract interface: get_access_token(user_id)
    StoredTokenProvider  Tokens from the SQLite user registry, refreshed
                         through the Spotify accounts service when stale;
                         also completes the authorization code flow used
                         by `plm login`
    StaticTokenProvider  Fixed user -> token mapping (tests, scripting)

Token lifetime:
    Spotify access tokens live for one hour. The registry only stores the
    time a token was obtained, so a token is considered expired once it is
    older than 3600 seconds minus a 300 second safety buffer.
"""

import urllib.parse
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

import requests
import spotipy

from playlist_manager.core.database import Database
from playlist_manager.core.exceptions import (
    DatabaseError,
    Unauthenticated,
    TokenRefreshRequired,
)
from playlist_manager.core.logger import get_logger

logger = get_logger(__name__)


AUTHORIZE_URL = "https://accounts.spotify.com/authorize"
TOKEN_URL = "https://accounts.spotify.com/api/token"

TOKEN_LIFETIME_SECONDS = 3600
TOKEN_SAFETY_BUFFER_SECONDS = 300

SCOPES = (
    "user-read-email",
    "user-top-read",
    "user-read-private",
    "playlist-read-private",
    "playlist-modify-private",
    "playlist-modify-public",
    "user-library-read",
    "user-library-modify",
    "user-follow-read",
)


class TokenProvider(ABC):
    """Resolves a live Spotify access token for a local user."""

    @abstractmethod
    def get_access_token(self, user_id: str) -> str:
        """
        Raises:
            Unauthenticated: If the user or its token cannot be resolved.
            TokenRefreshRequired: If the token expired and cannot be refreshed.
        """


class StaticTokenProvider(TokenProvider):
    """Serves tokens from a fixed mapping; never refreshes."""

    def __init__(self, tokens: Mapping[str, str]) -> None:
        self._tokens = dict(tokens)

    def get_access_token(self, user_id: str) -> str:
        try:
            return self._tokens[user_id]
        except KeyError:
            raise Unauthenticated(
                f"No access token for user {user_id}",
                details={"user_id": user_id}
            ) from None


class StoredTokenProvider(TokenProvider):
    """
    Token provider backed by the SQLite user registry.

    Attributes:
        database: User registry holding tokens and their timestamps.
        client_id: Spotify application client ID.
        client_secret: Spotify application client secret.
        redirect_uri: Redirect URI registered for the code flow.
        timeout: Timeout in seconds for calls to the accounts service.
    """

    def __init__(
        self,
        database: Database,
        client_id: str,
        client_secret: str,
        redirect_uri: str = "",
        timeout: float = 10.0,
        clock: Callable[[], datetime] | None = None
    ) -> None:
        self.database = database
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # =========================================================================
    # Token Resolution
    # =========================================================================

    def _is_token_expired(self, token_timestamp: str | None) -> bool:
        """True if a token obtained at token_timestamp must be refreshed."""
        if not token_timestamp:
            return True

        try:
            obtained_at = datetime.fromisoformat(token_timestamp)
        except ValueError:
            return True
        if obtained_at.tzinfo is None:
            obtained_at = obtained_at.replace(tzinfo=timezone.utc)

        age = (self._clock() - obtained_at).total_seconds()
        return age >= TOKEN_LIFETIME_SECONDS - TOKEN_SAFETY_BUFFER_SECONDS

    def get_access_token(self, user_id: str) -> str:
        """
        Return a live access token, refreshing it first when stale.

        Raises:
            Unauthenticated: Unknown user, or the refresh call failed.
            TokenRefreshRequired: Token stale and no refresh token stored.
        """
        user = self.database.get_user(user_id)
        if user is None:
            raise Unauthenticated(f"User not found: {user_id}", details={"user_id": user_id})

        if user["access_token"] and not self._is_token_expired(user["access_token_timestamp"]):
            return user["access_token"]

        if not user["refresh_token"]:
            raise TokenRefreshRequired(
                f"Access token of user {user_id} expired and no refresh token is stored",
                details={"user_id": user_id}
            )

        logger.debug(f"Refreshing access token of user {user_id}")
        token = self._refresh_token(user_id, user["refresh_token"])

        try:
            self.database.update_access_token(
                user_id,
                token["access_token"],
                token.get("refresh_token")
            )
        except DatabaseError as e:
            raise Unauthenticated(
                f"Could not store the refreshed token of user {user_id}: {e.message}",
                details={"user_id": user_id}
            ) from e

        return token["access_token"]

    def _post_token_request(self, data: dict[str, str], user_hint: str) -> dict[str, Any]:
        payload = {**data, "client_id": self.client_id, "client_secret": self.client_secret}

        try:
            response = requests.post(
                TOKEN_URL,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                data=payload,
                timeout=self.timeout
            )
            response.raise_for_status()
            token = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise Unauthenticated(
                f"Spotify token request failed for {user_hint}: {e}",
                details={"user": user_hint, "grant_type": data.get("grant_type")}
            ) from e

        if "access_token" not in token:
            raise Unauthenticated(
                f"Spotify token response for {user_hint} carries no access token",
                details={"user": user_hint}
            )
        return token

    def _refresh_token(self, user_id: str, refresh_token: str) -> dict[str, Any]:
        """Exchange a refresh token; Spotify may rotate the refresh token."""
        return self._post_token_request(
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            f"user {user_id}"
        )

    # =========================================================================
    # Authorization Code Flow
    # =========================================================================

    def authorization_url(self, state: str | None = None) -> str:
        """URL the user opens to grant the application access."""
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(SCOPES),
        }
        if state:
            params["state"] = state
        return f"{AUTHORIZE_URL}?{urllib.parse.urlencode(params)}"

    def authenticate(self, code: str) -> dict[str, Any]:
        """
        Complete the login: exchange the code, read the profile, store the user.

        Args:
            code: Authorization code received on the redirect URI.

        Returns:
            The stored user row.

        Raises:
            Unauthenticated: If the exchange or the profile request fails.
        """
        token = self._post_token_request(
            {"grant_type": "authorization_code", "code": code, "redirect_uri": self.redirect_uri},
            "authorization code"
        )

        try:
            profile = spotipy.Spotify(auth=token["access_token"], requests_timeout=self.timeout).current_user()
        except (spotipy.SpotifyException, requests.exceptions.RequestException) as e:
            raise Unauthenticated(f"Could not read the Spotify profile: {e}") from e

        user = self.database.upsert_user(
            spotify_user_id=profile["id"],
            username=profile.get("display_name"),
            email=profile.get("email"),
            access_token=token["access_token"],
            refresh_token=token.get("refresh_token")
        )
        logger.info(f"User {user['username'] or user['spotify_user_id']} logged in (id {user['id']})")
        return user
