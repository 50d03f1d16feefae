class PlaybackError(Exception):
    """Base exception for anything the user should hear about.

    ``user_message`` is what goes back to Discord; ``str(exc)`` is for the logs.
    """

    user_message = "Something went wrong."

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.user_message)


class NoVoiceChannel(PlaybackError):
    """User is not in a voice channel."""

    user_message = "Join a voice channel first."


class NothingPlaying(PlaybackError):
    """No player is active for the guild."""

    user_message = "Nothing is playing."


class SessionExpired(PlaybackError):
    """Cached /play session is gone (expired, cancelled or evicted)."""

    user_message = "This /play session expired."


class OwnershipMismatch(PlaybackError):
    """Someone other than the session owner touched its controls."""

    user_message = "This control belongs to another user."


class InvalidSelection(PlaybackError):
    """Selected index does not point at a cached candidate."""

    user_message = "Invalid selection."


class MissingSelection(PlaybackError):
    """A follow-up action ran on a session without a selected track."""

    user_message = "Missing selected track context."


class UpstreamSearchFailure(PlaybackError):
    """Search against the Lavalink node failed."""

    user_message = "Search failed. Try again in a moment."


class PlaybackCommandFailure(PlaybackError):
    """Queue or player command against the Lavalink node failed."""

    user_message = "Failed to handle action."
