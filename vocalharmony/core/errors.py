"""Typed failures surfaced by the engine.

Every error the studio reports to a caller derives from ``StudioError`` so a
front end can catch one type and show ``str(error)`` to the user.
"""


class StudioError(Exception):
    """Base class for engine-level failures."""


class UserInputRejected(StudioError):
    """A request that cannot be honoured in the current state.

    Non-fatal: the session state is left unchanged.
    """


class DecodeFailure(StudioError):
    """Audio bytes could not be decoded (corrupt or unsupported file)."""

    def __init__(self, name: str, reason: str = ""):
        self.name = name
        self.reason = reason
        message = f"Could not decode {name}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class EngineNotReady(StudioError):
    """The audio engine was used before it was initialized."""


class EncodeFailure(StudioError):
    """A codec was unavailable or failed while encoding."""
