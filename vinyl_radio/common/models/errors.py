"""Custom errors and exceptions."""


class RadioError(Exception):
    """Custom Exception for all errors."""

    error_code = 0

    def __init_subclass__(cls, *args, **kwargs) -> None:  # type: ignore[no-untyped-def]
        """Register a subclass."""
        super().__init_subclass__(*args, **kwargs)
        ERROR_MAP[cls.error_code] = cls


# mapping from error_code to Exception class
ERROR_MAP: dict[int, type] = {0: RadioError, 999: RadioError}


class NotFoundError(RadioError):
    """Error raised when a command references an unknown (track) id."""

    error_code = 2


class InvalidDataError(RadioError):
    """Error raised when an object has invalid data."""

    error_code = 3


class AlreadyStreamingError(RadioError):
    """Error raised when streaming is requested while not idle."""

    error_code = 4


class SubprocessFailure(RadioError):
    """Error raised when the transcoder process fails to start or exits unexpectedly."""

    error_code = 5

    def __init__(self, message: str, returncode: int | None = None) -> None:
        """Initialize the error, optionally with the exitcode of the process."""
        super().__init__(message)
        self.returncode = returncode


class AudioError(RadioError):
    """Error raised when an issue arrised when processing audio."""

    error_code = 7


class SourcePrepFailure(AudioError):
    """Error raised when a source could not be downloaded or probed."""

    error_code = 8


class CrossfadeFailure(AudioError):
    """Error raised when mixing two streams failed."""

    error_code = 9


class InvalidCommand(RadioError):
    """Error raised when an unknown command is requested on the API."""

    error_code = 12
