"""
Custom exception hierarchy for m4bmaker.

Every failure the conversion pipeline can report is one of these classes, so
callers can tell input mistakes (fix and resubmit) from environment problems
(install the engine) and from engine failures (inspect the output tail).
"""


class M4bMakerError(Exception):
    """Base exception for all application-specific errors."""

    def __init__(self, message, error_code=None, suggestion=None):
        self.error_code = error_code
        self.suggestion = suggestion
        super().__init__(message)

    def get_user_message(self):
        """Get a user-friendly error message with suggestions."""
        message = str(self)
        if self.suggestion:
            message += f"\n\nSuggestion: {self.suggestion}"
        if self.error_code:
            message += f"\nError Code: {self.error_code}"
        return message


class ValidationError(M4bMakerError):
    """Raised when export input is rejected before any process is started."""

    validation_type = "input"

    def __init__(self, message, value=None, suggestion=None):
        self.value = value
        # Set by the validator to the job that failed validation
        self.job = None

        full_message = f"Validation failed ({self.validation_type}): {message}"
        if value is not None:
            full_message += f" (value: {value})"

        super().__init__(
            full_message,
            error_code="VAL001",
            suggestion=suggestion or "Correct the input and start the export again"
        )


class EmptySelectionError(ValidationError):
    """No source files were selected."""

    validation_type = "selection"

    def __init__(self):
        super().__init__(
            "No input files selected",
            suggestion="Select one or more MP3 files to convert"
        )


class SourceFileNotFoundError(ValidationError):
    """A selected source file does not exist."""

    validation_type = "path"

    def __init__(self, path):
        self.path = path
        super().__init__(
            "Source file does not exist", value=path,
            suggestion="Ensure the path exists and you have appropriate permissions"
        )


class UnsupportedFormatError(ValidationError):
    """A selected source is not an MP3 file."""

    validation_type = "file_format"

    def __init__(self, path):
        self.path = path
        super().__init__(
            "Unsupported file format", value=path,
            suggestion="Only .mp3 files can be combined into an audiobook"
        )


class MissingTitleError(ValidationError):
    """The audiobook title is empty."""

    validation_type = "title"

    def __init__(self):
        super().__init__("A title is required", suggestion="Enter a title for the audiobook")


class MissingAuthorError(ValidationError):
    """The audiobook author is empty."""

    validation_type = "author"

    def __init__(self):
        super().__init__("An author is required", suggestion="Enter the author of the audiobook")


class MissingDestinationError(ValidationError):
    """No destination file was chosen."""

    validation_type = "destination"

    def __init__(self):
        super().__init__(
            "No destination file selected",
            suggestion="Choose where the .m4b file should be saved"
        )


class LaunchError(M4bMakerError):
    """Raised when the transcoding engine cannot be started."""


class EngineNotFoundError(LaunchError):
    """Raised when the engine binary is not on the search path."""

    def __init__(self, engine, message=None):
        self.engine = engine

        if not message:
            message = f"Transcoding engine '{engine}' was not found"

        super().__init__(
            message,
            error_code="DEP001",
            suggestion="Install FFmpeg from https://ffmpeg.org/ and ensure it's in your system PATH"
        )


class SpawnFailedError(LaunchError):
    """Raised when the operating system refuses to start the engine."""

    def __init__(self, engine, os_error):
        self.engine = engine
        self.os_error = os_error

        super().__init__(
            f"Failed to launch '{engine}': {os_error}",
            error_code="DEP002",
            suggestion="Check that the engine binary is executable and the system has free resources"
        )


class ConversionInProgressError(M4bMakerError):
    """Raised when an export is requested while another one is running."""

    def __init__(self, active_job_id, destination=None):
        self.active_job_id = active_job_id
        self.destination = destination

        full_message = f"Conversion job {active_job_id} is still running"
        if destination:
            full_message += f" (writing: {destination})"

        super().__init__(
            full_message,
            error_code="PROC001",
            suggestion="Wait for the running conversion to finish or cancel it first"
        )


class InvalidStateTransition(M4bMakerError):
    """Raised when a job is moved to a state its lifecycle does not allow."""

    def __init__(self, job_id, current, requested):
        self.job_id = job_id
        self.current = current
        self.requested = requested

        super().__init__(
            f"Job {job_id} cannot move from {current.value} to {requested.value}",
            error_code="PROC002"
        )


class MetadataError(M4bMakerError):
    """Raised when the tags of a finished audiobook cannot be read."""

    def __init__(self, message, filename):
        self.filename = filename

        super().__init__(
            f"Metadata operation failed: {message} (file: {filename})",
            error_code="META001",
            suggestion="Check file permissions and ensure the file is not corrupted"
        )
