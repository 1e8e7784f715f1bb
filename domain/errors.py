class OptimizerError(Exception):
    """Base class for item-level failures.

    Every subclass carries a default human-readable message so callers can
    raise it bare; str(err) always yields something worth showing a user.
    """

    default_message = "Optimization failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return self.args[0]

    def describe(self) -> str:
        return f"{type(self).__name__}: {self.message}"


class DirectoryNotFound(OptimizerError):
    default_message = "Directory not found"


class FileExists(OptimizerError):
    default_message = "File already exists"


class UnableToEncode(OptimizerError):
    default_message = "Unable to encode video"


class UnknownExportError(OptimizerError):
    default_message = "Unknown export error"


class Cancelled(OptimizerError):
    default_message = "Export cancelled"


class UnableToLoadVideoTrack(OptimizerError):
    default_message = "Unable to load video track"


class UnableToLoadImage(OptimizerError):
    default_message = "Unable to load image"


class UnableToRemoveSourceFile(OptimizerError):
    default_message = "Unable to remove source file"


def describe_error(e: BaseException) -> str:
    if isinstance(e, OptimizerError):
        return e.describe()
    return f"{type(e).__name__}: {e}"
