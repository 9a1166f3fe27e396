"""Exceptions raised by panelslicer."""


class SlicerError(Exception):
    """Base error for the package."""
    pass


class ImageLoadError(SlicerError):
    """An image file could not be read or decoded."""
    pass


class RecognizerError(SlicerError):
    """The external recognizer returned an error or no content."""

    retryable = True


class UnparsableRecognizerResult(RecognizerError):
    """No bounding boxes could be recovered from the recognizer text.

    Raised only after every parse strategy has been tried.
    """

    def __init__(self, text: str, message: str = "Could not parse bounding boxes from recognizer output"):
        super().__init__(message)
        self.text = text
