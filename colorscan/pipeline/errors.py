"""Error taxonomy shared by the fetch, decode and pipeline layers."""

from __future__ import annotations


class ColorScanError(RuntimeError):
    """Base class for every failure the pipeline knows how to report."""

    kind = "internal"

    def __init__(self, message: str, url: str | None = None) -> None:
        self.url = url
        super().__init__(message)


class InputError(ColorScanError):
    """Raised when an input line is not a fetchable URL or the input is unusable."""

    kind = "input"


class FetchError(ColorScanError):
    """Raised when the image bytes can not be obtained."""

    kind = "fetch"

    def __init__(self, message: str, url: str | None = None, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message, url=url)


class DecodeError(ColorScanError):
    """Raised when the body is not an image in a supported format."""

    kind = "decode"


class OutputError(ColorScanError):
    """Raised when the destination file can not be created or opened."""

    kind = "output"


class PipelineAborted(ColorScanError):
    """Raised under the ``abort`` failure policy on the first failed item."""

    kind = "aborted"

    def __init__(self, cause: ColorScanError) -> None:
        self.cause = cause
        super().__init__(f"run aborted: {cause}", url=cause.url)
