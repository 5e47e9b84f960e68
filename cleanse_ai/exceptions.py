"""Exceptions raised by the cleaning pipeline and its collaborators."""


class CleanseError(Exception):
    """Base exception for cleanse_ai."""

    pass


class PipelineError(CleanseError):
    """A cleaning run was aborted by an unexpected failure in one of its stages."""

    pass


class InvalidUploadError(CleanseError):
    """Uploaded file was rejected before parsing (extension, size, encoding)."""

    pass


class HistoryStoreError(CleanseError):
    """The history key-value store could not be read or written."""

    pass


class AIResponseParseError(CleanseError):
    """LLM response could not be parsed into anomaly candidates."""

    pass
