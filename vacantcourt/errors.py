"""
Error Types

Exception hierarchy shared by the detection pipeline, the occupancy
tracker and the court stores.

Fatal errors (SessionError) end a monitoring session. Per-frame errors
(FrameError) drop a single frame. Per-update errors (StatusUpdateError)
only affect one court status write and are retried on a later cycle.
"""


class VacantCourtError(Exception):
    """Base class for all package errors."""


class SessionError(VacantCourtError):
    """Errors that make a monitoring session unusable."""


class ConfigLoadError(SessionError):
    """Court configuration or settings could not be loaded or parsed."""


class ModelLoadError(SessionError):
    """Detector model or label resources are missing or unparseable."""


class FrameError(VacantCourtError):
    """Errors scoped to a single frame."""


class FrameConversionError(FrameError):
    """Frame has an unsupported pixel format or inconsistent buffers."""


class InferenceError(FrameError):
    """Detector used while not loaded, or with a wrongly shaped input."""


class StatusUpdateError(VacantCourtError):
    """Errors scoped to a single court status write."""


class TransactionConflict(StatusUpdateError):
    """The complex document changed between read and commit."""


class NetworkError(StatusUpdateError):
    """The store could not be reached."""


class RecordNotFound(StatusUpdateError):
    """The complex document or the named court does not exist."""
