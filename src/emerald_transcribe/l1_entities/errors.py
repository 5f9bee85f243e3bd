"""Domain error types."""

from __future__ import annotations

import enum


class ErrorKind(enum.Enum):
    UNSUPPORTED_FORMAT = 'unsupported_format'
    DECODE_FAILURE = 'decode_failure'
    MODEL_LOAD = 'model_load'
    PROTOCOL_VIOLATION = 'protocol_violation'
    INFERENCE = 'inference'
    CANCELLED = 'cancelled'


class UnsupportedFormatError(Exception):
    """Raised when the media type is neither audio nor video, or has too many channels."""

    kind = ErrorKind.UNSUPPORTED_FORMAT


class DecodeFailureError(Exception):
    """Raised when the decoder rejects a media buffer (corrupt or partial file)."""

    kind = ErrorKind.DECODE_FAILURE


class ModelLoadError(Exception):
    """Raised when a model cannot be downloaded or initialised for a device profile."""

    kind = ErrorKind.MODEL_LOAD


class ProtocolViolationError(Exception):
    """Raised when a command arrives in a state that does not accept it."""

    kind = ErrorKind.PROTOCOL_VIOLATION


class InferenceError(Exception):
    """Raised when the inference engine fails during a run."""

    kind = ErrorKind.INFERENCE


class RunCancelledError(Exception):
    """Raised by the engine when a run is stopped at a chunk boundary."""

    kind = ErrorKind.CANCELLED
