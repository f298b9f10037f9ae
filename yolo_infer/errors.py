from __future__ import annotations


class YoloInferError(Exception):
    """
    Base class for errors raised by the inference pipeline.
    """


class InvalidDimensions(YoloInferError, ValueError):
    """
    Frame or output dimensions that cannot be planned (zero, negative or mismatched).
    """


class MalformedOutput(YoloInferError, ValueError):
    """
    Raw network output whose layout does not match the configured model.
    """


class InferenceFailure(YoloInferError, RuntimeError):
    """
    The inference callable raised or returned something that is not a tensor.
    """
