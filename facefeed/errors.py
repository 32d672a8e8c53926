"""Error taxonomy for the capture / inference pipeline.

All of these are non-fatal once the pipeline is running: the coordinator logs
them and skips the affected output for that cycle.
"""


class PipelineError(RuntimeError):
    """Base class for pipeline errors."""


class DeviceUnavailable(PipelineError):
    """No compatible capture device (or still image) could be opened."""


class DetectionFailure(PipelineError):
    """The face detector raised while processing a frame."""


class ClassificationFailure(PipelineError):
    """The emotion classifier raised or returned no usable label."""


class ModelLoadFailure(PipelineError):
    """A detector or classifier backend could not be initialized."""
