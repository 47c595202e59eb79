"""Exception types raised by the extraction and analysis services.

Routers translate these into HTTP 400/404 responses; workers record the
message on the owning job row.
"""


class PipelineError(Exception):
    """Base class for all expected pipeline failures."""


class UnsupportedFormatError(PipelineError):
    """The uploaded document format has no extraction path (e.g. DWG)."""


class RecognitionError(PipelineError):
    """The optical recognizer failed on every attempt."""


class JobNotFoundError(PipelineError):
    """No file or analysis job exists with the requested id."""


class AnalysisInProgressError(PipelineError):
    """Another analysis for the same project is still processing."""


class AnalysisNotCompletedError(PipelineError):
    """Results were requested for a job that has not completed."""


class InvalidJobStateError(PipelineError):
    """The requested transition is not legal from the job's current status."""
