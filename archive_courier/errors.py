"""Exception hierarchy for the Archive Courier pipeline.

Every failure carries the name of the pipeline step it happened in so
the error log can say where a run stopped.
"""

STEP_VALIDATE = "validate"
STEP_FIND_ARCHIVE = "find_archive"
STEP_MOVE_ARCHIVE = "move_archive"
STEP_EXTRACT = "extract"
STEP_FIND_PAYLOAD = "find_payload"
STEP_MOVE_PAYLOAD = "move_payload"
STEP_CLEANUP = "cleanup"


class PipelineError(Exception):
    """Base class for every expected pipeline failure."""

    step = "pipeline"

    def __init__(self, message: str, step: str | None = None):
        super().__init__(message)
        if step is not None:
            self.step = step


class MissingDirectoryError(PipelineError):
    step = STEP_VALIDATE


class ArchiveNotFoundError(PipelineError):
    step = STEP_FIND_ARCHIVE


class MoveError(PipelineError):
    step = STEP_MOVE_ARCHIVE


class ExtractionError(PipelineError):
    step = STEP_EXTRACT


class PayloadNotFoundError(PipelineError):
    step = STEP_FIND_PAYLOAD


class CleanupError(PipelineError):
    step = STEP_CLEANUP
