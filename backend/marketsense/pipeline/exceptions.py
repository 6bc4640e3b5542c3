"""Pipeline-level exceptions."""


class PipelineError(Exception):
    """Base exception for pipeline errors."""

    pass


class StageExecutionError(PipelineError):
    """A stage failed as a whole."""

    def __init__(self, stage: str, message: str):
        super().__init__(message)
        self.stage = stage


class StagePreconditionError(StageExecutionError):
    """A stage was invoked before its predecessor's output exists."""

    pass
