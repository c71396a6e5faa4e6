class DockerCodeBuildError(Exception):
    """Base class for errors raised by this project."""


class ConfigurationError(DockerCodeBuildError):
    pass


class InvalidImageDefinitionsError(DockerCodeBuildError):
    pass


class PipelineStateError(DockerCodeBuildError):
    pass


class StageFailedError(DockerCodeBuildError):
    """A pipeline stage failed; later stages of the run did not execute."""

    def __init__(self, stage, cause: Exception) -> None:
        super().__init__(f"stage '{stage.value}' failed: {cause}")
        self.stage = stage
        self.cause = cause
