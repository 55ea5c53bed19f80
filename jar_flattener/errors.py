"""Exception hierarchy for jar-flattener.

Every fatal pipeline failure is a :class:`BuildError`. The orchestrator tags the
error with the label of the stage that raised it so the CLI can report where the
build stopped. :class:`CheckpointError` is the only error the pipeline recovers
from.
"""


class BuildError(RuntimeError):
    """Raised when building an executable fails."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.stage: str | None = None

    def __str__(self) -> str:
        message: str = super().__str__()
        if self.stage is None:
            return message
        return f"{self.stage}: {message}"


class ConfigError(BuildError, ValueError):
    """Raised when CLI or project-file configuration is invalid."""


class DetectionError(BuildError):
    """Raised when no supported build system is found in a project directory."""


class ToolError(BuildError):
    """Raised when an external tool exits non-zero or cannot be started."""


class ToolTimeoutError(ToolError):
    """Raised when an external tool exceeds its time limit."""


class ShrinkError(BuildError):
    """Raised when the uberjar cannot be shrunk."""


class AcquisitionError(BuildError):
    """Raised when a JDK cannot be downloaded or materialized."""


class AnalysisError(BuildError):
    """Raised when module dependency analysis fails."""


class MinimizationError(BuildError):
    """Raised when linking the minimal runtime fails."""


class CheckpointError(BuildError):
    """Raised when a CRaC checkpoint cannot be created."""


class PackError(BuildError):
    """Raised when the payload or output binary cannot be written."""
