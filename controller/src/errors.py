"""
Step error hierarchy.

Every failure a step can report is a StepError; the executor records the
subclass name on the StepResult so callers can tell a rejected login from a
failed build.
"""

from typing import Optional

class PipelineError(Exception):
    """Base class for pipeline failures."""
    pass

class PipelineConfigError(PipelineError):
    """Raised when pipeline configuration is invalid."""
    pass

class StepError(PipelineError):
    """A step exited non-zero or otherwise failed."""

    def __init__(self, message: str, exit_code: int = 1, output: Optional[str] = None):
        super().__init__(message)
        self.exit_code = exit_code
        self.output = output or ""

class BuildError(StepError):
    """The artifact build tool (or image build) failed."""
    pass

class AuthError(StepError):
    """The registry rejected the supplied credentials."""
    pass

class PublishError(StepError):
    """Tagging or pushing an image failed."""
    pass
