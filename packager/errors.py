"""This file defines the exceptions raised while turning a descriptor into a build graph."""

import logging
mylogger = logging.getLogger(__name__)


class PunError(Exception):
    """Custom exception with a message."""
    def __init__(self, message="A packaging error occurred", log=False):
        self.message = message
        super().__init__(self.message)
        if log:
            mylogger.error(message)


class InstructionParseError(PunError):
    """An instruction of the descriptor is malformed or unknown."""
    def __init__(self, message="Failed to parse instruction", line=None, log=False):
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message, log)


class MultiStageUnsupported(PunError):
    """A second FROM was found in the descriptor."""
    def __init__(self, message="Multi-stage builds are not supported", log=False):
        super().__init__(message, log)


class MissingOption(PunError):
    """A required build option was not supplied by the caller."""
    def __init__(self, option: str, log=False):
        self.option = option
        super().__init__(f"Missing required build option '{option}'", log)


class MissingPath(PunError):
    """No descriptor path was given on the command line."""
    def __init__(self, message="Please specify the Containerfile", log=False):
        super().__init__(message, log)


class EngineError(PunError):
    """A call to the build engine failed."""
    def __init__(self, message="Build engine request failed", status_code=None, log=False):
        self.status_code = status_code
        super().__init__(message, log)


class FetchError(PunError):
    """Fetching a file from the caller's build context failed.

    ``phase`` is ``"resolve"`` when the engine could not solve the sub-graph
    selecting the file, ``"read"`` when reading the file back failed.
    """
    def __init__(self, phase: str, name: str, cause: Exception, log=False):
        self.phase = phase
        self.name = name
        self.cause = cause
        super().__init__(f"Failed to {phase} {name}: {cause}", log)


class CompileError(PunError):
    """The build graph could not be constructed."""


class MetadataEncodingError(CompileError):
    """The annotations could not be marshalled into the metadata file."""


class SolveError(PunError):
    """The engine rejected the compiled build graph."""
    def __init__(self, cause: Exception, log=False):
        self.cause = cause
        super().__init__(f"Failed to solve build graph: {cause}", log)
