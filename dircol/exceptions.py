import logging


logger = logging.getLogger(__name__)


class DircolBaseError(Exception):
    """
    Base class for all dircol-specific errors.

    All dircol exceptions inherit from this class, allowing users to catch
    any dircol-specific error with a single except clause.

    Args:
        message: The error message describing what went wrong
        context: Optional additional context about where the error occurred
    """

    def __init__(self, message: str, context: str | None = None) -> None:
        self.message = message
        self.context = context

        # Library logs at DEBUG level - user can promote if needed
        logger.debug("dircol exception: %s", self._format_message())
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        if self.context:
            return f"{self.message} (Context: {self.context})"
        return self.message


class ConfigurationError(DircolBaseError):
    """
    Raised when the solver configuration is invalid or unsupported.

    Configuration errors are raised before any part of the NLP is built and
    are never silently downgraded to a different scheme or setting.

    Examples:
        - Unknown transcription scheme name
        - Constraint derivative enforcement requested of a scheme without support
        - Mesh with fewer than two points or non-increasing points
        - Invalid NLP solver options
    """

    pass


class ProblemDefinitionError(DircolBaseError):
    """
    Raised when the optimal control problem itself is inconsistent.

    Examples:
        - Dynamics output length differs from the number of states
        - Lower bound greater than upper bound
        - Evaluator called with a vector of the wrong length
    """

    pass


class DataIntegrityError(DircolBaseError):
    """
    Raised when internal data corruption or inconsistency is detected.

    This typically represents a bug in dircol rather than user error, or a
    failure inside a user callable while the NLP graph was being assembled.
    """

    pass


class SolutionExtractionError(DircolBaseError):
    """
    Raised when the solver output cannot be decoded into a Solution.
    """

    pass


class SolverFailure(DircolBaseError):
    """
    Raised by ``Solution.raise_for_status()`` for non-converged solves.

    The solver itself never raises this: a non-converged solution is returned
    as data so the caller can inspect the last iterate.
    """

    pass
