"""
Exception taxonomy

Only InvalidInputError aborts a computation. Unsatisfiable inputs and
exhausted budgets are result states (see engines.engine_interface.ResultState).
"""


class AytoModelError(Exception):
    """Base class for all errors raised by ayto_model"""


class InvalidInputError(AytoModelError, ValueError):
    """Malformed engine input: empty groups, unknown names, bad counts"""

    def __init__(self, message: str, problems=None):
        super().__init__(message)
        self.problems = list(problems or [message])


class CacheUnavailableError(AytoModelError):
    """The persistence layer behind the result cache cannot be reached"""


class CalculationCancelled(AytoModelError):
    """A running computation observed its cancellation token"""
