"""Error taxonomy for trajectory optimization."""


class StompError(Exception):
    """Base class for all optimizer errors."""


class ConfigurationError(StompError, ValueError):
    """Invalid time steps, derivative weights or optimizer settings.

    Raised at construction time; the object being built is unusable.
    """


class NumericalDegeneracy(StompError, ArithmeticError):
    """A matrix that must be positive definite could not be factored."""


class MalformedTaskOutput(StompError, RuntimeError):
    """The cost task returned output the optimizer cannot use.

    Covers wrong shapes and non-finite costs or gradients, and aborts the
    iteration. A rollout the task marks ``valid=False`` is a different case:
    it is recorded, counted and still weighted with its returned cost.
    """
