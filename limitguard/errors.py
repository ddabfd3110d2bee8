"""Exceptions raised by limitguard."""

from typing import Optional


class LimitGuardError(Exception):
    """Base class for all limitguard errors."""


class QuantityParseError(LimitGuardError, ValueError):
    """A string could not be parsed as a resource quantity."""


class InvalidScalarError(LimitGuardError, ValueError):
    """A scalar multiplier has no exact decimal representation."""


class InvalidPolicyError(LimitGuardError):
    """No usable resource policy was supplied."""


class UnsupportedKindError(LimitGuardError):
    """The workload kind has no known pod template location."""


class ValidationError(LimitGuardError):
    """
    A container's memory settings failed validation.

    Attributes:
        container: Name of the offending container
        request: Memory request after defaulting (may be None)
        limit: Memory limit after defaulting (may be None)
        result: Partial MutationResult, set by PodTemplateMutator
    """

    def __init__(self, message: str, container: str = "", request=None, limit=None):
        super().__init__(message)
        self.container = container
        self.request = request
        self.limit = limit
        self.result = None


class MissingResourceSpecError(ValidationError):
    """Memory request or limit is still unset after defaulting."""


class LimitBelowRequestError(ValidationError):
    """Memory limit is lower than the memory request."""


class RatioExceededError(ValidationError):
    """Memory limit/request ratio is above the policy maximum."""

    def __init__(
        self,
        message: str,
        container: str = "",
        request=None,
        limit=None,
        ratio=None,
        max_ratio: Optional[object] = None,
    ):
        super().__init__(message, container, request, limit)
        self.ratio = ratio
        self.max_ratio = max_ratio
