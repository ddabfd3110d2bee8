"""Memory request/limit defaulting and validation for pod templates."""

import copy
import logging
from dataclasses import dataclass, field
from decimal import ROUND_DOWN, ROUND_UP
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .config import DEFAULT_MEMORY_LIMIT_REQUEST_RATIO, MEMORY_RESOURCE, MICRO_SCALE
from .errors import (
    InvalidPolicyError,
    LimitBelowRequestError,
    MissingResourceSpecError,
    RatioExceededError,
    ValidationError,
)
from .policy import ResourcePolicy
from .quantity import (
    Format,
    Quantity,
    ZERO,
    div,
    maximum,
    mul,
    round_to_canonical_binary_unit,
)

logger = logging.getLogger(__name__)

Container = Dict[str, Any]


@dataclass
class MutationResult:
    """Outcome of mutating a pod template's containers."""
    init_containers: List[Container] = field(default_factory=list)
    containers: List[Container] = field(default_factory=list)
    mutated: bool = False


def get_memory(container: Container, kind: str) -> Optional[Quantity]:
    """
    Read the memory quantity from a container's resources.

    Args:
        container: Container manifest dict
        kind: "requests" or "limits"

    Returns:
        The parsed Quantity, or None if not declared
    """
    resources = container.get("resources") or {}
    values = resources.get(kind) or {}
    raw = values.get(MEMORY_RESOURCE)
    if raw is None:
        return None
    return Quantity.parse(raw)


def set_memory(container: Container, kind: str, value: Quantity) -> None:
    """Write a memory quantity, leaving every other resource untouched."""
    if container.get("resources") is None:
        container["resources"] = {}
    resources = container["resources"]
    if resources.get(kind) is None:
        resources[kind] = {}
    resources[kind][MEMORY_RESOURCE] = str(value)


def _is_set(value: Optional[Quantity]) -> bool:
    return value is not None and not value.is_zero()


class ResourceMutator:
    """Fills in and validates the memory settings of individual containers."""

    def __init__(
        self,
        default_limit_request_ratio: float = DEFAULT_MEMORY_LIMIT_REQUEST_RATIO,
        dry_run: bool = False,
    ):
        """
        Initialize the mutator.

        Args:
            default_limit_request_ratio: limit/request ratio used when the
                policy has no maxLimitRequestRatio
            dry_run: If True, compute changes but never apply them or fail

        Raises:
            InvalidScalarError: the ratio has no exact decimal form
        """
        self.dry_run = dry_run
        self.default_limit_request_ratio = Quantity.from_scalar(default_limit_request_ratio)

    def mutate_containers(
        self, containers: Sequence[Container], policy: ResourcePolicy
    ) -> Tuple[List[Container], bool]:
        """
        Mutate copies of the given containers.

        Returns:
            (mutated copies, whether any request or limit was set)
        """
        result = copy.deepcopy(list(containers or []))
        mutated = False
        for container in result:
            if self.mutate_container(container, policy):
                mutated = True
        return result, mutated

    def mutate_container(self, container: Container, policy: ResourcePolicy) -> bool:
        """
        Set missing memory request/limit on `container` and validate it.

        In dry-run mode the work happens on a throwaway copy and validation
        failures are only logged.

        Returns:
            True if a request or limit was (or would have been) set
        """
        target = copy.deepcopy(container) if self.dry_run else container

        mutated = self.set_memory_request(target, policy)
        mutated = self.set_memory_limit(target, policy) or mutated

        try:
            self.validate(target, policy)
        except ValidationError as e:
            if not self.dry_run:
                raise
            logger.info(f"[DRY-RUN] {e}")

        return mutated

    def set_memory_request(self, container: Container, policy: ResourcePolicy) -> bool:
        if _is_set(get_memory(container, "requests")):
            return False

        limit = get_memory(container, "limits")
        if _is_set(limit):
            calculated = limit
        elif policy.has_default_request:
            calculated = policy.default_request
        elif policy.has_default_limit:
            calculated = policy.default_limit
        else:
            return False

        if calculated.is_zero():
            return False

        self._log_write("request", calculated, container)
        set_memory(container, "requests", calculated)
        return True

    def set_memory_limit(self, container: Container, policy: ResourcePolicy) -> bool:
        if _is_set(get_memory(container, "limits")):
            return False

        request = get_memory(container, "requests") or ZERO

        if policy.has_max_limit_request_ratio and not request.is_zero():
            calculated = round_to_canonical_binary_unit(
                mul(request, policy.max_limit_request_ratio), ROUND_DOWN
            )
        else:
            ratio_limit = round_to_canonical_binary_unit(
                mul(request, self.default_limit_request_ratio), ROUND_DOWN
            )
            calculated = maximum(policy.default_limit, ratio_limit)

        if calculated.is_zero():
            return False

        self._log_write("limit", calculated, container)
        set_memory(container, "limits", calculated)
        return True

    def validate(self, container: Container, policy: ResourcePolicy) -> None:
        """
        Check the container's memory request and limit against the policy.

        Raises:
            MissingResourceSpecError: request or limit is unset or zero
            LimitBelowRequestError: limit is lower than request
            RatioExceededError: limit/request is above maxLimitRequestRatio
        """
        name = container.get("name", "")
        request = get_memory(container, "requests") or ZERO
        limit = get_memory(container, "limits") or ZERO

        if request.is_zero() or limit.is_zero():
            raise MissingResourceSpecError(
                f"container {name!r}: memory request ({request}) and limit ({limit}) must be set",
                name, request, limit,
            )

        if limit < request:
            raise LimitBelowRequestError(
                f"container {name!r}: memory limit ({limit}) must be greater than request ({request})",
                name, request, limit,
            )

        if policy.has_max_limit_request_ratio:
            # rounded up so a ratio a hair above the maximum is never accepted
            ratio = div(limit, request, MICRO_SCALE, ROUND_UP).with_format(Format.DECIMAL_SI)
            max_ratio = policy.max_limit_request_ratio
            if ratio > max_ratio:
                raise RatioExceededError(
                    f"container {name!r}: memory limit ({limit}) to request ({request}) "
                    f"ratio ({ratio}) exceeds MaxLimitRequestRatio ({max_ratio})",
                    name, request, limit, ratio, max_ratio,
                )

    def _log_write(self, what: str, value: Quantity, container: Container) -> None:
        name = container.get("name", "")
        if self.dry_run:
            logger.info(f"[DRY-RUN] Would set memory {what} to {value} for container {name!r}")
        else:
            logger.info(f"Setting memory {what} to {value} for container {name!r}")


class PodTemplateMutator:
    """Applies ResourceMutator to every init-container and container of a pod template."""

    def __init__(
        self,
        default_limit_request_ratio: float = DEFAULT_MEMORY_LIMIT_REQUEST_RATIO,
        dry_run: bool = False,
    ):
        self.dry_run = dry_run
        self.resource_mutator = ResourceMutator(default_limit_request_ratio, dry_run)

    def mutate(
        self,
        containers: Sequence[Container],
        init_containers: Sequence[Container],
        policy: Optional[ResourcePolicy],
    ) -> MutationResult:
        """
        Mutate copies of a pod template's containers.

        Init-containers are processed first, then containers, each in
        declaration order. The inputs are never modified.

        Args:
            containers: Container manifest dicts
            init_containers: Init-container manifest dicts
            policy: Resolved memory policy for the namespace

        Returns:
            MutationResult with the mutated copies

        Raises:
            InvalidPolicyError: policy is None (not in dry-run)
            ValidationError: first container failing validation (not in
                dry-run); `error.result` holds the partial result
        """
        result = MutationResult(
            init_containers=copy.deepcopy(list(init_containers or [])),
            containers=copy.deepcopy(list(containers or [])),
        )

        if policy is None:
            message = "invalid resource policy: none resolved"
            if self.dry_run:
                logger.info(f"[DRY-RUN] {message}")
                return result
            raise InvalidPolicyError(message)

        for group in (result.init_containers, result.containers):
            for container in group:
                try:
                    if self.resource_mutator.mutate_container(container, policy):
                        result.mutated = True
                except ValidationError as e:
                    e.result = result
                    raise

        return result


def mutate_pod_template(
    containers: Sequence[Container],
    init_containers: Sequence[Container],
    policy: Optional[ResourcePolicy],
    simulate: bool = False,
    default_limit_request_ratio: float = DEFAULT_MEMORY_LIMIT_REQUEST_RATIO,
) -> MutationResult:
    """Mutate a pod template's containers with a one-off PodTemplateMutator."""
    mutator = PodTemplateMutator(default_limit_request_ratio, dry_run=simulate)
    return mutator.mutate(containers, init_containers, policy)
