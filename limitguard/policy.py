"""Resource policy resolved from a LimitRange item."""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from .config import MEMORY_RESOURCE
from .quantity import Quantity, ZERO


@dataclass(frozen=True)
class ResourcePolicy:
    """
    Defaults and ratio limit for one resource in one namespace.

    Each value has its own presence flag: a policy that does not set a
    default request is different from one whose default request is 0.
    """
    default_request: Quantity = ZERO
    default_limit: Quantity = ZERO
    max_limit_request_ratio: Quantity = ZERO
    has_default_request: bool = False
    has_default_limit: bool = False
    has_max_limit_request_ratio: bool = False

    @classmethod
    def from_limit_range_item(cls, item: Any, resource: str = MEMORY_RESOURCE) -> "ResourcePolicy":
        """
        Create a ResourcePolicy from a LimitRange item.

        Args:
            item: V1LimitRangeItem model or its manifest dict
            resource: Resource name to extract (default: memory)

        Returns:
            The ResourcePolicy for `resource`
        """
        if isinstance(item, dict):
            defaults = item.get("default")
            default_requests = item.get("defaultRequest")
            ratios = item.get("maxLimitRequestRatio")
        else:
            defaults = item.default
            default_requests = item.default_request
            ratios = item.max_limit_request_ratio

        default_request, has_default_request = _lookup(default_requests, resource)
        default_limit, has_default_limit = _lookup(defaults, resource)
        max_ratio, has_max_ratio = _lookup(ratios, resource)

        return cls(
            default_request=default_request,
            default_limit=default_limit,
            max_limit_request_ratio=max_ratio,
            has_default_request=has_default_request,
            has_default_limit=has_default_limit,
            has_max_limit_request_ratio=has_max_ratio,
        )

    def describe(self) -> Dict[str, Optional[str]]:
        """Return the configured values as strings, for logging."""
        return {
            "defaultRequest": str(self.default_request) if self.has_default_request else None,
            "default": str(self.default_limit) if self.has_default_limit else None,
            "maxLimitRequestRatio": (
                str(self.max_limit_request_ratio) if self.has_max_limit_request_ratio else None
            ),
        }


def _lookup(resources: Optional[Dict[str, Any]], resource: str) -> Tuple[Quantity, bool]:
    if not resources or resource not in resources:
        return ZERO, False
    return Quantity.parse(resources[resource]), True
