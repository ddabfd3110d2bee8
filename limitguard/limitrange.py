"""Client for sourcing memory policy from LimitRange objects."""

import logging
from typing import Any, Optional

from kubernetes import client
from kubernetes.client.rest import ApiException

from .config import LIMIT_TYPE_CONTAINER, MEMORY_RESOURCE
from .policy import ResourcePolicy

logger = logging.getLogger(__name__)


def _field(obj: Any, attr: str, key: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, attr, None)


def is_container_item(item: Any) -> bool:
    """Check if a LimitRange item applies to containers."""
    return _field(item, "type", "type") == LIMIT_TYPE_CONTAINER


def policy_from_limit_range(limit_range: Any, resource: str = MEMORY_RESOURCE) -> Optional[ResourcePolicy]:
    """
    Build a ResourcePolicy from the first Container item of a LimitRange.

    Args:
        limit_range: V1LimitRange model or LimitRange manifest dict
        resource: Resource name to extract

    Returns:
        The ResourcePolicy, or None if there is no Container item
    """
    spec = _field(limit_range, "spec", "spec") or {}
    for item in _field(spec, "limits", "limits") or []:
        if is_container_item(item):
            return ResourcePolicy.from_limit_range_item(item, resource)
    return None


class LimitRangeClient:
    """Looks up the memory policy of a namespace through the cluster API."""

    def __init__(self, core_api: Optional[client.CoreV1Api] = None):
        """Initialize the client. Kubernetes config must already be loaded."""
        self.v1 = core_api or client.CoreV1Api()

    def resource_policy_for_namespace(
        self, namespace: str, resource: str = MEMORY_RESOURCE
    ) -> Optional[ResourcePolicy]:
        """
        Resolve the policy for a namespace.

        Args:
            namespace: Namespace to look up

        Returns:
            ResourcePolicy from the first Container-type LimitRange item,
            or None if the namespace has none

        Raises:
            ValueError: namespace is empty
            ApiException: the LimitRange list call failed
        """
        if not namespace:
            raise ValueError(f"invalid namespace: {namespace!r}")

        try:
            response = self.v1.list_namespaced_limit_range(namespace=namespace)
        except ApiException as e:
            logger.error(f"Error listing LimitRanges in {namespace}: {e}")
            raise

        for limit_range in response.items or []:
            policy = policy_from_limit_range(limit_range, resource)
            if policy is not None:
                logger.debug(
                    f"Namespace {namespace} uses LimitRange {limit_range.metadata.name}: "
                    f"{policy.describe()}"
                )
                return policy

        logger.debug(f"No Container LimitRange found in namespace {namespace}")
        return None
