from limitguard.policy import ResourcePolicy
from limitguard.quantity import Quantity


def make_policy(default_request=None, default_limit=None, max_ratio=None) -> ResourcePolicy:
    """Build a memory ResourcePolicy from quantity strings (None = not set)."""
    item = {}
    if default_request is not None:
        item["defaultRequest"] = {"memory": default_request}
    if default_limit is not None:
        item["default"] = {"memory": default_limit}
    if max_ratio is not None:
        item["maxLimitRequestRatio"] = {"memory": max_ratio}
    return ResourcePolicy.from_limit_range_item(item)


def make_container(name="app", request=None, limit=None, **extra):
    """Build a container manifest with optional memory request/limit."""
    container = {"name": name, **extra}
    resources = {}
    if request is not None:
        resources["requests"] = {"memory": request}
    if limit is not None:
        resources["limits"] = {"memory": limit}
    if resources:
        container["resources"] = resources
    return container


def memory(container, kind):
    return Quantity.parse(container["resources"][kind]["memory"])
