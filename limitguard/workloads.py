"""Locating and patching the pod template of workload manifests."""

import copy
import logging
from typing import Any, Dict, List, Optional, Tuple

import jsonpatch

from .errors import UnsupportedKindError
from .mutator import MutationResult, PodTemplateMutator
from .policy import ResourcePolicy

logger = logging.getLogger(__name__)

# Path from the top of the object to its pod spec
POD_SPEC_PATHS = {
    "Pod": ("spec",),
    "Deployment": ("spec", "template", "spec"),
    "StatefulSet": ("spec", "template", "spec"),
    "DaemonSet": ("spec", "template", "spec"),
    "ReplicaSet": ("spec", "template", "spec"),
    "ReplicationController": ("spec", "template", "spec"),
    "Job": ("spec", "template", "spec"),
    "CronJob": ("spec", "jobTemplate", "spec", "template", "spec"),
}


def pod_spec_path(kind: str) -> Tuple[str, ...]:
    try:
        return POD_SPEC_PATHS[kind]
    except KeyError:
        raise UnsupportedKindError(f"unsupported workload kind: {kind!r}") from None


def pod_spec(obj: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return the pod spec dict of a workload manifest.

    Raises:
        UnsupportedKindError: the kind has no known pod spec location
    """
    node = obj
    for key in pod_spec_path(obj.get("kind", "")):
        node = node.get(key) or {}
    return node


def mutate_workload(
    obj: Dict[str, Any],
    mutator: PodTemplateMutator,
    policy: Optional[ResourcePolicy],
) -> Tuple[Dict[str, Any], MutationResult]:
    """
    Mutate a copy of a workload manifest.

    Args:
        obj: Workload manifest (Deployment, CronJob, Pod, ...)
        mutator: PodTemplateMutator to apply
        policy: Namespace memory policy

    Returns:
        (mutated manifest copy, MutationResult)
    """
    path = pod_spec_path(obj.get("kind", ""))
    spec = pod_spec(obj)
    logger.debug(f"Mutating {obj['kind']} {(obj.get('metadata') or {}).get('name', '')}")

    result = mutator.mutate(spec.get("containers"), spec.get("initContainers"), policy)

    out = copy.deepcopy(obj)
    if not (result.init_containers or result.containers):
        return out, result

    node = out
    for key in path:
        if node.get(key) is None:
            node[key] = {}
        node = node[key]

    # dry-run results equal the input, so writing them back is a no-op
    if "initContainers" in node or result.init_containers:
        node["initContainers"] = result.init_containers
    if "containers" in node or result.containers:
        node["containers"] = result.containers

    return out, result


def memory_patch(original: Dict[str, Any], mutated: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Build the JSON Patch that turns `original` into `mutated`.

    Returns:
        List of RFC 6902 operations, empty if nothing changed
    """
    return jsonpatch.make_patch(original, mutated).patch
