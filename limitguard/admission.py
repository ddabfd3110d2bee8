"""AdmissionReview handling for the memory mutator."""

import base64
import json
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from kubernetes.client.rest import ApiException

from .config import ADMISSION_API_VERSION, PATCH_TYPE, SUPPORTED_KINDS
from .errors import InvalidPolicyError, LimitGuardError, UnsupportedKindError, ValidationError
from .mutator import PodTemplateMutator
from .policy import ResourcePolicy
from .workloads import memory_patch, mutate_workload

logger = logging.getLogger(__name__)

PolicyLookup = Callable[[str], Optional[ResourcePolicy]]


def create_admission_response(
    uid: str,
    allowed: bool = True,
    message: str = "",
    patch: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """Create an AdmissionReview response."""
    response = {
        "apiVersion": ADMISSION_API_VERSION,
        "kind": "AdmissionReview",
        "response": {
            "uid": uid,
            "allowed": allowed,
        },
    }

    if message:
        response["response"]["status"] = {"message": message}

    if patch and allowed:
        response["response"]["patchType"] = PATCH_TYPE
        response["response"]["patch"] = base64.b64encode(json.dumps(patch).encode()).decode()

    return response


class AdmissionReviewer:
    """Turns AdmissionReview requests into allow/deny responses with memory patches."""

    def __init__(
        self,
        mutator: PodTemplateMutator,
        policy_lookup: PolicyLookup,
        kinds: Iterable[str] = SUPPORTED_KINDS,
    ):
        """
        Initialize the reviewer.

        Args:
            mutator: PodTemplateMutator applied to every admitted workload
            policy_lookup: Callable returning the ResourcePolicy of a namespace
            kinds: Workload kinds to enforce; others are allowed untouched
        """
        self.mutator = mutator
        self.policy_lookup = policy_lookup
        self.kinds = set(kinds)

        unknown = self.kinds - set(SUPPORTED_KINDS)
        if unknown:
            raise UnsupportedKindError(f"unexpected resources: {sorted(unknown)}")

    def review(self, admission_review: Dict[str, Any]) -> Dict[str, Any]:
        request = admission_review.get("request") or {}
        uid = request.get("uid", "")
        obj = request.get("object") or {}
        kind = (request.get("kind") or {}).get("kind") or obj.get("kind", "")
        metadata = obj.get("metadata") or {}
        namespace = request.get("namespace") or metadata.get("namespace", "")
        name = request.get("name") or metadata.get("name", "")

        if kind not in self.kinds:
            logger.debug(f"Skipping {kind} {namespace}/{name}: kind not enforced")
            return create_admission_response(uid)

        if kind == "Pod" and request.get("operation", "CREATE") != "CREATE":
            return create_admission_response(uid, message="pod resources are immutable")

        try:
            policy = self.policy_lookup(namespace)
        except (ApiException, ValueError) as e:
            reason = f"failed to resolve LimitRange for namespace {namespace!r}: {e}"
            logger.error(reason)
            return create_admission_response(uid, allowed=False, message=reason)

        if policy is None:
            logger.debug(f"No memory policy for namespace {namespace}, allowing {kind} {name}")
            return create_admission_response(uid)

        obj = dict(obj, kind=obj.get("kind") or kind)
        try:
            mutated_obj, result = mutate_workload(obj, self.mutator, policy)
        except (ValidationError, InvalidPolicyError) as e:
            reason = f"failed to mutate {kind} {namespace}/{name}: {e}"
            logger.error(reason)
            return create_admission_response(uid, allowed=False, message=reason)
        except LimitGuardError as e:
            reason = f"malformed {kind} {namespace}/{name}: {e}"
            logger.error(reason)
            return create_admission_response(uid, allowed=False, message=reason)

        if not result.mutated or self.mutator.dry_run:
            return create_admission_response(uid)

        patch = memory_patch(obj, mutated_obj)
        logger.info(f"Patching {kind} {namespace}/{name} with {len(patch)} operation(s)")
        return create_admission_response(uid, patch=patch)
