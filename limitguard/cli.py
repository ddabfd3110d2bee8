"""
limitguard - command line entry point

Fills in missing memory requests/limits of a workload manifest (or an
AdmissionReview) according to the namespace's LimitRange, or serves
AdmissionReview requests as a mutating webhook.

Usage:
    limitguard MANIFEST [--namespace NAMESPACE] [--limit-range FILE] [--dry-run]
    limitguard --serve [--webhook-listen-port PORT] [--webhook-certs-dir DIR]
"""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from kubernetes import config
from kubernetes.client.rest import ApiException

from . import webhook
from .admission import AdmissionReviewer
from .config import (
    DEFAULT_MEMORY_LIMIT_REQUEST_RATIO,
    LOG_LEVELS,
    SUPPORTED_KINDS,
    WEBHOOK_CERTS_DIR,
    WEBHOOK_LISTEN_PORT,
)
from .errors import LimitGuardError
from .limitrange import LimitRangeClient, policy_from_limit_range
from .mutator import PodTemplateMutator
from .workloads import mutate_workload

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="limitguard",
        description="Apply LimitRange memory defaults and ratio limits to a workload",
    )
    parser.add_argument(
        "manifest",
        nargs="?",
        help="Workload manifest or AdmissionReview as JSON ('-' for stdin)"
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Serve AdmissionReview requests as a mutating webhook"
    )
    parser.add_argument(
        "--webhook-listen-port",
        type=int,
        default=WEBHOOK_LISTEN_PORT,
        help="Admission webhook listen port (default: %(default)s)"
    )
    parser.add_argument(
        "--webhook-certs-dir",
        default=WEBHOOK_CERTS_DIR,
        help="Directory holding tls.crt and tls.key (default: %(default)s)"
    )
    parser.add_argument(
        "--namespace", "-n",
        default="",
        help="Namespace whose LimitRange applies (default: from the manifest)"
    )
    parser.add_argument(
        "--limit-range",
        default="",
        help="Read the LimitRange from a JSON file instead of the cluster"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Run in dry-run mode (report changes, never modify or reject)"
    )
    parser.add_argument(
        "--default-memory-limit-request-ratio",
        type=float,
        default=DEFAULT_MEMORY_LIMIT_REQUEST_RATIO,
        help="Default memory limit/request ratio (default: %(default)s)"
    )
    parser.add_argument(
        "--resources",
        default=",".join(SUPPORTED_KINDS),
        help="Comma separated workload kinds to enforce (default: all)"
    )
    parser.add_argument(
        "--in-cluster",
        action="store_true",
        help="Use in-cluster config (for running inside Kubernetes)"
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default="info",
        help="Configure log level (default: %(default)s)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose/debug logging (same as --log-level debug)"
    )
    return parser


def load_json(path: str) -> Dict[str, Any]:
    if path == "-":
        return json.load(sys.stdin)
    with open(path) as f:
        return json.load(f)


def load_kube_config(in_cluster: bool) -> None:
    if in_cluster:
        config.load_incluster_config()
        logger.info("Loaded in-cluster configuration")
    else:
        config.load_kube_config()
        logger.info("Loaded kubeconfig from default location")


def parse_kinds(resources: str) -> List[str]:
    return sorted({kind.strip() for kind in resources.split(",") if kind.strip()})


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.serve and not args.manifest:
        parser.error("a manifest is required unless --serve is given")

    level = "debug" if args.verbose else args.log_level
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        stream=sys.stderr,
    )

    if args.dry_run:
        logger.info("Running in dry-run mode")

    try:
        mutator = PodTemplateMutator(args.default_memory_limit_request_ratio, dry_run=args.dry_run)

        if args.limit_range:
            offline_policy = policy_from_limit_range(load_json(args.limit_range))
            def lookup(namespace: str):
                return offline_policy
        else:
            load_kube_config(args.in_cluster)
            lookup = LimitRangeClient().resource_policy_for_namespace

        if args.serve:
            reviewer = AdmissionReviewer(mutator, lookup, parse_kinds(args.resources))
            webhook.serve(reviewer, args.webhook_listen_port, args.webhook_certs_dir)
            return 0

        document = load_json(args.manifest)
        if document.get("kind") == "AdmissionReview":
            reviewer = AdmissionReviewer(mutator, lookup, parse_kinds(args.resources))
            output = reviewer.review(document)
        else:
            namespace = args.namespace or (document.get("metadata") or {}).get("namespace") or "default"
            policy = lookup(namespace)
            if policy is None:
                logger.warning(f"No memory policy for namespace {namespace}, leaving manifest unchanged")
                output = document
            else:
                output, result = mutate_workload(document, mutator, policy)
                logger.info(f"Mutated: {result.mutated}")
    except (LimitGuardError, ApiException, config.ConfigException, OSError, ValueError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1

    json.dump(output, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
