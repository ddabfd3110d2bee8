#!/usr/bin/env python3
"""
limitguard - Entry Point

Applies LimitRange memory defaults and the max limit/request ratio to a
workload manifest or AdmissionReview read as JSON.

Usage:
    python run.py MANIFEST [--namespace NAMESPACE] [--limit-range FILE] [--dry-run]
    python run.py --serve [--webhook-listen-port PORT] [--webhook-certs-dir DIR]
"""

import sys

from limitguard.cli import main

if __name__ == "__main__":
    sys.exit(main())
