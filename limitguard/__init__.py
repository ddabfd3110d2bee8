"""Memory request/limit defaulting and enforcement for Kubernetes workloads."""

__version__ = "0.1.0"
