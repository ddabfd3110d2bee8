"""Configuration settings for limitguard."""

# Resource handled by the mutator
MEMORY_RESOURCE = "memory"

# LimitRange item type the policy is sourced from
LIMIT_TYPE_CONTAINER = "Container"

# Default limit/request ratio used when the LimitRange has no maxLimitRequestRatio
DEFAULT_MEMORY_LIMIT_REQUEST_RATIO = 1.1

# Fractional digits kept when computing a limit/request ratio (10^-6 precision)
MICRO_SCALE = 6

# Computed values at or below this are rounded to whole Ki, above it to whole Mi
CANONICAL_KI_THRESHOLD = "10Mi"

# Admission settings
ADMISSION_API_VERSION = "admission.k8s.io/v1"
PATCH_TYPE = "JSONPatch"

# Webhook listener settings
WEBHOOK_PATH = "/mutate"
WEBHOOK_LISTEN_PORT = 8443
WEBHOOK_CERTS_DIR = "/etc/webhook/certs"
TLS_CERT_FILE = "tls.crt"
TLS_KEY_FILE = "tls.key"

LOG_LEVELS = ("debug", "info", "warning", "error")

# Workload kinds the mutator knows how to handle
SUPPORTED_KINDS = (
    "CronJob",
    "DaemonSet",
    "Deployment",
    "Job",
    "Pod",
    "ReplicaSet",
    "ReplicationController",
    "StatefulSet",
)
