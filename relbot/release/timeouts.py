from __future__ import annotations

# CI completion wait
CI_TIMEOUT_SECONDS = 30 * 60.0
CI_INTERVAL_SECONDS = 15.0

# Package index / container registry availability wait
ARTIFACT_TIMEOUT_SECONDS = 5 * 60.0
ARTIFACT_INTERVAL_SECONDS = 5.0

# GH / API operations
GH_TIMEOUT_SECONDS = 60.0

# Local git operations (tag, rev-parse, checkout, add, commit)
GIT_TIMEOUT_SECONDS = 30.0

# Network-bound git operations (push)
GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0

# Idempotent read retry policy
RETRY_ATTEMPTS = 3
RETRY_INITIAL_DELAY_SECONDS = 1.0
RETRY_MAX_DELAY_SECONDS = 30.0
