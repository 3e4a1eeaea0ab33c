"""Exit codes for vix-registry CLI commands.

Every command maps its failure modes onto these values.
"""

# Success
SUCCESS = 0

# Errors
GENERAL_ERROR = 1
INVALID_ARGS = 2
REGISTRY_NOT_FOUND = 3
PACKAGE_NOT_FOUND = 4
NETWORK_ERROR = 5
SNAPSHOT_INVALID = 6
GIT_ERROR = 7
