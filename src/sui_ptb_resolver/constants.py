"""
Centralized constants for resolver configuration.

Environment variable overrides:
- SUI_PTB_DEFAULT_RPC_URL: Override the default Sui RPC endpoint
"""

from __future__ import annotations

import os

# Default Sui RPC endpoint (public mainnet fullnode)
DEFAULT_RPC_URL = os.environ.get(
    "SUI_PTB_DEFAULT_RPC_URL",
    "https://fullnode.mainnet.sui.io:443",
)

# Sender used for trial executions; devInspect does not check ownership or gas
ZERO_ADDRESS = "0x" + "0" * 64

# =============================================================================
# Resolution loop
# =============================================================================

DEFAULT_MAX_ITERATIONS = 10
MIN_ITERATIONS = 1
MAX_ITERATIONS = 100

# =============================================================================
# RPC / retry
# =============================================================================

RPC_REQUEST_TIMEOUT_SECONDS = 30.0
DEFAULT_RPC_MAX_ATTEMPTS = 3
DEFAULT_RPC_RETRY_BASE_DELAY = 1.0  # seconds
DEFAULT_RPC_RETRY_MAX_DELAY = 8.0  # seconds
RETRYABLE_HTTP_STATUS = frozenset({429, 500, 502, 503, 504})

# Page size for suix_getDynamicFields
DYNAMIC_FIELDS_PAGE_SIZE = 50

# Fullnodes reject sui_multiGetObjects batches larger than this
MULTI_GET_OBJECTS_BATCH_SIZE = 50

# =============================================================================
# Wire format
# =============================================================================

LOOKUP_KEY_SEPARATOR = 0xFF
ADDRESS_LENGTH = 32
MAX_STRUCTURED_FIELDS = 0xFF
MAX_FIELD_NAME_LENGTH = 0xFF
MAX_FIELD_VALUE_LENGTH = 0xFFFF

# Event type suffixes emitted by resolver entry points
NEEDS_DATA_EVENT = "ResolverNeedsDataEvent"
INSTRUCTIONS_EVENT = "ResolverInstructionsEvent"
ERROR_EVENT = "ResolverErrorEvent"

# Field name whose lookup may fall back to the parent's own type label
PACKAGE_FIELD = "package"
CURRENT_PACKAGE_SUFFIX = "CurrentPackage"
