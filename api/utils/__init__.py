"""
Utility functions package for the API server.

This package contains debug logging helpers and the per-page execution locks
used by the mind map pipeline.
"""

from .debug import (
    print__api_debug,
    print__debug,
    print__decoder_debug,
    print__generation_debug,
    print__grouping_debug,
    print__pipeline_debug,
    print__startup_debug,
    print__storage_debug,
)
