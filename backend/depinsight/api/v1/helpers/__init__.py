"""
API v1 Helper Functions

Shared helper functions for the v1 endpoint modules.
"""

from depinsight.api.v1.helpers.packages import (
    package_name_errors,
    parse_package_params,
    validate_package_name,
)

__all__ = [
    "package_name_errors",
    "parse_package_params",
    "validate_package_name",
]
