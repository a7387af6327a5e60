"""
Package Route Helpers

Parsing and validation of the `{pkg}` path parameter shared by the
registry endpoints.
"""

import re
from typing import List, Optional, Tuple

from fastapi import HTTPException, status

# Characters encodeURIComponent leaves untouched
_URL_SAFE = re.compile(r"^[A-Za-z0-9\-_.!~*'()]+$")
_SCOPED = re.compile(r"^@([^/]+)/([^/]+)$")

_BLOCKED_NAMES = {"node_modules", "favicon.ico"}


def parse_package_params(segments: List[str]) -> Tuple[str, Optional[str]]:
    """
    Split path segments into (package name, version).

    Accepts `name`, `@scope/name`, `name/v/1.0.0` and `@scope/name/v/1.0.0`.
    A trailing `v` without a version is treated as part of the name.
    """
    if "v" in segments:
        v_index = segments.index("v")
        if v_index < len(segments) - 1:
            return "/".join(segments[:v_index]), "/".join(segments[v_index + 1 :])
    return "/".join(segments), None


def package_name_errors(name: str) -> List[str]:
    """
    Problems that make a name invalid for any npm package, old or new.

    Legacy names (uppercase, over-long, special characters) are accepted
    since the registry still serves them.
    """
    errors = []
    if not name:
        return ["name length must be greater than zero"]
    if name.startswith("."):
        errors.append("name cannot start with a period")
    if name.startswith("_"):
        errors.append("name cannot start with an underscore")
    if name.strip() != name:
        errors.append("name cannot contain leading or trailing spaces")
    if name.lower() in _BLOCKED_NAMES:
        errors.append(f"{name} is a blocked name")

    scoped = _SCOPED.match(name)
    if scoped:
        scope, package = scoped.groups()
        if package.startswith("."):
            errors.append("name cannot start with a period")
        if not (_URL_SAFE.match(scope) and _URL_SAFE.match(package)):
            errors.append("name can only contain URL-friendly characters")
    elif not _URL_SAFE.match(name):
        errors.append("name can only contain URL-friendly characters")
    return errors


def validate_package_name(name: str) -> str:
    """Raise a 400 HTTPException for names npm would never accept."""
    errors = package_name_errors(name)
    if errors:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid package name: {errors[0]}",
        )
    return name
