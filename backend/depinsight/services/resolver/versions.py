import logging
from typing import Iterable, Mapping, Optional

from nodesemver import max_satisfying, valid

from depinsight.core.constants import NON_REGISTRY_PREFIXES, NPM_ALIAS_PREFIX

logger = logging.getLogger(__name__)


def is_registry_specifier(declaration: str) -> bool:
    """False for URLs, git refs, local paths and anything else with a '/'."""
    return not (declaration.startswith(NON_REGISTRY_PREFIXES) or "/" in declaration)


def resolve_version(declaration: str, available_versions: Iterable[str]) -> Optional[str]:
    """
    Resolve a dependency declaration to one concrete version.

    Handles, in order: exact matches, `npm:` aliases (the range after the
    last '@'), non-registry specifiers (never resolvable) and semver ranges
    (highest satisfying version).

    Returns None when nothing matches.
    """
    versions = list(available_versions)

    if declaration in versions:
        return declaration

    if declaration.startswith(NPM_ALIAS_PREFIX):
        at_index = declaration.rfind("@")
        # '@' must come after the prefix, otherwise it is the scope marker
        if at_index > len(NPM_ALIAS_PREFIX):
            return resolve_version(declaration[at_index + 1 :], versions)
        return None

    if not is_registry_specifier(declaration):
        return None

    # Legacy keys that are not strict semver never satisfy a range
    candidates = [v for v in versions if valid(v, loose=False)]

    try:
        return max_satisfying(candidates, declaration)
    except (ValueError, TypeError) as e:
        logger.debug(f"Invalid semver range {declaration!r}: {e}")
        return None


def resolve_dist_tag(declaration: str, dist_tags: Mapping[str, str]) -> str:
    """Replace a bare dist-tag name (e.g. 'latest') with the version it points to."""
    return dist_tags.get(declaration.strip(), declaration)
