import logging
from typing import Optional
from urllib.parse import unquote

from fastapi import APIRouter, Depends, HTTPException, status

from depinsight.api import deps
from depinsight.api.v1.helpers.packages import parse_package_params, validate_package_name
from depinsight.api.v1.helpers.responses import RESP_PACKAGE
from depinsight.services.install_size import InstallSizeCalculator
from depinsight.services.registry import NpmRegistryClient
from depinsight.services.vulnerabilities import VulnerabilityScanner

logger = logging.getLogger(__name__)

router = APIRouter()


def _parse_pkg(pkg: str):
    segments = [segment for segment in pkg.strip().split("/") if segment]
    raw_name, raw_version = parse_package_params(segments)
    name = validate_package_name(unquote(raw_name))
    return name, raw_version


async def _resolve_version(
    registry: NpmRegistryClient, name: str, requested: Optional[str]
) -> str:
    if requested:
        return requested
    try:
        latest = await registry.get_latest_version(name)
    except Exception as e:
        logger.error(f"Failed to fetch package info for {name}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to fetch package info"
        )
    if not latest:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No latest version found")
    return latest


@router.get(
    "/install-size/{pkg:path}",
    summary="Total install size of a package and its dependencies",
    responses={**RESP_PACKAGE},
)
async def get_install_size(
    pkg: str,
    registry: NpmRegistryClient = Depends(deps.get_registry_client),
    calculator: InstallSizeCalculator = Depends(deps.get_install_size_calculator),
):
    """
    Calculate the install size of `name` or `name/v/version`.

    Without a version the `latest` dist-tag is used. Only dependencies that
    install on the configured target platform are counted.
    """
    name, requested_version = _parse_pkg(pkg)
    version = await _resolve_version(registry, name, requested_version)

    try:
        result = await calculator.calculate(name, version)
    except Exception as e:
        logger.error(f"Install size calculation failed for {name}@{version}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to calculate install size"
        )
    return result.to_json()


@router.get(
    "/vulnerabilities/{pkg:path}",
    summary="Vulnerabilities and deprecations across the dependency tree",
    responses={**RESP_PACKAGE},
)
async def get_vulnerabilities(
    pkg: str,
    registry: NpmRegistryClient = Depends(deps.get_registry_client),
    scanner: VulnerabilityScanner = Depends(deps.get_vulnerability_scanner),
):
    """
    Scan every package in the dependency tree of `name` or `name/v/version`.

    `failedQueries > 0` means part of the tree could not be checked.
    """
    name, requested_version = _parse_pkg(pkg)
    version = await _resolve_version(registry, name, requested_version)

    try:
        result = await scanner.analyze(name, version)
    except Exception as e:
        logger.error(f"Vulnerability analysis failed for {name}@{version}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to analyze vulnerabilities"
        )
    return result.to_json()
