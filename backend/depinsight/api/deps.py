"""
FastAPI dependencies.

The cache and the upstream clients are created once per application in the
startup hook and stored on `app.state`; everything else is built per request
on top of them.
"""

from fastapi import Depends, Request

from depinsight.core.cache import BaseCache
from depinsight.services.install_size import InstallSizeCalculator
from depinsight.services.osv import OsvClient
from depinsight.services.registry import NpmRegistryClient
from depinsight.services.resolver import DependencyGraphResolver
from depinsight.services.vulnerabilities import VulnerabilityScanner


def get_cache(request: Request) -> BaseCache:
    return request.app.state.cache


def get_registry_client(request: Request) -> NpmRegistryClient:
    return request.app.state.registry_client


def get_osv_client(request: Request) -> OsvClient:
    return request.app.state.osv_client


def get_resolver(
    registry: NpmRegistryClient = Depends(get_registry_client),
) -> DependencyGraphResolver:
    return DependencyGraphResolver(registry)


def get_install_size_calculator(
    resolver: DependencyGraphResolver = Depends(get_resolver),
    cache: BaseCache = Depends(get_cache),
) -> InstallSizeCalculator:
    return InstallSizeCalculator(resolver, cache=cache)


def get_vulnerability_scanner(
    resolver: DependencyGraphResolver = Depends(get_resolver),
    osv_client: OsvClient = Depends(get_osv_client),
    cache: BaseCache = Depends(get_cache),
) -> VulnerabilityScanner:
    return VulnerabilityScanner(resolver, osv_client, cache=cache)
