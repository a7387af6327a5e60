"""
Shared OpenAPI response definitions for FastAPI route decorators.

Usage:
    from depinsight.api.v1.helpers.responses import RESP_PACKAGE

    @router.get("/install-size/{pkg:path}", responses={**RESP_PACKAGE})
    async def get_install_size(...): ...
"""

RESP_400 = {400: {"description": "Invalid package name"}}
RESP_404 = {404: {"description": "Package or version not found"}}
RESP_502 = {502: {"description": "Upstream registry or vulnerability database failed"}}

RESP_PACKAGE = {**RESP_400, **RESP_404, **RESP_502}
