"""Route registration — mounts all routers under ``/api/v1``."""

from fastapi import FastAPI

from relocation_server.routes.admin import router as admin_router
from relocation_server.routes.artifacts import router as artifacts_router
from relocation_server.routes.documents import router as documents_router
from relocation_server.routes.flows import router as flows_router
from relocation_server.routes.resources import router as resources_router

API_PREFIX = "/api/v1"


def register_routes(app: FastAPI) -> None:
    """Include all sub-routers under the versioned API prefix."""
    app.include_router(flows_router, prefix=API_PREFIX)
    app.include_router(artifacts_router, prefix=API_PREFIX)
    app.include_router(documents_router, prefix=API_PREFIX)
    app.include_router(resources_router, prefix=API_PREFIX)
    app.include_router(admin_router, prefix=API_PREFIX)
