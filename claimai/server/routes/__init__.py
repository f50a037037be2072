"""Route registration."""

from fastapi import FastAPI


def register_routes(app: FastAPI) -> None:
    """Register all API routes."""
    from claimai.server.routes.chat import router as chat_router
    from claimai.server.routes.health import router as health_router
    from claimai.server.routes.threads import router as threads_router
    from claimai.server.routes.workers import router as workers_router

    app.include_router(health_router)
    app.include_router(chat_router, prefix="/api")
    app.include_router(workers_router, prefix="/api")
    app.include_router(threads_router, prefix="/api")
