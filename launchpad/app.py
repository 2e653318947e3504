from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from launchpad import __version__
from launchpad.core.logging import log
from launchpad.routes.indexer_api import router as indexer_router
from launchpad.routes.realtime_ws import router as realtime_router
from launchpad.routes.rewards_api import router as rewards_router
from launchpad.runtime import LaunchpadRuntime


def create_app(runtime: Optional[LaunchpadRuntime] = None, start_background: bool = True) -> FastAPI:
    """Build the API app.

    ``runtime`` is built from settings when omitted. ``start_background=False``
    serves the routes without starting the watcher or the scheduled jobs.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        rt = app.state.runtime
        if start_background:
            await rt.start()
        try:
            yield
        finally:
            if start_background:
                await rt.stop()
            else:
                rt.broadcaster.close()

    app = FastAPI(title="Launchpad Ledger", version=__version__, lifespan=lifespan)
    app.state.runtime = runtime or LaunchpadRuntime.build()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(rewards_router)
    app.include_router(indexer_router)
    app.include_router(realtime_router)

    @app.get("/api/status")
    async def status():
        return {"status": "FastAPI backend online 🚀"}

    log.debug("API app created", source="App")
    return app


def main() -> None:
    import uvicorn

    uvicorn.run("launchpad.app:create_app", factory=True, host="0.0.0.0", port=5000)


if __name__ == "__main__":
    main()
