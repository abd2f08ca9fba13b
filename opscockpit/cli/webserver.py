import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi import Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.types import Scope
from tap import Tap

from opscockpit.config import CockpitConfig
from opscockpit.config import ConfigError
from opscockpit.config import load_config
from opscockpit.logging_util import setup_structlog
from opscockpit.web.app_context import create_app_context
from opscockpit.web.router_execute import router as execute_router
from opscockpit.web.router_jobs import router as jobs_router

logger = structlog.stdlib.get_logger(__name__)

DB_URL_ENV_VAR = "DB_URL"
STATIC_PATH_ENV_VAR = "OPSCOCKPIT_STATIC_PATH"
SHUTDOWN_GRACE_PERIOD_SECONDS = 30.0


# By default, the browser is free to cache web sites, images, ...,
# arbitrarily long. For the bundled frontend that means users keep
# running stale Javascript after an update. So:
#
# - index.html is never cached (it's tiny anyways)
# - index.html references hashed bundle names, so those can be cached forever
#
# https://stackoverflow.com/a/2068407
class CacheControlledStaticFiles(StaticFiles):
    async def get_response(self, path: str, scope: Scope) -> Response:
        # "." is what starlette hands us for the directory itself, which serves index.html
        if "index.html" not in path and path not in ("", "."):
            return await super().get_response(path, scope)

        # Prevent starlette from just returning "everything still valid, 304!"
        scope["headers"] = [
            (k, v)
            for k, v in scope["headers"]
            if k.lower() not in (b"if-modified-since", b"if-none-match")
        ]
        response = await super().get_response(path, scope)
        # HTTP 1.1
        response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
        # HTTP 1.0 and ancient clients
        response.headers["Pragma"] = "no-cache"
        response.headers["Expires"] = "0"
        return response


def create_app(
    config: CockpitConfig,
    db_url: str,
    static_folder: None | Path = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        context = create_app_context(db_url, config)
        app.state.context = context
        logger.info(f"serving {len(config.commands)} command(s)")
        yield
        await context.shutdown(SHUTDOWN_GRACE_PERIOD_SECONDS)

    app = FastAPI(title="opscockpit", version="1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.include_router(execute_router)
    app.include_router(jobs_router)

    # Mounted after the API routes, so /api/* still reaches the routers
    real_static_folder = (
        static_folder
        if static_folder is not None
        else Path(
            os.environ.get(STATIC_PATH_ENV_VAR, str(Path.cwd() / "frontend" / "dist"))
        )
    )
    if real_static_folder.is_dir():
        app.mount(
            "/",
            CacheControlledStaticFiles(directory=real_static_folder, html=True),
            name="static",
        )
    return app


class Arguments(Tap):
    host: str = "0.0.0.0"  # Interface to listen on
    port: int = int(os.environ.get("PORT", "3000"))  # Port to listen on (default: $PORT or 3000)
    config_file: None | Path = None  # YAML file with the commands (default: $OPSCOCKPIT_CONFIG or ~/.config/opscockpit/config.yml)
    db_url: None | str = None  # SQLAlchemy async URL of the database (default: $DB_URL)


def main() -> None:  # pragma: no cover
    setup_structlog()
    args = Arguments(underscores_to_dashes=True).parse_args()

    db_url = args.db_url if args.db_url is not None else os.environ.get(DB_URL_ENV_VAR)
    if db_url is None:
        raise SystemExit(f"no database given, use --db-url or ${DB_URL_ENV_VAR}")
    try:
        config = load_config(args.config_file)
    except ConfigError as e:
        raise SystemExit(e.message)

    logger.info(f"Server running on port {args.port}")
    uvicorn.run(create_app(config, db_url), host=args.host, port=args.port)


if __name__ == "__main__":  # pragma: no cover
    main()
