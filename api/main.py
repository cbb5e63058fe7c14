import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.log_buffer import log_buffer
from api.routers import index, logs, search
from api.settings import settings
from mail_search import SearchManager

# Attach in-process log capture to all mail_search loggers
logging.getLogger("mail_search").addHandler(log_buffer)
logging.getLogger("mail_search").setLevel(logging.INFO)


def create_app(manager: SearchManager | None = None) -> FastAPI:
    app = FastAPI(title="Mail Search API")
    app.state.search_manager = manager or SearchManager()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list(),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(index.router, prefix="/api/index")
    app.include_router(search.router, prefix="/api/search")
    app.include_router(logs.router, prefix="/api/logs")
    return app


app = create_app()
