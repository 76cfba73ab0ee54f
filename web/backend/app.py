import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config_manager import config
from core.exceptions import WeekStreakError
from core.logger import get_logger
from web.backend.routers import content, example_posts, goals, payments, tasks, users

logger = get_logger("api")


def create_app() -> FastAPI:
    app = FastAPI(title="WeekStreak API", version="1.0")

    raw_origins = os.getenv("WEEKSTREAK_ALLOWED_ORIGINS", config.ALLOWED_ORIGINS)
    allow_origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
    allow_credentials = "*" not in allow_origins

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(WeekStreakError)
    async def handle_known_error(request: Request, exc: WeekStreakError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            logger.info("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.code)
        headers = None
        retry_after = getattr(exc, "retry_after", None)
        if retry_after:
            headers = {"Retry-After": str(retry_after)}
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [
            f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
            for err in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "error": "validation_error",
                "message": "Invalid request body",
                "details": {"errors": errors},
            },
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "internal_error", "message": "Internal server error"},
        )

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "service": "WeekStreak"}

    app.include_router(goals.router, prefix="/api/v1/goals", tags=["goals"])
    app.include_router(tasks.router, prefix="/api/v1/tasks", tags=["tasks"])
    app.include_router(example_posts.router, prefix="/api/v1/example-posts", tags=["example-posts"])
    app.include_router(content.router, prefix="/api/v1/content", tags=["content"])
    app.include_router(payments.router, prefix="/api/v1", tags=["payments"])
    app.include_router(users.router, prefix="/api/v1/users", tags=["users"])

    return app


app = create_app()
