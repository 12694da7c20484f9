import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Header, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gallery_api.config import Settings, get_settings
from gallery_api.errors import ListingError
from gallery_api.models import ErrorDetail, ErrorResponse, ListingQuery
from gallery_api.service import ListingService

logger = logging.getLogger(__name__)

LISTING_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def create_app(settings: Settings | None = None, service: ListingService | None = None) -> FastAPI:
    settings = settings or get_settings()
    service = service or ListingService(settings)

    logging.basicConfig(level=settings.log_level.upper())

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        logger.info(
            "%s starting (env=%s, bucket=%s)",
            settings.app_name,
            settings.app_env,
            settings.s3_bucket_name,
        )
        yield
        service.cache.clear()

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.listing_service = service

    def error_response(status_code: int, message: str, code: str) -> JSONResponse:
        body = ErrorResponse(error=ErrorDetail(code=code, message=message))
        return JSONResponse(status_code=status_code, content=body.model_dump())

    @app.exception_handler(ListingError)
    async def listing_error_handler(_: Request, exc: ListingError):
        return error_response(exc.status_code, exc.message, exc.code)

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(_: Request, exc: RequestValidationError):
        return error_response(400, "invalid request parameters", "bad_request")

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_: Request, exc: StarletteHTTPException):
        message = str(exc.detail) if exc.detail else "request failed"
        code_map = {
            400: "bad_request",
            404: "not_found",
            405: "method_not_allowed",
        }
        return error_response(exc.status_code, message, code_map.get(exc.status_code, "error"))

    @app.get("/health")
    def health() -> dict:
        return {
            "status": "ok",
            "environment": settings.app_env,
            "cache_entries": len(service.cache),
        }

    @app.api_route("/images", methods=LISTING_METHODS)
    def list_images(
        request: Request,
        prefix: str | None = Query(None),
        max_keys: str | None = Query(None, alias="maxKeys"),
        continuation_token: str | None = Query(None, alias="continuationToken"),
        if_none_match: str | None = Header(None),
    ):
        result = service.handle(
            ListingQuery(
                method=request.method,
                prefix=prefix,
                max_keys=max_keys,
                continuation_token=continuation_token,
                if_none_match=if_none_match,
            )
        )
        if result.body is None:
            return Response(status_code=result.status_code, headers=result.headers)
        return JSONResponse(status_code=result.status_code, content=result.body, headers=result.headers)

    return app


app = create_app()
