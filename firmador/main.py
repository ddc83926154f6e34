"""
Aplicación FastAPI del firmador de XML (documentos electrónicos y eventos)
"""
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import FirmadorConfig
from .firma.backends import LibrarySigningBackend, ProcessSigningBackend
from .firma.dispatcher import SigningDispatcher
from .firma.exceptions import FirmaError, RouteNotFoundError, UnsupportedMethodError
from .firma.identifier import DocumentFamily
from .firma.pipeline_logger import PipelineLogger
from .firma.storage import ArtifactStore
from .routes_firma import register_firma_routes


def build_dispatcher(config: FirmadorConfig, logger: PipelineLogger) -> SigningDispatcher:
    library_backend = LibrarySigningBackend(logger=logger)
    backends = {
        DocumentFamily.REGULAR: library_backend,
        DocumentFamily.CDC: library_backend,
    }
    if config.java_class_path:
        backends[DocumentFamily.EVENTO] = ProcessSigningBackend(
            java_class_path=config.java_class_path,
            java_bin=config.java_bin,
            main_class=config.java_main_class,
            timeout=config.sign_timeout,
            logger=logger,
        )
    store = ArtifactStore(config.output_dir, logger=logger)
    store.ensure_output_dir()
    return SigningDispatcher(store=store, backends=backends, logger=logger)


def register_exception_handlers(app: FastAPI, logger: PipelineLogger):

    @app.exception_handler(FirmaError)
    async def on_firma_error(request: Request, exc: FirmaError):
        # los errores del pipeline ya se registraron con su etapa
        if exc.stage is None:
            logger.error(exc.message, kind=exc.kind, path=request.url.path)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def on_http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            error = RouteNotFoundError(f"Route {request.url.path} not found")
        elif exc.status_code == 405:
            error = UnsupportedMethodError(f"Unsupported method {request.method}, expected POST")
        else:
            return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})
        logger.error(error.message, kind=error.kind)
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def on_unexpected_error(request: Request, exc: Exception):
        logger.error("Error incorrecto", exc_info=exc, path=request.url.path)
        return JSONResponse(status_code=500, content={"error": "Error incorrecto"})


def create_app(
    config: Optional[FirmadorConfig] = None,
    logger: Optional[PipelineLogger] = None,
    dispatcher: Optional[SigningDispatcher] = None,
) -> FastAPI:
    """
    Construye la aplicación.

    Sin `config` se lee del entorno; si falta una variable requerida se
    lanza FirmadorConfigError y el servidor no inicia.
    """
    if config is None:
        config = FirmadorConfig.from_env()
    if logger is None:
        logger = PipelineLogger("firmador", log_dir=config.log_dir)
    if dispatcher is None:
        dispatcher = build_dispatcher(config, logger)

    app = FastAPI(title="Firmador XML SIFEN")
    app.state.config = config
    app.state.logger = logger
    app.state.dispatcher = dispatcher

    register_exception_handlers(app, logger)
    register_firma_routes(app, dispatcher, config)
    return app
