# Imports from standard library or third-party packages
import logging
import os
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError

# Imports from this project
from config import Settings, get_settings
from database import Database
from errors import INTERNAL_ERROR_DETAIL
from routers import admin, auth, tasks
from services.accounts import ensure_default_admin
from utils.uploads import UPLOADS_URL_PREFIX


def create_default_admin(database: Database, settings: Settings):
    """Crée un utilisateur administrateur par défaut s'il n'existe pas."""
    db = database.session()
    try:
        ensure_default_admin(
            db,
            settings.default_admin_email,
            settings.default_admin_password,
            settings.default_admin_username,
        )
    finally:
        db.close()


def _validation_message(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path"))
        messages.append(f"{location}: {error.get('msg')}" if location else error.get("msg", ""))
    return "Requête invalide - " + "; ".join(messages)


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"detail": _validation_message(exc)})

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError):
        logging.exception(f"Erreur de base de données sur {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"detail": INTERNAL_ERROR_DETAIL})

    @app.exception_handler(Exception)
    async def unexpected_exception_handler(request: Request, exc: Exception):
        logging.exception(f"Erreur inattendue sur {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"detail": INTERNAL_ERROR_DETAIL})


def create_app(settings: Optional[Settings] = None):
    """Crée et configure l'instance de l'application FastAPI."""
    settings = settings or get_settings()

    logging.basicConfig(level=settings.log_level, format='%(asctime)s - %(levelname)s - %(message)s')

    app = FastAPI(
        title="Task Manager API",
        description="API de gestion des tâches avec rôles ADMIN et USER",
        version="1.0.0"
    )
    app.state.settings = settings
    app.state.db = Database(settings.database_url)

    # Événements de démarrage et d'arrêt
    @app.on_event("startup")
    def on_startup():
        app.state.db.create_tables()
        create_default_admin(app.state.db, settings)
        logging.info("Base de données prête")

    @app.on_event("shutdown")
    def on_shutdown():
        app.state.db.close()

    # Configuration CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Inclusion des routeurs
    app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
    app.include_router(tasks.router, prefix="/api/tasks", tags=["Tasks"])
    app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])

    # Pièces jointes servies en statique
    os.makedirs(settings.upload_dir, exist_ok=True)
    app.mount(f"/{UPLOADS_URL_PREFIX}", StaticFiles(directory=settings.upload_dir), name="uploads")

    @app.get("/", tags=["Root"])
    def read_root():
        return {"message": "Bienvenue sur l'API de gestion des tâches !"}

    return app
