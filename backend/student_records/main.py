"""
Point d'entrée principal de l'API de gestion des élèves.
Démarrage : uvicorn student_records.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import student_records.models  # noqa: F401: enregistre tous les modèles dans Base.metadata avant les routers
from student_records.config import settings
from student_records.errors import StudentRecordError
from student_records.routers import auth, students
from student_records.scheduler import start_scheduler, stop_scheduler
from student_records.services.cipher import get_cipher

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Dérive la clé de chiffrement une seule fois puis démarre le scheduler."""
    get_cipher()
    start_scheduler()
    yield
    stop_scheduler()


app = FastAPI(
    title="Student Records API",
    description="API de gestion des fiches élèves avec chiffrement des champs d'identité",
    version="0.1.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


app.include_router(students.router)
app.include_router(auth.router)


@app.exception_handler(StudentRecordError)
async def student_record_error_handler(request: Request, exc: StudentRecordError) -> JSONResponse:
    """Convertit les erreurs métier en réponse JSON avec leur code HTTP."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_content())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Intercepte toutes les exceptions non gérées pour garantir que la réponse 500
    passe bien par CORSMiddleware (qui injecte les headers CORS).
    """
    logger.error("Exception non gérée : %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Une erreur interne est survenue."},
    )


@app.get("/api/health", tags=["Santé"])
def health_check():
    """Vérifie que l'API est opérationnelle."""
    return {"status": "ok", "service": "Student Records API", "version": "0.1.0"}
