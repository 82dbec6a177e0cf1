# api/main.py

import os
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import stats
from errors import ConfigurationError, ReportUnavailable

# Charge .env en local uniquement (en prod les vars sont injectées)
load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s [%(levelname)s] %(name)s : %(message)s",
)
logger = logging.getLogger("crm_analytics.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("CRM Analytics API : démarrage")
    yield
    logger.info("CRM Analytics API : arrêt")


app = FastAPI(
    title="CRM Analytics API",
    version="1.0.0",
    description="Rapports agrégés du CRM (lecture seule)",
    lifespan=lifespan,
)

# ─────────────────────────────────────────
# CORS
# ─────────────────────────────────────────
# FRONTEND_ORIGINS="https://crm.example.com,https://admin.example.com"
frontend_origins = os.getenv("FRONTEND_ORIGINS", "")
origins = [
    "http://localhost:5173",   # front Vite local
    "http://localhost:3000",
]

if frontend_origins:
    origins.extend([o.strip() for o in frontend_origins.split(",") if o.strip()])

origins = sorted(set(origins))

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],  # inclut X-API-KEY
)

# ─────────────────────────────────────────
# ROUTES
# ─────────────────────────────────────────
app.include_router(stats.router, prefix="/stats", tags=["stats"])

# ─────────────────────────────────────────
# HEALTH
# ─────────────────────────────────────────
@app.get("/health")
def health() -> dict:
    return {"status": "ok", "service": "crm-analytics"}

# ─────────────────────────────────────────
# ERREURS GLOBALES
# ─────────────────────────────────────────
@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(ReportUnavailable)
async def report_unavailable_handler(request: Request, exc: ReportUnavailable):
    logger.error(f"Rapport indisponible : {request.method} {request.url}: {exc}")
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Erreur non gérée : {request.method} {request.url}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": "Erreur interne", "detail": str(exc)},
    )


# ─────────────────────────────────────────
# LANCEMENT
# ─────────────────────────────────────────
def main() -> None:
    import uvicorn

    port = int(os.getenv("API_PORT", "8000"))
    logger.info(f"CRM Analytics API : écoute sur 0.0.0.0:{port}")
    uvicorn.run(
        app,
        host=os.getenv("API_HOST", "0.0.0.0"),
        port=port,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()
