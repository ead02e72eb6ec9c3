from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from pathlib import Path
import logging

from buchhaltung.core.config import settings
from buchhaltung.core.middleware import AuditMiddleware
from buchhaltung.api import health

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)
app.add_middleware(AuditMiddleware)
app.mount("/static", StaticFiles(directory=str(Path(__file__).resolve().parent / "static")), name="static")

# Include routers
app.include_router(health.router)

from buchhaltung.api import buchungen, documents, irrelevant, imports, reports, web
app.include_router(buchungen.router)
app.include_router(documents.router)
app.include_router(irrelevant.router)
app.include_router(imports.router)
app.include_router(reports.router)
# Pages last: /{buchung_id} would shadow everything after it
app.include_router(web.router)

@app.on_event("startup")
async def startup_event():
    logger.info(
        f"{settings.PROJECT_NAME} starting: data in {settings.data_path('')}, "
        f"storage backend {settings.STORAGE_BACKEND}"
    )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
