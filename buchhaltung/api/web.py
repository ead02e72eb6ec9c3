from fastapi import APIRouter, Request, Query
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from pathlib import Path
from typing import Any, Dict, List, Optional
import json
import logging

from buchhaltung.core.config import settings
from buchhaltung.core.konten import collect_kontos, find_buchung, kontoblatt, kontoblatt_summary
from buchhaltung.db.json_store import buchungen_store, konto_names

router = APIRouter()
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))
logger = logging.getLogger(__name__)


def _buchungen() -> List[Dict[str, Any]]:
    # Pages still render when the ledger file is missing or broken
    try:
        return buchungen_store().records()
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Error loading buchungen for page: {e}")
        return []


@router.get("/", response_class=HTMLResponse)
def index_page(request: Request):
    buchungen = sorted(_buchungen(), key=lambda b: str(b.get("datum") or ""), reverse=True)
    return templates.TemplateResponse(request, "index.html", {
        "title": settings.PROJECT_NAME,
        "buchungen": buchungen,
    })


@router.get("/buchung", response_class=HTMLResponse)
def editor_page(request: Request):
    return templates.TemplateResponse(request, "buchung.html", {
        "title": "Buchungen bearbeiten",
        "buchungen": _buchungen(),
        "konten": konto_names(),
    })


@router.get("/kb", response_class=HTMLResponse)
def kontobuch_page(request: Request, konto: Optional[int] = Query(None)):
    buchungen = _buchungen()
    names = konto_names()

    sheet, summary = None, None
    if konto is not None:
        sheet = kontoblatt(buchungen, konto)
        summary = kontoblatt_summary(sheet)

    return templates.TemplateResponse(request, "kb.html", {
        "title": "Kontobuch",
        "kontos": collect_kontos(buchungen),
        "konten": names,
        "konto": konto,
        "sheet": sheet,
        "summary": summary,
    })


# Registered last: catches every remaining single-segment path
@router.get("/{buchung_id}", response_class=HTMLResponse)
def detail_page(request: Request, buchung_id: str):
    buchung = find_buchung(_buchungen(), buchung_id)
    if buchung is None:
        return templates.TemplateResponse(
            request,
            "404.html",
            {"title": "Nicht gefunden", "buchung_id": buchung_id},
            status_code=404,
        )

    return templates.TemplateResponse(request, "detail.html", {
        "title": f"Buchung {buchung['id']}",
        "buchung": buchung,
        "konten": konto_names(),
    })
