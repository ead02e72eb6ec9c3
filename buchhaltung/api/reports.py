from fastapi import APIRouter, HTTPException
from fastapi.responses import Response
from datetime import datetime
from typing import Any, Dict, List
import io
import json
import logging
from reportlab.lib.pagesizes import A4
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib import colors

from buchhaltung.core.config import settings
from buchhaltung.core.konten import collect_kontos, kontoblatt, kontoblatt_summary
from buchhaltung.db.json_store import buchungen_store, konto_names
from buchhaltung.schemas.report import KontoOverview, KontoSheet

router = APIRouter()
logger = logging.getLogger(__name__)


def _load_buchungen() -> List[Dict[str, Any]]:
    try:
        return buchungen_store().records()
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Error loading buchungen: {e}")
        raise HTTPException(status_code=500, detail="Failed to load buchungen data")


def internal_get_sheet(konto: int) -> KontoSheet:
    """Helper to build the account sheet for both JSON and PDF endpoints."""
    sheet = kontoblatt(_load_buchungen(), konto)
    return KontoSheet(
        konto=konto,
        name=konto_names().get(str(konto), ""),
        rows=sheet,
        summary=kontoblatt_summary(sheet),
    )


@router.get("/api/kb", response_model=List[KontoOverview])
def list_kontos():
    buchungen = _load_buchungen()
    names = konto_names()
    return [
        KontoOverview(
            konto=konto,
            name=names.get(str(konto), ""),
            summary=kontoblatt_summary(kontoblatt(buchungen, konto)),
        )
        for konto in collect_kontos(buchungen)
    ]


@router.get("/api/kb/{konto}", response_model=KontoSheet)
def get_kontoblatt(konto: int):
    logger.info(f"Kontoblatt requested for konto {konto}")
    return internal_get_sheet(konto)


@router.get("/api/kb/{konto}/pdf")
def get_kontoblatt_pdf(konto: int):
    logger.info(f"PDF Kontoblatt generation STARTED for konto {konto}")

    report = internal_get_sheet(konto)
    if not report.rows:
        raise HTTPException(status_code=404, detail=f"Keine Buchungen für Konto {konto}")

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=A4)
    styles = getSampleStyleSheet()
    elements = []

    title = f"Kontoblatt {report.konto}"
    if report.name:
        title += f" {report.name}"
    elements.append(Paragraph(title, styles['Title']))
    elements.append(Spacer(1, 12))
    elements.append(Paragraph(f"<b>Generated:</b> {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}", styles['Normal']))
    elements.append(Spacer(1, 24))

    cell = ParagraphStyle(name='Cell', fontSize=8, leading=10)
    rows = [["Datum", "Buchungstext", "Gegenkonto", "Soll", "Haben", "Saldo"]]
    for row in report.rows:
        rows.append([
            row.datum,
            Paragraph(row.buchungstext or "", cell),
            str(row.gegenkonto or ""),
            f"{row.soll:.2f}" if row.soll else "",
            f"{row.haben:.2f}" if row.haben else "",
            f"{row.saldo:.2f}",
        ])
    rows.append([
        "",
        "Total",
        "",
        f"{report.summary.total_soll:.2f}",
        f"{report.summary.total_haben:.2f}",
        f"{report.summary.saldo:.2f}",
    ])

    table = Table(rows, colWidths=[65, 200, 60, 60, 60, 60], repeatRows=1)
    table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.navy),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (3, 0), (-1, -1), 'RIGHT'),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
        ('FONTSIZE', (0, 0), (-1, -1), 8),
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey)
    ]))
    elements.append(table)

    elements.append(Spacer(1, 48))
    footer_text = f"{settings.PROJECT_NAME} - {report.summary.count} Buchungen"
    elements.append(Paragraph(footer_text, ParagraphStyle(name='Footer', fontSize=8, textColor=colors.grey, alignment=1)))

    try:
        doc.build(elements)
    except Exception as e:
        logger.error(f"PDF Build Failed: {str(e)}")
        raise HTTPException(status_code=500, detail="PDF generation failed during document build.")

    pdf_bytes = buffer.getvalue()
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f"attachment; filename=Kontoblatt_{konto}.pdf",
            "Content-Length": str(len(pdf_bytes))
        }
    )
