"""
CSV import mapping.

Three sources feed the ledger:

* bank statements (rows already split by the browser) are mapped into a staged
  ``import.json`` document,
* credit card statements ("KK") with a ``Rechnungsperiode`` header, semicolon
  or tab separated,
* xfact invoice exports, tab separated.

Parsers return plain dicts in the ledger's field layout. Ids are assigned when
the rows are appended to the ledger, not here.
"""
import csv
import io
import logging
import re
from typing import Any, Dict, List, Optional

from buchhaltung.core.config import settings
from buchhaltung.core.exceptions import CsvImportError

logger = logging.getLogger(__name__)

_GERMAN_DATE = re.compile(r"^\d{2}\.\d{2}\.\d{4}$")
_LEADING_NUMBER = re.compile(r"^\s*[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?")

KK_HEADER = "Rechnungsperiode"
KK_REQUIRED = ["Buchungsdatum", "Buchungsdetails"]
KK_CREDIT_COLUMN = "Gutschrift in CHF"
KK_DEBIT_COLUMN = "Lastschrift in CHF"

XFACT_REQUIRED = ["R-Dat", "Bezeichnung", "Betrag"]
NO_VALID_ROWS = "Keine gültigen Daten in der CSV-Datei gefunden"

KK_DESCRIPTION = "Buchungsdatum → Datum, Buchungsdetails → Buchungstext, Gutschrift/Lastschrift → Betrag, {konto} ↔ {clearing}"
XFACT_DESCRIPTION = "R-Dat → Datum, Bezeichnung → Buchungstext, Betrag → Betrag, {soll} → Soll, {haben} → Haben"


def format_date_to_iso(date_str: Optional[str]) -> str:
    """``DD.MM.YYYY`` -> ``YYYY-MM-DD``; anything else is returned unchanged."""
    if not date_str or not _GERMAN_DATE.match(date_str):
        return date_str or ""
    day, month, year = date_str.split(".")
    return f"{year}-{month}-{day}"


def parse_amount(value: Any) -> float:
    """Lenient number parsing: ``1'234,50`` -> 1234.5, junk -> 0.0."""
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).replace("'", "").replace('"', "").replace(",", ".", 1)
    match = _LEADING_NUMBER.match(text)
    if not match:
        return 0.0
    try:
        return float(match.group(0))
    except ValueError:
        return 0.0


def account_from_filename(file_name: Optional[str]) -> str:
    """First four digits found in the filename, e.g. ``1020_2024.csv`` -> ``1020``."""
    digits = re.sub(r"\D", "", file_name or "")[:4]
    return digits or settings.DEFAULT_IMPORT_ACCOUNT


def _split_lines(content: str) -> List[str]:
    return [line.rstrip("\r") for line in content.split("\n") if line.strip()]


def _read_rows(lines: List[str], delimiter: str) -> List[List[str]]:
    """Split lines into cells; quoted cells may contain the delimiter."""
    return list(csv.reader(io.StringIO("\n".join(lines)), delimiter=delimiter))


def map_bank_records(
    records: List[Dict[str, Any]],
    file_name: str,
    max_id: int,
    import_date: Optional[str] = None,
) -> Dict[str, Any]:
    """Map browser-parsed bank statement rows into the staged import document."""
    konto = account_from_filename(file_name)
    clearing = settings.CLEARING_ACCOUNT
    mapped = []

    for index, record in enumerate(records):
        betrag = parse_amount(record.get("betrag"))

        if betrag < 0:
            soll, haben, final_betrag = clearing, int(konto), abs(betrag)
        else:
            soll, haben, final_betrag = int(konto), clearing, betrag

        datum = format_date_to_iso(record.get("datum") or "")
        valuta = format_date_to_iso(record.get("valuta") or "")
        text = record.get("avisierungstext") or ""

        mapped.append({
            "id": max_id + 1 + index,
            "datum": datum,
            "soll": soll,
            "haben": haben,
            "buchungstext": text,
            "betrag": final_betrag,
            "originaltext": text,
            "sollkd": None,
            "wer": None,
            "was": None,
            "classifier": None,
            "testfield": None,
            "subkonto": 0,
            "class": None,
            "sollSaldo": 0,
            "habenSaldo": 0,
            "kategorie": "",
            "kto": valuta or datum,
            "datestr": datum,
            "_original": {
                "gutschrift": record.get("gutschrift"),
                "lastschrift": record.get("lastschrift"),
                "valuta": record.get("valuta"),
                "saldo": record.get("saldo"),
            },
        })

    return {
        "metadata": {
            "originalFileName": file_name,
            "importDate": import_date,
            "recordCount": len(mapped),
            "importedBy": "CSV Import System",
            "mapping": {
                "firstFourDigitsFromFilename": konto,
                "largestExistingId": max_id,
                "startingNewId": max_id + 1,
                "description": (
                    f"IDs start from largest buchungen.json ID + 1. "
                    f"Negative amounts: soll={clearing}, haben=first4digits, betrag=abs(betrag). "
                    f"Positive amounts: soll=first4digits, haben={clearing}"
                ),
            },
        },
        "data": mapped,
    }


def parse_kk_csv(content: str) -> List[Dict[str, Any]]:
    """Parse a credit card statement into ledger rows."""
    lines = [line.strip(" ") for line in _split_lines(content)]
    logger.info(f"Total lines in CSV: {len(lines)}")

    header_index = next(
        (i for i, line in enumerate(lines) if line.startswith(f"{KK_HEADER};") or line.startswith(f"{KK_HEADER}\t")),
        -1,
    )
    if header_index == -1:
        raise CsvImportError(f'CSV-Header nicht gefunden. Erwartet: "{KK_HEADER};Buchungsdatum;..."')

    header_line = lines[header_index]
    delimiter = "\t" if "\t" in header_line else ";"
    rows = _read_rows(lines[header_index:], delimiter)
    headers = [h.strip() for h in rows[0]]
    logger.debug(f"CSV headers at line {header_index + 1}: {headers}")

    missing = [h for h in KK_REQUIRED if h not in headers]
    if missing:
        raise CsvImportError(f"Fehlende erforderliche Spalten: {', '.join(missing)}")

    date_idx = headers.index("Buchungsdatum")
    details_idx = headers.index("Buchungsdetails")
    credit_idx = headers.index(KK_CREDIT_COLUMN) if KK_CREDIT_COLUMN in headers else None
    debit_idx = headers.index(KK_DEBIT_COLUMN) if KK_DEBIT_COLUMN in headers else None

    konto = settings.CREDIT_CARD_ACCOUNT
    clearing = settings.CLEARING_ACCOUNT
    records = []

    for line_no, row in enumerate(rows[1:], start=header_index + 2):
        values = [v.strip() for v in row]
        if len(values) < len(headers):
            logger.debug(f"Skipping line {line_no}: insufficient columns")
            continue

        buchungsdatum = values[date_idx]
        details = values[details_idx]
        if not buchungsdatum or not details:
            logger.debug(f"Skipping empty record at line {line_no}")
            continue

        credit = values[credit_idx].replace("'", "").replace('"', "") if credit_idx is not None else ""
        debit = values[debit_idx].replace("'", "").replace('"', "") if debit_idx is not None else ""

        if credit:
            betrag = parse_amount(credit)
            soll, haben = konto, clearing
        elif debit:
            betrag = -parse_amount(debit)
            soll, haben = clearing, konto
        else:
            logger.debug(f"Skipping line {line_no}: no amount found")
            continue

        records.append({
            "datum": format_date_to_iso(buchungsdatum),
            "buchungstext": re.sub(r"^[\"']|[\"']$", "", details),
            "betrag": betrag,
            "soll": soll,
            "haben": haben,
            "kategorie": "",
            "bereich": "",
        })

    if not records:
        raise CsvImportError(NO_VALID_ROWS)
    logger.info(f"Parsed {len(records)} records from credit card CSV")
    return records


def parse_xfact_csv(content: str) -> List[Dict[str, Any]]:
    """Parse a tab separated xfact invoice export into ledger rows."""
    lines = _split_lines(content)
    if len(lines) < 2:
        raise CsvImportError("CSV-Datei muss mindestens eine Kopfzeile und eine Datenzeile enthalten")

    rows = _read_rows(lines, "\t")
    headers = [h.strip() for h in rows[0]]
    missing = [h for h in XFACT_REQUIRED if h not in headers]
    if missing:
        raise CsvImportError(f"Fehlende erforderliche Spalten: {', '.join(missing)}")

    records = []
    for line_no, values in enumerate(rows[1:], start=2):
        row = {header: (values[i].strip() if i < len(values) else "") for i, header in enumerate(headers)}

        if not row["Bezeichnung"] or not row["Betrag"]:
            logger.debug(f"Skipping empty record at line {line_no}")
            continue

        records.append({
            "datum": format_date_to_iso(row["R-Dat"]),
            "buchungstext": row["Bezeichnung"],
            "betrag": parse_amount(row["Betrag"]),
            "soll": settings.XFACT_SOLL,
            "haben": settings.XFACT_HABEN,
            "kategorie": row.get("Art", ""),
            "bereich": "",
            "adresse": row.get("Adresse", ""),
            "auftragNr": row.get("Auft. Nr", ""),
            "rechNr": row.get("Rech. Nr", ""),
            "originalDatum": row.get("Datum", ""),
        })

    if not records:
        raise CsvImportError(NO_VALID_ROWS)
    logger.info(f"Parsed {len(records)} records from xfact CSV")
    return records


def kk_description() -> str:
    return KK_DESCRIPTION.format(konto=settings.CREDIT_CARD_ACCOUNT, clearing=settings.CLEARING_ACCOUNT)


def xfact_description() -> str:
    return XFACT_DESCRIPTION.format(soll=settings.XFACT_SOLL, haben=settings.XFACT_HABEN)
