from typing import Any, Dict, List, Optional, Tuple
import logging
import math

logger = logging.getLogger(__name__)

# Sub-ledger ranges: postings on a single debtor/creditor account are moved
# to subsoll/subhaben and booked against the collective account.
DEBITOREN = (1100, 1101, 1199)
KREDITOREN = (2000, 2001, 2099)

TEXT_FIELDS = ("datum", "buchungstext")
CATEGORY_FIELDS = ("kategorie", "bereich")
ACCOUNT_FIELDS = ("soll", "haben")
SUBACCOUNT_FIELDS = ("subsoll", "subhaben")


def to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Invalid account number: {value!r}")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    try:
        return int(text)
    except ValueError:
        number = float(text)
    if not math.isfinite(number):
        raise ValueError(f"Invalid account number: {value!r}")
    return int(number)


def to_float(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    number = float(value) if isinstance(value, (int, float)) else float(str(value).strip().replace(",", "."))
    if not math.isfinite(number):
        raise ValueError(f"Invalid amount: {value!r}")
    return number


def find_buchung(buchungen: List[Dict[str, Any]], buchung_id) -> Optional[Dict[str, Any]]:
    try:
        wanted = int(buchung_id)
    except (TypeError, ValueError):
        return None
    return next((b for b in buchungen if b.get("id") == wanted), None)


def apply_update(buchung: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of ``buchung`` with the provided fields of ``update`` applied.
    Fields missing from ``update`` are preserved. Raises ValueError on
    unparseable numbers.
    """
    updated = dict(buchung)

    for name in TEXT_FIELDS:
        if name in update:
            updated[name] = update[name]
    if "betrag" in update:
        updated["betrag"] = to_float(update["betrag"])
    for name in ACCOUNT_FIELDS:
        if name in update:
            updated[name] = to_int(update[name])
    for name in CATEGORY_FIELDS:
        if name in update:
            updated[name] = update[name] or ""
    for name in SUBACCOUNT_FIELDS:
        if name in update:
            if update[name] in (None, "", 0):
                updated.pop(name, None)
            else:
                updated[name] = to_int(update[name])

    return updated


def collect_kontos(buchungen: List[Dict[str, Any]]) -> List[int]:
    """Sorted unique account codes used as soll or haben."""
    kontos = set()
    for b in buchungen:
        for name in ACCOUNT_FIELDS:
            value = b.get(name)
            if isinstance(value, int):
                kontos.add(value)
    return sorted(kontos)


def _touches(buchung: Dict[str, Any], konto: int) -> Tuple[bool, bool]:
    debit = buchung.get("soll") == konto or buchung.get("subsoll") == konto
    credit = buchung.get("haben") == konto or buchung.get("subhaben") == konto
    return debit, credit


def kontoblatt(buchungen: List[Dict[str, Any]], konto: int) -> List[Dict[str, Any]]:
    """
    Account sheet for ``konto``: every posting that touches the account,
    ordered by date, with a running saldo (debit adds, credit subtracts).
    """
    rows = []
    for b in buchungen:
        debit, credit = _touches(b, konto)
        if debit or credit:
            rows.append((b, debit, credit))
    rows.sort(key=lambda r: (str(r[0].get("datum") or ""), r[0].get("id") or 0))

    saldo = 0.0
    sheet = []
    for b, debit, credit in rows:
        betrag = float(b.get("betrag") or 0)
        soll_betrag = betrag if debit else 0.0
        haben_betrag = betrag if credit else 0.0
        saldo += soll_betrag - haben_betrag
        sheet.append({
            "id": b.get("id"),
            "datum": b.get("datum") or "",
            "buchungstext": b.get("buchungstext") or "",
            "gegenkonto": b.get("haben") if debit else b.get("soll"),
            "soll": round(soll_betrag, 2),
            "haben": round(haben_betrag, 2),
            "saldo": round(saldo, 2),
            "kategorie": b.get("kategorie") or "",
        })
    return sheet


def kontoblatt_summary(sheet: List[Dict[str, Any]]) -> Dict[str, Any]:
    total_soll = sum(row["soll"] for row in sheet)
    total_haben = sum(row["haben"] for row in sheet)
    return {
        "count": len(sheet),
        "total_soll": round(total_soll, 2),
        "total_haben": round(total_haben, 2),
        "saldo": round(total_soll - total_haben, 2),
    }


def restructure_subaccounts(buchungen: List[Dict[str, Any]], parent: int, low: int, high: int) -> int:
    """
    Move soll/haben accounts in ``[low, high]`` to subsoll/subhaben and book
    them on ``parent``. Mutates ``buchungen`` in place, returns the number of
    changed entries.
    """
    updated_count = 0
    for b in buchungen:
        updated = False
        soll = b.get("soll")
        if isinstance(soll, int) and low <= soll <= high:
            b["subsoll"] = soll
            b["soll"] = parent
            updated = True
        haben = b.get("haben")
        if isinstance(haben, int) and low <= haben <= high:
            b["subhaben"] = haben
            b["haben"] = parent
            updated = True
        if updated:
            updated_count += 1
            logger.debug(f"Buchung {b.get('id')}: moved to collective account {parent}")
    return updated_count
