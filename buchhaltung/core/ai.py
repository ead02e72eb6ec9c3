from collections import Counter
from typing import Any, Dict, List
import json
import logging

from openai import OpenAI

from buchhaltung.core.config import settings
from buchhaltung.schemas.kategorie import KategorieVorschlag, SuggestionSource

logger = logging.getLogger(__name__)

# Initialize client (reads OPENAI_API_KEY from the environment)
try:
    client = OpenAI()
except Exception:
    client = None
    logger.warning("OpenAI client could not be initialized. Category suggestions use ledger history only.")

SYSTEM_PROMPT = """
You categorize postings of a small Swiss company's general ledger.
You receive one posting (Buchung) and the categories already in use.

RULES:
1. Prefer an existing kategorie/bereich pair. Invent a new one only if nothing fits.
2. DO NOT change accounts, amounts or dates.
3. Output valid JSON only.

OUTPUT FORMAT:
{
  "kategorie": "...",
  "bereich": "...",
  "reason": "One short sentence"
}
"""


def known_categories(buchungen: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    pairs = Counter(
        (b.get("kategorie") or "", b.get("bereich") or "")
        for b in buchungen
        if b.get("kategorie")
    )
    return [{"kategorie": k, "bereich": bereich, "count": n} for (k, bereich), n in pairs.most_common(50)]


def suggest_from_history(buchung: Dict[str, Any], buchungen: List[Dict[str, Any]]) -> KategorieVorschlag:
    """Most frequent category of other postings with the same text."""
    text = (buchung.get("buchungstext") or "").strip().lower()
    matches = Counter(
        (b.get("kategorie") or "", b.get("bereich") or "")
        for b in buchungen
        if b.get("id") != buchung.get("id")
        and b.get("kategorie")
        and text
        and (b.get("buchungstext") or "").strip().lower() == text
    )
    if not matches:
        return KategorieVorschlag(
            buchung_id=buchung["id"],
            reason="No categorized posting with the same text. Please categorize manually.",
            source=SuggestionSource.FALLBACK,
        )

    (kategorie, bereich), count = matches.most_common(1)[0]
    return KategorieVorschlag(
        buchung_id=buchung["id"],
        kategorie=kategorie,
        bereich=bereich,
        reason=f"Used {count}x for postings with the same text.",
        source=SuggestionSource.HISTORY,
    )


def suggest_kategorie(buchung: Dict[str, Any], buchungen: List[Dict[str, Any]]) -> KategorieVorschlag:
    """Read-only suggestion; the Buchung itself is never modified."""
    fallback = suggest_from_history(buchung, buchungen)
    if not client:
        return fallback

    user_content = f"""
    Buchung: {json.dumps({k: buchung.get(k) for k in ("datum", "buchungstext", "betrag", "soll", "haben")}, ensure_ascii=False)}
    Categories in use: {json.dumps(known_categories(buchungen), ensure_ascii=False)}
    """

    try:
        response = client.chat.completions.create(
            model=settings.OPENAI_MODEL,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_content},
            ],
            temperature=0.0,
            response_format={"type": "json_object"},
        )
        data = json.loads(response.choices[0].message.content)
        return KategorieVorschlag(
            buchung_id=buchung["id"],
            kategorie=str(data.get("kategorie") or ""),
            bereich=str(data.get("bereich") or ""),
            reason=str(data.get("reason") or ""),
            source=SuggestionSource.AI,
        )
    except Exception as e:
        logger.error(f"Category suggestion failed: {e}")
        return fallback
