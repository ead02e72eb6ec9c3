from enum import Enum
from pydantic import BaseModel

class SuggestionSource(str, Enum):
    AI = "ai"
    HISTORY = "history"
    FALLBACK = "fallback"

class KategorieVorschlag(BaseModel):
    buchung_id: int
    kategorie: str = ""
    bereich: str = ""
    reason: str = ""
    source: SuggestionSource
