from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Optional, Union

class Buchung(BaseModel):
    """A ledger posting. Unknown fields (originaltext, adresse, ...) are kept."""
    model_config = ConfigDict(extra="allow")

    id: Optional[int] = None
    datum: str = ""
    buchungstext: str = ""
    betrag: float = 0.0
    soll: Optional[int] = None
    haben: Optional[int] = None
    kategorie: str = ""
    bereich: str = ""
    subsoll: Optional[int] = None
    subhaben: Optional[int] = None

class BuchungUpdate(BaseModel):
    """Partial update; only the fields sent by the client are applied."""
    model_config = ConfigDict(extra="ignore")

    id: int
    datum: Optional[str] = None
    buchungstext: Optional[str] = None
    betrag: Optional[Union[float, str]] = None
    soll: Optional[Union[int, str]] = None
    haben: Optional[Union[int, str]] = None
    kategorie: Optional[str] = None
    bereich: Optional[str] = None
    subsoll: Optional[Union[int, str]] = None
    subhaben: Optional[Union[int, str]] = None

class AssignedDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    original_key: str = Field(alias="originalKey")
    new_key: str = Field(alias="newKey")
    file_name: Optional[str] = Field(None, alias="fileName")
    assigned_at: Optional[str] = Field(None, alias="assignedAt")
    file_type: str = Field("unknown", alias="fileType")
    size: int = 0

class AssignRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    buchung_id: Optional[Union[int, str]] = Field(None, alias="buchungId")
    document_info: Optional[Dict[str, Any]] = Field(None, alias="documentInfo")
