from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional

class BankImportRequest(BaseModel):
    """Bank statement rows as split by the browser."""
    model_config = ConfigDict(populate_by_name=True)

    data: Optional[List[Dict[str, Any]]] = None
    file_name: str = Field("", alias="fileName")
    import_date: Optional[str] = Field(None, alias="importDate")

class LedgerImportRequest(BaseModel):
    """Previously parsed rows to append to the ledger."""
    data: Optional[List[Dict[str, Any]]] = None
