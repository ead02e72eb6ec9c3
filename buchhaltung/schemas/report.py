from pydantic import BaseModel
from typing import List, Optional, Union

# Any changes to these schemas must be reflected in BOTH JSON and PDF Kontoblatt formats.

class KontoblattRow(BaseModel):
    id: Optional[Union[int, str]] = None
    datum: str = ""
    buchungstext: str = ""
    gegenkonto: Optional[Union[int, str]] = None
    soll: float = 0.0
    haben: float = 0.0
    saldo: float = 0.0
    kategorie: str = ""

class KontoblattSummary(BaseModel):
    count: int = 0
    total_soll: float = 0.0
    total_haben: float = 0.0
    saldo: float = 0.0

class KontoOverview(BaseModel):
    konto: int
    name: str = ""
    summary: KontoblattSummary

class KontoSheet(BaseModel):
    konto: int
    name: str = ""
    rows: List[KontoblattRow] = []
    summary: KontoblattSummary
