from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Union

class DocumentFile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str
    file_name: str = Field(alias="fileName")
    size: int = 0
    last_modified: Optional[str] = Field(None, alias="lastModified")
    file_type: str = Field(alias="fileType")
    signed_url: str = Field(alias="signedUrl")
    url: Optional[str] = None
    is_irrelevant: Optional[bool] = Field(None, alias="isIrrelevant")

class MoveDocumentRequest(BaseModel):
    key: Optional[str] = None
    action: Optional[str] = None

class FileKeyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_key: Optional[str] = Field(None, alias="fileKey")
    buchung_id: Optional[Union[int, str]] = Field(None, alias="buchungId")

class AssignAction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: Optional[str] = None
    file_key: Optional[str] = Field(None, alias="fileKey")
    buchung_id: Optional[Union[int, str]] = Field(None, alias="buchungId")
    file_name: Optional[str] = Field(None, alias="fileName")

class RenameRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    old_key: Optional[str] = Field(None, alias="oldKey")
    new_file_name: Optional[str] = Field(None, alias="newFileName")

class IrrelevantDoc(BaseModel):
    """Catalog entry for a document filed as irrelevant. Extra fields are kept."""
    model_config = ConfigDict(extra="allow")

    id: Optional[int] = None
    docname: Optional[str] = None
    partner: Optional[str] = None
    datum: Optional[str] = None
    betrag: Optional[float] = None
