from pydantic import BaseModel, EmailStr
from datetime import datetime
from typing import List, Optional
from antraege.schemas.attachment import DeleteFilesResponse


class AntragBase(BaseModel):
    title: str
    summary: str
    first_name: str
    last_name: str
    email: EmailStr


class AntragCreate(AntragBase):
    pass


class AntragResponse(AntragBase):
    id: int
    file_urls: List[str] = []
    status: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AntragSaveResponse(BaseModel):
    antragId: int
    status: str
    fileUrls: List[str]


class AntragDeleteResponse(BaseModel):
    message: str
    antragId: int
    files: DeleteFilesResponse
