from pydantic import BaseModel
from typing import List


class AllowedTypesResponse(BaseModel):
    mimeTypes: List[str]
    extensions: str
    maxFileSize: int
    maxTotalSize: int
    maxFileCount: int


class UploadResponse(BaseModel):
    fileUrls: List[str]


class DeleteFilesRequest(BaseModel):
    urls: List[str]


class DeleteFilesResponse(BaseModel):
    success: bool
    deletedUrls: List[str]
