from pydantic import BaseModel
from typing import Optional
from datetime import datetime


class FileOut(BaseModel):
    id: int
    client_id: int
    name: str
    description: Optional[str] = None
    category: str
    path: str
    type: Optional[str] = None
    size: int
    uploaded_by: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
