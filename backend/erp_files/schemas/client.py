from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class ClientPayload(BaseModel):
    """
    Create/update body. Both fields are required by the handlers, but they are
    optional here so a missing field is answered with the API's own 400 envelope.
    """
    name: Optional[str] = Field(None, max_length=255)
    code: Optional[str] = Field(None, max_length=64)

    def cleaned(self) -> Optional[tuple]:
        """Return (name, code) stripped, or None if either is missing/blank."""
        name = (self.name or "").strip()
        code = (self.code or "").strip()
        if not name or not code:
            return None
        return name, code


class ClientOut(BaseModel):
    id: int
    name: str
    code: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ClientWithCount(ClientOut):
    # Aggregated at query time, never stored
    file_count: int = 0
