from typing import Optional

from pydantic import BaseModel, Field


class ProfileResponse(BaseModel):
    id: str
    email: str
    business_name: Optional[str] = None
    phone: Optional[str] = None
    logo_url: Optional[str] = None

    model_config = {"from_attributes": True}


class ProfileUpdate(BaseModel):
    business_name: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = None
