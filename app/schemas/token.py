# app/schemas/token.py
from pydantic import BaseModel, Field
from typing import Optional


class TokenPayload(BaseModel):
    sub: str  # "sub" is the standard claim for subject (user ID)
    # Parses 'orgId' from the token into the 'org_id' attribute.
    org_id: Optional[str] = Field(default=None, alias="orgId")
    role: Optional[str] = None  # 'admin' grants access to any registration
    exp: int  # Standard claim for expiration time

    model_config = {
        "populate_by_name": True,  # Allow populating by alias
        "from_attributes": True,
    }

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
