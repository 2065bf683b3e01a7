# storefront/schemas/token.py
from pydantic import BaseModel
from typing import Optional


class TokenPayload(BaseModel):
    sub: str  # buyer id
    email: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None
    exp: int

    model_config = {"from_attributes": True}

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
