from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class LockRequest(BaseModel):
    amount: int
    authorization: Dict[str, Any]
    signature: str


class UnlockRequest(BaseModel):
    index: int = Field(ge=0)
    authorization: Optional[Dict[str, Any]] = None
    signature: Optional[str] = None


class EarlyWithdrawalRequest(BaseModel):
    account: str
    index: int = Field(ge=0)
    allowed: bool = True


class RoleRequest(BaseModel):
    role: str
    account: str
