# greenmarket/models/user.py
from enum import Enum
from pydantic import BaseModel

class UserRole(str, Enum):
    BUYER = "buyer"
    FARMER = "farmer"
    ADMIN = "admin"

class CurrentUser(BaseModel):
    """Identity carried by a verified bearer token"""
    user_id: int
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_farmer(self) -> bool:
        return self.role == UserRole.FARMER
