from pydantic import BaseModel, Field
from typing import List, Optional


class StoreRef(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class Access(BaseModel):
    """Outcome of resolving a chat identity against the user directory."""
    has_access: bool = False
    user_id: Optional[int] = None
    full_name: str = ""
    role_name: Optional[str] = None
    store_id: Optional[int] = None
    active_store_id: Optional[int] = None
    region_id: Optional[int] = None
    is_regional_head: bool = False
    is_store_head: bool = False
    accessible_stores: List[StoreRef] = Field(default_factory=list)

    def find_store(self, store_id: int) -> Optional[StoreRef]:
        return next((s for s in self.accessible_stores if s.id == store_id), None)
