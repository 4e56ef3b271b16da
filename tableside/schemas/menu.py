from pydantic import Field
from typing import Optional, List
from tableside.schemas.common import ApiModel

MAX_OPTIONS = 20


class CategoryIn(ApiModel):
    name: str = Field(min_length=1, max_length=120)
    description: Optional[str] = None
    is_active: bool = True

class CategoryUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    sort_order: Optional[int] = None


class DepartmentIn(ApiModel):
    name: str = Field(min_length=1, max_length=120)
    description: Optional[str] = None

class DepartmentUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = None


class MenuItemIn(ApiModel):
    name: str = Field(min_length=1, max_length=160)
    description: Optional[str] = None
    price: float = Field(gt=0)
    category_id: str
    department_id: Optional[str] = None
    image: Optional[str] = None
    is_active: bool = True
    is_available: bool = True
    sort_order: Optional[int] = None

class MenuItemUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=160)
    description: Optional[str] = None
    price: Optional[float] = Field(default=None, gt=0)
    category_id: Optional[str] = None
    department_id: Optional[str] = None
    image: Optional[str] = None
    is_active: Optional[bool] = None
    is_available: Optional[bool] = None
    sort_order: Optional[int] = None

class DepartmentAssign(ApiModel):
    department_id: Optional[str] = None


class OptionIn(ApiModel):
    name: str = Field(min_length=1, max_length=120)
    description: Optional[str] = None
    price_add: float = Field(default=0, ge=0)
    is_available: bool = True

class SelectionIn(ApiModel):
    name: str = Field(min_length=1, max_length=120)
    description: Optional[str] = None
    is_required: bool = False
    allow_multiple: bool = False
    sort_order: Optional[int] = None
    options: List[OptionIn] = Field(default_factory=list, max_length=MAX_OPTIONS)

class SelectionUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    description: Optional[str] = None
    is_required: Optional[bool] = None
    allow_multiple: Optional[bool] = None
    sort_order: Optional[int] = None
    # when present, replaces every option of the selection
    options: Optional[List[OptionIn]] = Field(default=None, max_length=MAX_OPTIONS)
