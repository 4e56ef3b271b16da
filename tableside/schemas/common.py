from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional


class ApiModel(BaseModel):
    """Request body accepting both camelCase and snake_case keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


# ---------- auth / restaurant ----------

class SignupIn(ApiModel):
    email: str = Field(min_length=3, max_length=160, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=6)
    owner_name: str = Field(min_length=1)
    restaurant_name: Optional[str] = None
    restaurant_address: Optional[str] = None
    restaurant_phone: Optional[str] = None

class RestaurantIn(ApiModel):
    restaurant_name: str = Field(min_length=1)
    restaurant_address: Optional[str] = None
    restaurant_phone: Optional[str] = None

class RestaurantUpdate(ApiModel):
    restaurant_name: Optional[str] = Field(default=None, min_length=1)
    restaurant_address: Optional[str] = None
    restaurant_phone: Optional[str] = None
    owner_name: Optional[str] = None


# ---------- staff ----------

class StaffIn(ApiModel):
    email: str = Field(min_length=3, max_length=160, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=6)
    name: str = Field(min_length=1)
    role_id: str

class StaffUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1)
    password: Optional[str] = Field(default=None, min_length=6)
    role_id: Optional[str] = None
    is_active: Optional[bool] = None
