from datetime import datetime
from typing import Annotated, List, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
    field_serializer,
    model_validator,
)

# Keys a client may send when updating; anything else rejects the request.
USER_UPDATE_FIELDS = frozenset({"name", "email", "password"})
RECIPE_UPDATE_FIELDS = frozenset(
    {"title", "description", "totalTime", "ingredients", "steps"}
)


def _normalize_email(value):
    if isinstance(value, str):
        return value.strip().lower()
    return value


def _check_password(value: str) -> str:
    if len(value) < 7:
        raise ValueError("Password must contain at least 7 characters.")
    if "password" in value.lower():
        raise ValueError('Password cannot contain the word "password".')
    # bcrypt only accepts 72 bytes of input
    if len(value.encode("utf-8")) > 72:
        raise ValueError("Password must be at most 72 bytes.")
    return value


NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Email = Annotated[EmailStr, BeforeValidator(_normalize_email)]
Password = Annotated[
    str, StringConstraints(strip_whitespace=True), AfterValidator(_check_password)
]
Minutes = Annotated[float, Field(ge=0, allow_inf_nan=False)]


class _PartialUpdate(BaseModel):
    """Every field is optional, but a field that is sent may not be null."""

    @model_validator(mode="after")
    def _no_nulls(self):
        for name in self.model_fields_set:
            if getattr(self, name) is None:
                field = type(self).model_fields[name]
                raise ValueError(f"{field.alias or name} cannot be null.")
        return self


# --- Users ---


class UserCreate(BaseModel):
    name: NonEmptyStr = Field(..., json_schema_extra={"example": "Olivia"})
    email: Email = Field(..., json_schema_extra={"example": "olivia@example.com"})
    password: Password


class UserUpdate(_PartialUpdate):
    name: Optional[NonEmptyStr] = None
    email: Optional[Email] = None
    password: Optional[Password] = None


class Credentials(BaseModel):
    # no format checks here; bad values simply fail to match a user
    email: str
    password: str


class User(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    name: str
    email: str
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")


class AuthResponse(BaseModel):
    user: User
    token: str


# --- Recipes ---


class RecipeCreate(BaseModel):
    title: NonEmptyStr = Field(..., json_schema_extra={"example": "Burrito Bowl"})
    description: NonEmptyStr = Field(
        ..., json_schema_extra={"example": "Burrito in a bowl"}
    )
    total_time: Minutes = Field(..., alias="totalTime")
    ingredients: List[str] = Field(
        default_factory=list,
        json_schema_extra={"example": ["rice", "black beans", "salsa"]},
    )
    steps: List[str] = Field(
        default_factory=list,
        json_schema_extra={"example": ["Cook the rice", "Assemble the bowl"]},
    )


class RecipeUpdate(_PartialUpdate):
    title: Optional[NonEmptyStr] = None
    description: Optional[NonEmptyStr] = None
    total_time: Optional[Minutes] = Field(default=None, alias="totalTime")
    ingredients: Optional[List[str]] = None
    steps: Optional[List[str]] = None


class Recipe(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    title: str
    description: str
    total_time: float = Field(alias="totalTime")
    ingredients: List[str]
    steps: List[str]
    owner_id: int = Field(alias="owner")
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    @field_serializer("total_time")
    def _whole_minutes(self, value: float):
        # 60 goes back out as 60, not 60.0
        return int(value) if value.is_integer() else value
