from pydantic import AliasChoices, BaseModel, Field
from typing import Any, Optional


class RegisterRequest(BaseModel):
    phone: Optional[str] = None
    pin: Optional[str] = Field(default=None, validation_alias=AliasChoices("pin", "mpin"))
    display_name: Optional[str] = Field(
        default=None, max_length=80, validation_alias=AliasChoices("display_name", "full_name")
    )
    model_config = {"extra": "ignore"}


class LoginRequest(BaseModel):
    phone: Optional[str] = None
    pin: Optional[str] = Field(default=None, validation_alias=AliasChoices("pin", "mpin"))
    model_config = {"extra": "ignore"}


class ProviderLoginRequest(BaseModel):
    id_token: Optional[str] = None
    model_config = {"extra": "ignore"}


class ChantCreate(BaseModel):
    # Validated by the ledger so every bad value gets the same 400.
    rounds: Any = None
    occurred_on: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("occurred_on", "chant_date")
    )
    model_config = {"extra": "ignore"}
