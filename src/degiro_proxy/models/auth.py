"""Login outcome and session models."""

from __future__ import annotations

from enum import IntEnum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class LoginStatus(IntEnum):
    SUCCESS = 0
    SESSION_EXPIRED = 3
    TOTP_NEEDED = 6
    AUTH_FAILED = 9


class LoginSuccess(BaseModel):
    outcome: Literal["success"] = "success"
    session_id: str
    status: int = LoginStatus.SUCCESS


class LoginRequiresTOTP(BaseModel):
    outcome: Literal["requires_totp"] = "requires_totp"


class LoginRejected(BaseModel):
    outcome: Literal["rejected"] = "rejected"
    status: int
    status_text: str = ""

    @property
    def auth_failed(self) -> bool:
        return self.status == LoginStatus.AUTH_FAILED


LoginResult = Annotated[
    Union[LoginSuccess, LoginRequiresTOTP, LoginRejected],
    Field(discriminator="outcome"),
]


class Session(BaseModel):
    """Session handed back to the frontend after a successful login."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: str
    int_account: int
    user_id: int | None = None
    username: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
