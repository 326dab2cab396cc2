"""Client profile returned by the account endpoint."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class ClientProfile(BaseModel):
    int_account: int
    user_id: int | None = None
    username: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "ClientProfile":
        contact = data.get("firstContact") if isinstance(data.get("firstContact"), dict) else {}
        return cls(
            int_account=data.get("intAccount"),
            user_id=data.get("id"),
            username=data.get("username") or None,
            first_name=contact.get("firstName") or data.get("displayName") or None,
            last_name=contact.get("lastName") or None,
            email=data.get("email") or None,
        )
