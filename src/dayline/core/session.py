# src/dayline/core/session.py

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class StaticSession:
    """
    Session with a fixed signed-in user (console / local runs).

    user_id=None models a signed-out session; sign_in/sign_out swap the user
    without rebuilding the services.
    """

    user_id: str | None = None

    def current_user_id(self) -> str | None:
        uid = (self.user_id or "").strip()
        return uid or None

    def sign_in(self, user_id: str) -> None:
        self.user_id = user_id

    def sign_out(self) -> None:
        self.user_id = None
