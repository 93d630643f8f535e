"""Request-scoped security principal."""

from dataclasses import dataclass

from starlette.authentication import BaseUser


@dataclass(frozen=True)
class Principal(BaseUser):
    """Authenticated caller, created fresh for every request.

    Implements Starlette's BaseUser interface so AuthenticationMiddleware
    exposes it as ``request.user``. Only user_id and telegram_id may be
    used for authorization decisions.

    Attributes:
        user_id: Local user id (users.id)
        telegram_id: Remote Telegram user id
        name: Display name at the time of authentication
    """

    user_id: int
    telegram_id: int
    name: str = ""

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def display_name(self) -> str:
        return self.name

    @property
    def identity(self) -> str:
        return str(self.user_id)
