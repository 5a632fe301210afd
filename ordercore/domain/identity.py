# ordercore/domain/identity.py
from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    """
    Kto jest wlascicielem koszyka: zalogowany user ALBO anonimowa sesja.
    Warstwa auth/sesji rozwiazuje to poza silnikiem i przekazuje jawnie.
    """

    user_id: int | None = None
    session_token: str | None = None

    def __post_init__(self):
        if (self.user_id is None) == (self.session_token is None):
            raise ValueError("Identity needs exactly one of user_id or session_token")
        if self.session_token is not None and not self.session_token.strip():
            raise ValueError("Session token cannot be blank")

    @classmethod
    def for_user(cls, user_id: int) -> "Identity":
        return cls(user_id=user_id)

    @classmethod
    def for_session(cls, session_token: str) -> "Identity":
        return cls(session_token=session_token)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def __str__(self) -> str:
        if self.is_authenticated:
            return f"user:{self.user_id}"
        return f"session:{self.session_token[:8]}"
