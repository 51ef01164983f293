from pydantic import BaseModel

from gatepass.security.proofs.errors import UnauthorizedError


class Identity(BaseModel):
    user_id: str


class StaticIdentityProvider:
    """
    Resolves bearer tokens to identities from a fixed token table.

    Stands at the boundary where a managed auth provider would verify its own tokens.
    """

    def __init__(self, tokens: dict[str, str]) -> None:
        self._tokens = dict(tokens)

    def resolve(self, token: str | None) -> Identity:
        user_id = self._tokens.get(token) if token else None
        if user_id is None:
            raise UnauthorizedError(ticket_id=None, user_id=None)
        return Identity(user_id=user_id)
