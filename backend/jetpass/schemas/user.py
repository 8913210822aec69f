from pydantic import BaseModel

from jetpass.schemas.auth import ClaimsIdentity, ClaimTypes


class ClaimResponse(BaseModel):
    type: str
    value: str
    issuer: str | None = None


class UserResponse(BaseModel):
    id: str | None
    name: str | None
    emails: list[str]
    authentication_type: str | None
    claims: list[ClaimResponse]

    @classmethod
    def from_identity(cls, identity: ClaimsIdentity) -> "UserResponse":
        user_id = identity.find_first(ClaimTypes.NAME_IDENTIFIER)
        return cls(
            id=user_id.value if user_id else None,
            name=identity.name,
            emails=[claim.value for claim in identity.find_all(ClaimTypes.EMAIL)],
            authentication_type=identity.authentication_type,
            claims=[
                ClaimResponse(type=claim.type, value=claim.value, issuer=claim.issuer)
                for claim in identity.claims
            ],
        )
