from dataclasses import dataclass

ADMIN_SCOPES = {"profile:write", "jobs:read", "jobs:write", "applications:write", "admin:write"}
EMPLOYER_SCOPES = {"profile:write", "jobs:read", "jobs:write", "applications:write"}
UNAPPROVED_SCOPES = {"profile:write"}


@dataclass(slots=True)
class Principal:
    subject: str
    scopes: set[str]
    role: str = "user"
    status: str = "incomplete"
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def require_scopes(self, required: set[str]) -> None:
        missing = required - self.scopes
        if missing:
            raise PermissionError(f"missing required scopes: {sorted(missing)}")


def scopes_for(role: str, status: str) -> set[str]:
    if role == "admin":
        return set(ADMIN_SCOPES)
    if status == "approved":
        return set(EMPLOYER_SCOPES)
    return set(UNAPPROVED_SCOPES)
