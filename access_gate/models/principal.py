from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity resolved by the identity provider.

    Carried through the request via FastAPI's dependency system.

        user_id:      subject id returned by the provider
        app_role:     role claim from the provider's app metadata, if any
                      (lower-cased; used only as an admin shortcut)
        access_token: the bearer credential the principal was resolved
                      from.  Needed by the ambient-identity admin RPC.
                      Excluded from repr so it never reaches a log line.
    """

    user_id: str
    app_role: str | None = None
    access_token: str = field(default="", repr=False)

    def has_admin_claim(self) -> bool:
        return self.app_role == "admin"
