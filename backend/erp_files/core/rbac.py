from __future__ import annotations

import enum
from typing import Dict, Iterable, Optional

from sqlalchemy import or_, true
from sqlalchemy.sql.elements import ColumnElement

from erp_files.core.config import get_settings
from erp_files.models.file import File


class Scope(str, enum.Enum):
    """How much of the client/file data a role may see and act on."""

    all = "all"
    owned = "owned"


class AccessPolicy:
    """
    Declarative role -> scope mapping.

    Roles not listed fall back to `default_scope`. Route handlers never branch on
    role names themselves; they ask the policy for a SQL predicate or a yes/no.
    """

    def __init__(self, scopes: Dict[str, Scope], default_scope: Scope = Scope.owned):
        self.scopes = {k.strip().lower(): v for k, v in scopes.items()}
        self.default_scope = default_scope

    @classmethod
    def from_privileged_roles(cls, roles: Iterable[str]) -> "AccessPolicy":
        return cls({r: Scope.all for r in roles})

    def scope_for(self, role: Optional[str]) -> Scope:
        return self.scopes.get((role or "").strip().lower(), self.default_scope)

    def is_privileged(self, caller) -> bool:
        return self.scope_for(caller.role) == Scope.all

    def file_filter(self, caller) -> ColumnElement:
        """Predicate on `files` rows the caller may see."""
        if self.is_privileged(caller):
            return true()
        return File.uploaded_by == caller.id

    def client_listing_filter(self, caller) -> ColumnElement:
        """
        Predicate on `clients LEFT JOIN files` rows, applied before grouping.

        Non-privileged callers keep their own file rows plus the NULL row of
        clients without any file, so they see file-less clients and clients
        holding at least one of their uploads (counted over their own files only).
        """
        if self.is_privileged(caller):
            return true()
        return or_(File.uploaded_by == caller.id, File.id.is_(None))

    def can_access_file(self, caller, file: File) -> bool:
        return self.is_privileged(caller) or file.uploaded_by == caller.id


def get_access_policy() -> AccessPolicy:
    settings = get_settings()
    return AccessPolicy.from_privileged_roles(settings.privileged_role_set)
