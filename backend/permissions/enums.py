"""Permission kinds stored in ``page_permissions.permission_id``."""

from enum import IntEnum


class Permission(IntEnum):
    READ = 1
    WRITE = 2
    UPDATE = 3
    DELETE = 4

    @property
    def label(self) -> str:
        """Display name used in policy names and API payloads ("Read")."""
        return self.name.capitalize()

    @classmethod
    def from_label(cls, label: str) -> "Permission":
        try:
            return cls[label.strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown permission: {label!r}") from None

    @classmethod
    def label_of(cls, permission_id: int) -> str:
        """Label for a stored id; ids that are no known kind come back as digits."""
        try:
            return cls(permission_id).label
        except ValueError:
            return str(permission_id)
