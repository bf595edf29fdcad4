# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""PagePermission and RolePermission ORM models."""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base
from permissions.enums import Permission


class PagePermission(Base):
    """A page URL together with one kind of operation it supports."""

    __tablename__ = "page_permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    page_name = Column(String(50), nullable=False)
    # Frontend route, e.g. "/users" – not the /api path
    page_url = Column(String(100), nullable=False, index=True)
    # Permission enum value (1=Read, 2=Write, 3=Update, 4=Delete)
    permission_id = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    role_permissions = relationship("RolePermission", back_populates="page_permission")

    __table_args__ = (
        UniqueConstraint("page_url", "permission_id", name="uq_page_permission"),
    )

    @property
    def permission(self) -> Permission:
        return Permission(self.permission_id)


class RolePermission(Base):
    __tablename__ = "role_permissions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    role_id = Column(
        Integer,
        ForeignKey("roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    page_permission_id = Column(
        Integer,
        ForeignKey("page_permissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    role = relationship("Role", back_populates="role_permissions")
    page_permission = relationship("PagePermission", back_populates="role_permissions")

    __table_args__ = (
        UniqueConstraint("role_id", "page_permission_id", name="uq_role_page_permission"),
    )
