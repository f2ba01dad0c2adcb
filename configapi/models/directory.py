"""MojoPortal user directory tables.

Mapped on ``DirectoryBase`` so they are never created alongside the
configuration tables in production; tests create both metadata sets.
The application only ever reads these.
"""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from ..database import DirectoryBase


class DirectoryUser(DirectoryBase):
    __tablename__ = "mp_users"

    user_id = Column(Integer, primary_key=True)
    login_name = Column(String(50), nullable=False, unique=True)
    email = Column(String(100), nullable=True)
    name = Column(String(100), nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)


class DirectoryRole(DirectoryBase):
    __tablename__ = "mp_roles"

    role_id = Column(Integer, primary_key=True)
    role_name = Column(String(50), nullable=False, unique=True)
    display_name = Column(String(50), nullable=True)


class DirectoryUserRole(DirectoryBase):
    __tablename__ = "mp_user_roles"

    user_id = Column(Integer, ForeignKey("mp_users.user_id"), primary_key=True)
    role_id = Column(Integer, ForeignKey("mp_roles.role_id"), primary_key=True)


class CustomerLink(DirectoryBase):
    """Maps a login to the customer it belongs to. Employees usually have none."""

    __tablename__ = "users_cid"

    login_name = Column(String(50), primary_key=True)
    cid = Column(String(50), nullable=False)
