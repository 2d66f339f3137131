"""SQLAlchemy ORM models for the admin credential store.

All models are exported from this module for convenient imports:
    from admin_auth.models import Base, UserModel, ...

- user.py: UserModel (admin_users)
- magic_link_token.py: MagicLinkTokenModel (admin_magic_link_tokens)
- session.py: SessionModel (admin_sessions, FK -> admin_users)
"""

from admin_auth.models.base import Base
from admin_auth.models.magic_link_token import MagicLinkTokenModel
from admin_auth.models.session import SessionModel
from admin_auth.models.user import UserModel

__all__ = [
    "Base",
    "MagicLinkTokenModel",
    "SessionModel",
    "UserModel",
]
