"""Authentication: JWT verification and role checks."""

from src.modules.auth.auth import AuthenticatedUser, get_current_user, require_admin
