"""Domain exceptions for the RBAC core."""


class RBACError(Exception):
    """Base exception for authorization core errors."""

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class NotFound(RBACError):
    """Raised when a role, permission, user or assignment is absent."""
    pass


class DuplicateName(RBACError):
    """Raised when a permission or role name already exists."""
    pass


class SystemRoleProtected(RBACError):
    """Raised on a delete or reclassification attempt against a system role."""
    pass


class InsufficientPermissions(RBACError):
    """Raised when the caller lacks a required permission."""

    def __init__(self, permission: str, message: str | None = None):
        self.permission = permission
        super().__init__(message or f"Permission denied: {permission}")
