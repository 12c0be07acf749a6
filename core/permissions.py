from rest_framework import permissions


class HasActorRole(permissions.BasePermission):
    """
    Allow authenticated users whose role is in ``allowed_roles``.

    Superusers act as ``admin``.
    """
    allowed_roles = ()
    message = 'Access denied'

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return user.actor_role in self.allowed_roles


class IsAdmin(HasActorRole):
    allowed_roles = ('admin',)


class IsPresalesOrAdmin(HasActorRole):
    allowed_roles = ('presales', 'admin')


class IsSalesOrAdmin(HasActorRole):
    allowed_roles = ('sales', 'admin')


class IsStaffRole(HasActorRole):
    """Presales, Sales and Admin: every role that works the pipeline."""
    allowed_roles = ('presales', 'sales', 'admin')


class IsAdminOrReadOnly(permissions.BasePermission):
    """
    Read access for every authenticated user, writes for admins only.
    """
    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        if request.method in permissions.SAFE_METHODS:
            return True
        return request.user.actor_role == 'admin'
