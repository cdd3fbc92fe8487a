# inventory/api/permissions.py

from rest_framework.permissions import BasePermission


class HasModelPermission(BasePermission):
    """
    Require a Django model permission declared on the view.

    Usage:
        permission_classes = [IsAuthenticated, HasModelPermission]
        required_perm = "inventory.add_inventorybatch"
    """

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False

        required = getattr(view, "required_perm", None)
        if not required:
            # deny-by-default when a view forgets to declare it
            return False

        return user.has_perm(required)
