"""Role-based access control for the inventory API.

Super admins see and manage every school. Everyone else is confined to
the school on their account and may only write the resources their role
manages.
"""

from ..models import Asset, AssetIncident, Classroom, School

SCHOOL_MANAGERS = ("super_admin", "school_admin")
CATALOG_MANAGERS = ("super_admin", "inventory_manager")
ASSET_MANAGERS = ("super_admin", "school_admin", "inventory_manager")


def get_user_role(user) -> str:
    if user.is_super_admin:
        return "super_admin"
    return user.role


def can_manage_schools(user) -> bool:
    return get_user_role(user) in SCHOOL_MANAGERS


def can_manage_catalog(user) -> bool:
    """Categories and templates."""
    return get_user_role(user) in CATALOG_MANAGERS


def can_manage_assets(user) -> bool:
    return get_user_role(user) in ASSET_MANAGERS


def can_access_school(user, school_id) -> bool:
    if user.is_super_admin:
        return True
    return school_id is not None and str(school_id) == str(user.school_id)


def scope_schools(user, queryset=None):
    if queryset is None:
        queryset = School.objects.all()
    if user.is_super_admin:
        return queryset
    if user.school_id is None:
        return queryset.none()
    return queryset.filter(pk=user.school_id)


def scope_classrooms(user, queryset=None):
    if queryset is None:
        queryset = Classroom.objects.select_related("school")
    if user.is_super_admin:
        return queryset
    if user.school_id is None:
        return queryset.none()
    return queryset.filter(school_id=user.school_id)


def scope_assets(user, queryset=None):
    """Assets visible to ``user``.

    Assets without a classroom belong to no school, so only super admins
    see them.
    """
    if queryset is None:
        queryset = Asset.objects.with_related()
    if user.is_super_admin:
        return queryset
    if user.school_id is None:
        return queryset.none()
    return queryset.filter(classroom__school_id=user.school_id)


def scope_incidents(user, queryset=None):
    if queryset is None:
        queryset = AssetIncident.objects.select_related(
            "asset", "asset__template", "asset__classroom", "reported_by"
        )
    if user.is_super_admin:
        return queryset
    if user.school_id is None:
        return queryset.none()
    return queryset.filter(asset__classroom__school_id=user.school_id)
