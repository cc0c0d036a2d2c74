"""
Authz configuration: app role assignments -> application role names.

Role-to-app-role mapping is configured as ROLE_MAP (each role name maps to a
set of appRoleId GUIDs defined on the Azure app registration). Role
inheritance is configured as ROLE_INHERITS (a role can imply other roles).
The role assignment listing comes from the Graph enrichment step.
"""

from typing import Any, List, Set


def assigned_app_role_ids(roles_payload: Any) -> Set[str]:
    """Lower-cased appRoleId values from a Graph appRoleAssignments listing."""
    if not isinstance(roles_payload, dict):
        return set()
    return {
        str(assignment["appRoleId"]).lower()
        for assignment in roles_payload.get("value", [])
        if isinstance(assignment, dict) and assignment.get("appRoleId")
    }


def compute_roles(app_role_ids: Set[str], role_map: dict, role_inherits: dict) -> List[str]:
    """
    Compute role names from assigned appRoleIds.

    First assigns roles whose configured app role ids intersect app_role_ids,
    then expands with role_inherits (e.g. "admin" -> {"support"}) so inherited
    roles are included. Returns a sorted list.
    """
    roles = set()
    for role, ids in role_map.items():
        if app_role_ids & {i.lower() for i in ids if i}:
            roles.add(role)

    # No cycles assumed
    expanded = set(roles)
    stack = list(roles)
    while stack:
        r = stack.pop()
        for implied in role_inherits.get(r, set()):
            if implied not in expanded:
                expanded.add(implied)
                stack.append(implied)

    return sorted(expanded)
