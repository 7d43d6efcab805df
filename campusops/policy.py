"""Role policy: the one table deciding who may mutate what.

Reads are never checked here; any authenticated role may read. New
action/resource pairs belong in ``PERMISSIONS``, not at call sites.
"""
import enum

from .models import Role


class Action(str, enum.Enum):
    create = "create"
    update = "update"
    delete = "delete"
    cancel = "cancel"
    approve = "approve"
    reject = "reject"
    nominate = "nominate"
    manage = "manage"


class Resource(str, enum.Enum):
    election = "election"
    candidate = "candidate"
    vote = "vote"
    booking = "booking"
    facility = "facility"


_EVERYONE = frozenset({
    (Action.create, Resource.candidate),
    (Action.create, Resource.booking),
    (Action.cancel, Resource.booking),
})

PERMISSIONS = {
    Role.student: _EVERYONE | {
        (Action.create, Resource.vote),
    },
    Role.faculty: _EVERYONE | {
        (Action.create, Resource.vote),
        (Action.approve, Resource.candidate),
        (Action.reject, Resource.candidate),
        (Action.manage, Resource.booking),
    },
    Role.admin: _EVERYONE | {
        (Action.create, Resource.election),
        (Action.update, Resource.election),
        (Action.cancel, Resource.election),
        (Action.delete, Resource.election),
        (Action.nominate, Resource.candidate),
        (Action.approve, Resource.candidate),
        (Action.reject, Resource.candidate),
        (Action.manage, Resource.booking),
        (Action.create, Resource.facility),
        (Action.update, Resource.facility),
    },
}


def can_perform(role, action, resource) -> bool:
    """Return whether ``role`` may perform ``action`` on ``resource``.

    Accepts enum members or their string values. Anything not listed in
    ``PERMISSIONS``, including unknown names, is denied.
    """
    try:
        key = (Action(action), Resource(resource))
        allowed = PERMISSIONS[Role(role)]
    except (ValueError, KeyError):
        return False
    return key in allowed
