from __future__ import annotations

from podleader.errors import MalformedOwnerError
from podleader.models import LockRecord, OwnerReference


def is_own_record(record: LockRecord, owner: OwnerReference) -> bool:
    """Return True if ``record`` is owned by ``owner``.

    Owners are compared by uid (and kind), never by name alone: a restarted
    pod may reuse its predecessor's name while being a different object.
    Missing uids cannot be compared and raise MalformedOwnerError.
    """
    if not owner.uid:
        raise MalformedOwnerError(f"owner reference {owner.kind}/{owner.name} has no uid")
    for existing in record.owner_references:
        if not existing.uid:
            raise MalformedOwnerError(
                f"lock {record.namespace}/{record.name} has an owner reference "
                f"without uid ({existing.kind}/{existing.name})"
            )
        if existing.uid == owner.uid and existing.kind == owner.kind:
            return True
    return False
