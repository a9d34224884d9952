"""Which persisted services a manifest no longer declares."""

from __future__ import annotations

from collections.abc import Collection, Iterable

from nimbus.app.entities import ServiceRecord


def services_to_delete(
    existing: Iterable[ServiceRecord], desired_names: Collection[str]
) -> list[ServiceRecord]:
    """Persisted services whose name is absent from ``desired_names``.

    Matching is by exact name, so a rename is a delete plus a create.
    """
    return [record for record in existing if record.name not in desired_names]
