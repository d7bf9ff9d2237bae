# ruff: noqa: I001
"""Interactive confirmation of an import's mappings.

For each mapping the operator picks an existing entity by name or asks for a
new one. The selector is injectable so tests (and non-TTY callers) can
supply answers without a terminal.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable

from sqlalchemy.orm import Session

from db.models.imports import Import, ImportMapping
from .logging_setup import get_logger
from .mappings import MappingSet, existing_names, find_by_name, find_or_create
from .term_ui import CreateMappableRequest, select_mappable_or_create

_logger = get_logger("finance_import.review")

type Selector = Callable[[list[str], str], str | CreateMappableRequest]

_TYPE_LABELS = {"account": "Account", "category": "Category", "tag": "Tag"}


def _default_for(session: Session, mapping: ImportMapping) -> str:
    mapped = MappingSet(session, [mapping]).mappable_for(mapping.mapping_type, mapping.key)
    return mapped.name if mapped is not None else mapping.key


def _interactive_selector(mapping: ImportMapping) -> Selector:
    label = _TYPE_LABELS.get(mapping.mapping_type, mapping.mapping_type)

    def _select(options: list[str], default: str) -> str | CreateMappableRequest:
        return select_mappable_or_create(
            options,
            default=default,
            message=f"{label} for {mapping.key!r} (Enter to accept): ",
        )

    return _select


def confirm_mappings(
    session: Session,
    imp: Import,
    *,
    selector: Selector | None = None,
    print_fn: Callable[..., None] = print,
    only: Iterable[str] | None = None,
) -> int:
    """Walk every mapping of ``imp`` and record the operator's choice.

    Returns the number of mappings that changed. A selected name links the
    mapping to that entity. A create request with the mapping's own label
    (or an empty name) leaves the entity to be created on publish; any other
    name creates the entity right away and links it.
    """

    wanted = set(only) if only is not None else None
    changed = 0
    for mapping in MappingSet.load(session, imp):
        if wanted is not None and mapping.mapping_type not in wanted:
            continue
        options = existing_names(session, mapping.mapping_type)
        default = _default_for(session, mapping)
        select = selector or _interactive_selector(mapping)
        choice = select(options, default)

        before = (mapping.mappable_id, mapping.create_when_empty)
        if isinstance(choice, CreateMappableRequest):
            name = choice.name.strip()
            if not name or name == mapping.key:
                mapping.mappable_id = None
                mapping.create_when_empty = True
                print_fn(f"{mapping.key!r} will be created on import.")
            else:
                entity = find_or_create(
                    session, mapping.mapping_type, name, account_type=mapping.value
                )
                mapping.mappable_id = entity.id
                print_fn(f"Created {name!r} for {mapping.key!r}.")
        else:
            entity = find_by_name(session, mapping.mapping_type, choice.strip())
            if entity is None:
                print_fn(f"Unknown {mapping.mapping_type} {choice!r}; mapping unchanged.")
                continue
            mapping.mappable_id = entity.id
        if (mapping.mappable_id, mapping.create_when_empty) != before:
            changed += 1
    session.flush()
    _logger.info("confirm_mappings import_id=%s changed=%d", imp.id, changed)
    return changed


__all__ = ["Selector", "confirm_mappings"]
