# ruff: noqa: I001
"""Label → entity mappings for an import.

Rows refer to accounts, categories and tags by the raw text the user typed in
the CSV. Before publishing, each distinct label gets one ``ImportMapping``
row per mapping step. A mapping either points at an existing entity
(``mappable_id``) or asks for one to be created on publish
(``create_when_empty``).

Scope:
- ``sync_mappings`` creates/refreshes mappings from parsed rows.
- ``MappingSet`` answers ``mappable_for(type, label)`` during an import run.
- ``create_mappable`` materializes creational mappings before any record that
  depends on them is built.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.finance import Account, Category, Tag
from db.models.imports import Import, ImportMapping
from .logging_setup import get_logger
from .rows import Row

_logger = get_logger("finance_import.mappings")

type Mappable = Account | Category | Tag

MAPPING_TYPES: tuple[str, ...] = ("account", "category", "tag")

_MODELS: dict[str, type[Account] | type[Category] | type[Tag]] = {
    "account": Account,
    "category": Category,
    "tag": Tag,
}

INVESTMENT_KINDS = frozenset({"trade", "portfolio_allocation"})


def default_account_type(kind: str) -> str:
    """Accountable type given to accounts created from ``kind`` imports."""

    return "Investment" if kind in INVESTMENT_KINDS else "Depository"


def mapping_steps(kind: str, *, has_account: bool) -> tuple[str, ...]:
    """Mapping types the user must confirm for an import of ``kind``."""

    steps: list[str] = []
    if not has_account:
        steps.append("account")
    if kind == "transaction":
        steps.extend(("category", "tag"))
    return tuple(steps)


def labels_for(mapping_type: str, rows: Iterable[Row]) -> list[str]:
    """Distinct non-blank labels of ``mapping_type`` in first-seen order."""

    seen: dict[str, None] = {}
    for row in rows:
        if mapping_type == "account":
            candidates = [row.account]
        elif mapping_type == "category":
            candidates = [row.category]
        elif mapping_type == "tag":
            candidates = row.tags_list
        else:
            raise ValueError(f"unknown mapping type: {mapping_type!r}")
        for label in candidates:
            if label:
                seen.setdefault(label, None)
    return list(seen)


def find_by_name(session: Session, mapping_type: str, name: str) -> Mappable | None:
    model = _MODELS[mapping_type]
    return session.scalars(select(model).where(model.name == name)).first()


def sync_mappings(
    session: Session,
    imp: Import,
    rows: Sequence[Row],
    *,
    steps: Sequence[str] | None = None,
) -> list[ImportMapping]:
    """Ensure exactly one mapping per (step, label) found in ``rows``.

    New labels that match an existing entity by name are linked to it;
    otherwise the mapping is marked ``create_when_empty``. Mappings whose
    label no longer appears are deleted. Existing mappings keep whatever the
    user configured. Returns the mappings in step order.
    """

    if steps is None:
        steps = mapping_steps(imp.kind, has_account=imp.account_id is not None)

    existing = {
        (m.mapping_type, m.key): m
        for m in session.scalars(select(ImportMapping).where(ImportMapping.import_id == imp.id))
    }

    result: list[ImportMapping] = []
    wanted: set[tuple[str, str]] = set()
    created = 0
    for step in steps:
        for label in labels_for(step, rows):
            wanted.add((step, label))
            mapping = existing.get((step, label))
            if mapping is None:
                entity = find_by_name(session, step, label)
                mapping = ImportMapping(
                    import_id=imp.id,
                    mapping_type=step,
                    key=label,
                    mappable_id=entity.id if entity is not None else None,
                    create_when_empty=entity is None,
                    value=default_account_type(imp.kind) if step == "account" else None,
                )
                session.add(mapping)
                created += 1
            result.append(mapping)

    stale = [m for k, m in existing.items() if k not in wanted]
    for mapping in stale:
        session.delete(mapping)
    session.flush()

    _logger.info(
        "sync_mappings import_id=%s steps=%s mappings=%d created=%d removed=%d",
        imp.id,
        ",".join(steps) or "-",
        len(result),
        created,
        len(stale),
    )
    return result


def is_valid(mapping: ImportMapping) -> bool:
    """Account mappings need a target or permission to create one."""

    if mapping.mapping_type != "account":
        return True
    return mapping.mappable_id is not None or mapping.create_when_empty


def is_creational(mapping: ImportMapping) -> bool:
    return mapping.mappable_id is None and mapping.create_when_empty


def create_mappable(
    session: Session, mapping: ImportMapping, *, currency: str = "USD"
) -> Mappable | None:
    """Return the entity ``mapping`` resolves to, creating it if requested.

    An entity with the same name is reused instead of created, so two imports
    naming the same new account end up sharing it. The mapping is updated to
    point at the result.
    """

    if mapping.mappable_id is not None:
        return session.get(_MODELS[mapping.mapping_type], mapping.mappable_id)
    if not mapping.create_when_empty:
        return None

    entity = find_or_create(
        session,
        mapping.mapping_type,
        mapping.key,
        currency=currency,
        account_type=mapping.value,
    )
    mapping.mappable_id = entity.id
    return entity


def existing_names(session: Session, mapping_type: str) -> list[str]:
    model = _MODELS[mapping_type]
    return list(session.scalars(select(model.name).order_by(model.name)))


def find_or_create(
    session: Session,
    mapping_type: str,
    name: str,
    *,
    currency: str = "USD",
    account_type: str | None = None,
) -> Mappable:
    entity = find_by_name(session, mapping_type, name)
    if entity is not None:
        return entity
    if mapping_type == "account":
        entity = Account(
            name=name, currency=currency, accountable_type=account_type or "Depository"
        )
    else:
        entity = _MODELS[mapping_type](name=name)
    session.add(entity)
    session.flush()
    _logger.info("mappable_created type=%s name=%s id=%s", mapping_type, name, entity.id)
    return entity


class MappingSet:
    """All mappings of one import, grouped by type, with entity lookup."""

    def __init__(self, session: Session, mappings: Iterable[ImportMapping]) -> None:
        self._session = session
        self._by_type: dict[str, dict[str, ImportMapping]] = {t: {} for t in MAPPING_TYPES}
        for m in mappings:
            self._by_type.setdefault(m.mapping_type, {})[m.key] = m
        self._entities: dict[tuple[str, int], Mappable | None] = {}

    @classmethod
    def load(cls, session: Session, imp: Import) -> MappingSet:
        stmt = (
            select(ImportMapping)
            .where(ImportMapping.import_id == imp.id)
            .order_by(ImportMapping.id)
        )
        return cls(session, session.scalars(stmt))

    def __iter__(self) -> Iterator[ImportMapping]:
        for group in self._by_type.values():
            yield from group.values()

    def __len__(self) -> int:
        return sum(len(group) for group in self._by_type.values())

    def of_type(self, mapping_type: str) -> list[ImportMapping]:
        return list(self._by_type.get(mapping_type, {}).values())

    def get(self, mapping_type: str, key: str) -> ImportMapping | None:
        return self._by_type.get(mapping_type, {}).get(key)

    def mappable_for(self, mapping_type: str, key: str) -> Mappable | None:
        """Entity mapped to ``key``, or ``None`` when unmapped or unresolved."""

        mapping = self.get(mapping_type, key)
        if mapping is None or mapping.mappable_id is None:
            return None
        cache_key = (mapping_type, mapping.mappable_id)
        if cache_key not in self._entities:
            self._entities[cache_key] = self._session.get(
                _MODELS[mapping_type], mapping.mappable_id
            )
        return self._entities[cache_key]

    def creational(self, mapping_type: str | None = None) -> list[ImportMapping]:
        return [
            m
            for m in self
            if is_creational(m) and (mapping_type is None or m.mapping_type == mapping_type)
        ]

    def pending_creations(self, mapping_type: str) -> list[ImportMapping]:
        """Creational mappings whose label matches no existing entity yet."""

        return [
            m
            for m in self.creational(mapping_type)
            if find_by_name(self._session, mapping_type, m.key) is None
        ]

    def invalid(self) -> list[ImportMapping]:
        return [m for m in self if not is_valid(m)]

    def create_all(self, *, currency: str = "USD") -> int:
        """Run :func:`create_mappable` for every mapping; return how many were created."""

        created = 0
        for mapping in self:
            was_creational = is_creational(mapping) and (
                find_by_name(self._session, mapping.mapping_type, mapping.key) is None
            )
            create_mappable(self._session, mapping, currency=currency)
            if was_creational and mapping.mappable_id is not None:
                created += 1
        return created


__all__ = [
    "Mappable",
    "MAPPING_TYPES",
    "MappingSet",
    "create_mappable",
    "default_account_type",
    "existing_names",
    "find_by_name",
    "find_or_create",
    "is_creational",
    "is_valid",
    "labels_for",
    "mapping_steps",
    "sync_mappings",
]
