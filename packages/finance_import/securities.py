# ruff: noqa: I001
"""Security resolution for investment imports.

Trade and portfolio imports reference securities by ``(ticker, exchange)``.
Resolution goes through a :class:`SecurityResolver`; the default
:class:`DatabaseSecurityResolver` finds an existing ``Security`` row or
creates an offline one. Tests substitute a stub.

Each importer run owns one :class:`SecurityCache`. The cache memoizes both
hits and failures, so a resolver is asked about each distinct key at most
once per run, and a failing key degrades to ``None`` without aborting the
import.
"""

from __future__ import annotations

from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.finance import Security
from .logging_setup import get_logger

_logger = get_logger("finance_import.securities")

type SecurityKey = tuple[str, str | None]
"""Cache key: upper-cased ticker and upper-cased MIC (``None`` when blank)."""


class ResolutionError(Exception):
    """A resolver could not produce a security for the given identifiers."""


class SecurityResolver(Protocol):
    def resolve(self, ticker: str, exchange_operating_mic: str | None) -> Security: ...


def security_key(ticker: str, exchange_operating_mic: str | None) -> SecurityKey:
    mic = (exchange_operating_mic or "").strip().upper()
    return (ticker.strip().upper(), mic or None)


class SecurityCache:
    """Per-run memo in front of a :class:`SecurityResolver`.

    ``get`` never raises: resolver exceptions are logged at ERROR level and
    remembered as ``None`` for the rest of the run.
    """

    def __init__(self, resolver: SecurityResolver) -> None:
        self._resolver = resolver
        self._entries: dict[SecurityKey, Security | None] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, ticker: str, exchange_operating_mic: str | None = None) -> Security | None:
        key = security_key(ticker, exchange_operating_mic)
        if key in self._entries:
            return self._entries[key]

        try:
            security: Security | None = self._resolver.resolve(key[0], key[1])
        except Exception as e:  # noqa: BLE001
            _logger.error(
                "security_resolve_failed ticker=%s mic=%s error=%s: %s",
                key[0],
                key[1] or "-",
                e.__class__.__name__,
                e,
            )
            security = None
        self._entries[key] = security
        return security


class DatabaseSecurityResolver:
    """Find a security by ticker (and MIC when given) or create an offline one.

    Without a MIC, any listing of the ticker matches, preferring the one with
    no MIC. Created rows are flushed so they receive an id immediately but
    stay inside the caller's transaction.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def resolve(self, ticker: str, exchange_operating_mic: str | None) -> Security:
        ticker = ticker.strip().upper()
        if not ticker:
            raise ResolutionError("ticker is required")
        mic = (exchange_operating_mic or "").strip().upper() or None

        stmt = select(Security).where(Security.ticker == ticker)
        if mic is not None:
            stmt = stmt.where(Security.exchange_operating_mic == mic)
        candidates = list(self._session.scalars(stmt.order_by(Security.id)))
        if candidates:
            candidates.sort(key=lambda s: s.exchange_operating_mic is not None)
            return candidates[0]

        security = Security(ticker=ticker, exchange_operating_mic=mic, name=ticker, offline=True)
        # Savepoint so a failed insert leaves the surrounding import usable.
        with self._session.begin_nested():
            self._session.add(security)
        _logger.info("security_created_offline ticker=%s mic=%s", ticker, mic or "-")
        return security


__all__ = [
    "SecurityKey",
    "ResolutionError",
    "SecurityResolver",
    "SecurityCache",
    "DatabaseSecurityResolver",
    "security_key",
]
