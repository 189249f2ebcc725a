"""
Bulk completion lookup.

Answers "which (node, scope) pairs have submissions in [start, end)" for a
whole scope plan with a single grouped query, instead of one round trip per
scope.

The aggregator depends only on the ``CompletionLookup`` protocol; the
SQLAlchemy implementation below is the production one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Protocol

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from completion_tracker.core.exceptions import DataStoreError
from completion_tracker.models import as_utc, db
from completion_tracker.models.data_entry import DataEntry
from completion_tracker.services.scope_registry import scope_key

logger = logging.getLogger(__name__)


@dataclass
class ScopeActivity:
    """Submissions found for one (node, scope) pair inside the period."""

    count: int = 0
    last_timestamp: datetime | None = None
    input_types: set = field(default_factory=set)

    def absorb(self, count: int, last_timestamp: datetime | None, input_type: str | None) -> None:
        self.count += int(count or 0)
        last_timestamp = as_utc(last_timestamp)
        if last_timestamp is not None and (self.last_timestamp is None or last_timestamp > self.last_timestamp):
            self.last_timestamp = last_timestamp
        if input_type:
            self.input_types.add(input_type)


class CompletionLookup(Protocol):
    def exists_within(
        self,
        client_id: str,
        node_ids: Iterable[str],
        scope_identifiers: Iterable[str],
        start: datetime,
        end: datetime,
    ) -> dict[str, ScopeActivity]:
        ...


class SqlCompletionLookup:
    """Grouped range query over ``data_entries``."""

    def exists_within(self, client_id, node_ids, scope_identifiers, start, end):
        node_ids = sorted(set(node_ids))
        scope_identifiers = sorted(set(scope_identifiers))
        if not node_ids or not scope_identifiers:
            return {}

        try:
            rows = (
                db.session.query(
                    DataEntry.node_id,
                    DataEntry.scope_identifier,
                    DataEntry.input_type,
                    func.count(DataEntry.id).label("count"),
                    func.max(DataEntry.timestamp).label("last_timestamp"),
                )
                .filter(
                    DataEntry.client_id == client_id,
                    DataEntry.is_summary.is_(False),
                    DataEntry.timestamp >= start,
                    DataEntry.timestamp < end,
                    DataEntry.node_id.in_(node_ids),
                    DataEntry.scope_identifier.in_(scope_identifiers),
                )
                .group_by(DataEntry.node_id, DataEntry.scope_identifier, DataEntry.input_type)
                .all()
            )
        except SQLAlchemyError as exc:
            logger.error("Completion lookup failed: %s", exc, extra={"client_id": client_id})
            raise DataStoreError("completion lookup", str(exc)) from exc

        lookup: dict[str, ScopeActivity] = {}
        for row in rows:
            key = scope_key(row.node_id, row.scope_identifier)
            lookup.setdefault(key, ScopeActivity()).absorb(row.count, row.last_timestamp, row.input_type)
        return lookup
