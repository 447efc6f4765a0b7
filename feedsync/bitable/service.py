"""Idempotent synchronization of products into per-period tables."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Union

from feedsync.errors import BitableAPIError
from feedsync.models import DedupKey, Product, SyncResult, TableRef

from .client import BitableClient
from .schema import (
    ITEM_ID_FIELD,
    PRODUCT_FIELDS,
    FieldSpec,
    build_field_creates,
    dedup_key_from_record,
    field_create_payload,
    product_to_fields,
)

DUPLICATE_NAME_CODE = 1254013
DUPLICATE_MARKERS = ("duplicat", "重复")
RECHECK_DELAY = 0.5
LOGGER = logging.getLogger(__name__)

Period = Union[date, str]


def period_name(period: Period) -> str:
    if isinstance(period, date):
        return period.strftime("%Y-%m-%d")
    return str(period)


def is_duplicate_name_error(exc: BaseException) -> bool:
    """True when a table creation failed because the name already exists."""
    if isinstance(exc, BitableAPIError) and exc.code == DUPLICATE_NAME_CODE:
        return True
    message = str(getattr(exc, "msg", "") or exc).lower()
    return any(marker in message for marker in DUPLICATE_MARKERS)


@dataclass
class FieldReport:
    created: List[str] = field(default_factory=list)
    existing: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass
class PreparedPeriod:
    """State of a period table before enrichment."""

    table: TableRef
    admitted: List[Product]
    fields: FieldReport


class BitableService:
    """Provision period tables and push products without duplicates.

    Parameters
    ----------
    client : BitableClient
        Authenticated API client
    app_token : str
        Bitable application holding the period tables
    field_schema : sequence of FieldSpec
        Declared columns, ``PRODUCT_FIELDS`` by default
    sleep : callable
        Used for the pause before re-querying after a creation race
    """

    def __init__(
        self,
        client: BitableClient,
        app_token: str,
        field_schema: Sequence[FieldSpec] = PRODUCT_FIELDS,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.client = client
        self.app_token = app_token
        self.field_schema = tuple(field_schema)
        self._sleep = sleep

    def find_table(self, name: str) -> Optional[TableRef]:
        for table in self.client.list_tables(self.app_token):
            if table.name == name:
                return TableRef(table_id=table.table_id, name=table.name, created=False)
        return None

    def get_or_create_table(self, period: Period) -> TableRef:
        """Return the table of ``period``, creating it with the full schema if absent.

        A concurrent run may create the same table between our lookup and our
        create call; the duplicate-name rejection is resolved by looking the
        table up again.
        """
        name = period_name(period)
        existing = self.find_table(name)
        if existing is not None:
            LOGGER.info("Using existing table %s (%s)", name, existing.table_id)
            return existing

        try:
            table = self.client.create_table(self.app_token, name, build_field_creates(self.field_schema))
        except BitableAPIError as exc:
            if not is_duplicate_name_error(exc):
                raise
            LOGGER.info("Table %s was created concurrently, looking it up again", name)
            self._sleep(RECHECK_DELAY)
            existing = self.find_table(name)
            if existing is None:
                raise BitableAPIError(exc.code, f"table {name} reported as duplicate but not found: {exc.msg}", exc.path) from exc
            return existing

        LOGGER.info("Created table %s (%s)", name, table.table_id)
        return TableRef(table_id=table.table_id, name=name, created=True)

    def ensure_fields(self, table: TableRef) -> FieldReport:
        """Create declared fields missing from ``table``; never deletes or renames."""
        current = self.client.list_fields(self.app_token, table.table_id)
        report = FieldReport()
        for spec in self.field_schema:
            if spec.key in current:
                report.existing.append(spec.key)
                continue
            try:
                self.client.create_field(self.app_token, table.table_id, field_create_payload(spec))
            except BitableAPIError as exc:
                LOGGER.error("Failed to create field %s (%s, type=%d): %s", spec.key, spec.label, spec.type, exc)
                report.failed[spec.key] = str(exc)
                continue
            LOGGER.info("Created field %s (%s)", spec.key, spec.label)
            report.created.append(spec.key)

        if report.failed:
            LOGGER.warning(
                "Field provisioning on %s: %d created, %d existing, %d failed (%s)",
                table.name,
                len(report.created),
                len(report.existing),
                len(report.failed),
                ", ".join(report.failed),
            )
        return report

    def stored_keys(self, table: TableRef, item_id: str) -> Set[DedupKey]:
        records = self.client.search_records(self.app_token, table.table_id, ITEM_ID_FIELD, item_id)
        keys = set()
        for fields in records:
            key = dedup_key_from_record(fields)
            if key is not None:
                keys.add(key)
        return keys

    def deduplicate(self, table: TableRef, records: Iterable[Product]) -> List[Product]:
        """Admit only products whose dedup key is neither stored nor already admitted."""
        grouped: Dict[str, List[Product]] = {}
        for record in records:
            grouped.setdefault(record.item_id, []).append(record)

        admitted: List[Product] = []
        skipped = 0
        for item_id, group in grouped.items():
            seen = self.stored_keys(table, item_id)
            for record in group:
                key = record.dedup_key()
                if key in seen:
                    skipped += 1
                    continue
                seen.add(key)
                admitted.append(record)

        if skipped:
            LOGGER.info("Dedup dropped %d record(s) already present in %s", skipped, table.name)
        return admitted

    def push_to_table(self, table: TableRef, records: Sequence[Product], exclude_fields: Iterable[str] = ()) -> int:
        if not records:
            return 0
        excluded = tuple(exclude_fields)
        rows = [product_to_fields(record, self.field_schema, exclude=excluded) for record in records]
        created = self.client.batch_create_records(self.app_token, table.table_id, rows)
        LOGGER.info("Pushed %d record(s) to %s", created, table.name)
        return created

    def prepare_period(self, period: Period, records: Sequence[Product]) -> PreparedPeriod:
        """Provision the period table and drop records that are already stored."""
        table = self.get_or_create_table(period)
        if table.created:
            report = FieldReport(created=[spec.key for spec in self.field_schema])
            return PreparedPeriod(table=table, admitted=list(records), fields=report)
        report = self.ensure_fields(table)
        return PreparedPeriod(table=table, admitted=self.deduplicate(table, records), fields=report)

    def sync_prepared(self, prepared: PreparedPeriod, records: Sequence[Product]) -> SyncResult:
        """Push ``records`` into a table already provisioned by ``prepare_period``.

        Records are deduplicated once more so rows stored by a concurrent run
        since the preparation are not written twice. Fields that failed to
        provision are left out of the payload and reported in ``failed_fields``.
        """
        table = prepared.table
        failed = dict(prepared.fields.failed)
        try:
            admitted = self.deduplicate(table, records)
            if not admitted:
                return SyncResult(
                    success=True,
                    message="all records already present",
                    table_id=table.table_id,
                    failed_fields=failed,
                )
            created = self.push_to_table(table, admitted, exclude_fields=failed)
        except BitableAPIError as exc:
            return self._failure(table.name, exc)

        message = f"pushed {created} record(s)"
        if failed:
            message += f", {len(failed)} field(s) could not be provisioned"
        return SyncResult(
            success=True,
            message=message,
            records_created=created,
            table_id=table.table_id,
            failed_fields=failed,
        )

    def sync_period(self, period: Period, records: Sequence[Product]) -> SyncResult:
        """Get or create the period table, deduplicate and push.

        A freshly created table receives every record. An existing table has
        its fields reconciled first and then goes through ``sync_prepared``.
        """
        try:
            table = self.get_or_create_table(period)
            if table.created:
                created = self.push_to_table(table, records)
                return SyncResult(
                    success=True,
                    message=f"created table {table.name}",
                    records_created=created,
                    table_id=table.table_id,
                )
            report = self.ensure_fields(table)
        except BitableAPIError as exc:
            return self._failure(period_name(period), exc)
        return self.sync_prepared(PreparedPeriod(table=table, admitted=list(records), fields=report), records)

    @staticmethod
    def _failure(name: str, exc: BitableAPIError) -> SyncResult:
        LOGGER.error("Sync of period %s failed: %s", name, exc)
        return SyncResult(success=False, message="sync failed", error=str(exc))
