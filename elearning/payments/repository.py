# ruff: noqa: S608
"""Cassandra persistence for payments."""

import json

from elearning.core.database.store import CassandraStore

from .models import Payment


_COLUMNS = (
    "gateway_reference, payment_id, student_id, course_id, branch_id, amount, "
    "status, callback_received, failure_reason, result_code, result_desc, "
    "receipt_number, receipt_metadata, version, created_at, updated_at"
)


class PaymentRepository(CassandraStore):
    def _prepare_statements(self) -> None:
        self._insert = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.payments ({_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._get = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.payments WHERE gateway_reference = ?
        """)

        self._update_if_version = self.session.prepare(f"""
            UPDATE {self.keyspace}.payments
            SET status = ?, callback_received = ?, failure_reason = ?,
                result_code = ?, result_desc = ?, receipt_number = ?,
                receipt_metadata = ?, version = ?, updated_at = ?
            WHERE gateway_reference = ?
            IF version = ?
        """)

    async def insert(self, payment: Payment) -> bool:
        """Insert a new payment. Returns False if the reference is taken."""
        result = await self._execute(self._insert, payment.to_row())
        return result.was_applied

    async def get(self, gateway_reference: str) -> Payment | None:
        result = await self._execute(self._get, [gateway_reference])
        row = result.one()
        return Payment.from_row(row) if row else None

    async def compare_and_set(self, payment: Payment, expected_version: int) -> bool:
        result = await self._execute(
            self._update_if_version,
            [
                payment.status.value,
                payment.callback_received,
                payment.failure_reason,
                payment.result_code,
                payment.result_desc,
                payment.receipt_number,
                json.dumps(payment.receipt_metadata, default=str),
                payment.version,
                payment.updated_at,
                payment.gateway_reference,
                expected_version,
            ],
        )
        return result.was_applied
