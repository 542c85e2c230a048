"""
Transaction ledger tests
"""

from datetime import datetime, timezone

from paybridge.integrations.payment_gateways import PaymentResult, PaymentStatus, TransactionRecord
from paybridge.services import TransactionLedger


def _record(transaction_id: str, status=PaymentStatus.SUCCESS, **params) -> TransactionRecord:
    result = PaymentResult(gateway="khalti", status=status, params=params, message="ok")
    return TransactionRecord.from_result(result, transaction_id)


class TestTransactionLedger:

    def test_add_then_get_returns_same_record(self, ledger):
        record = _record("tx-1", pidx="abc")

        ledger.add(record)

        assert ledger.get("tx-1") is record
        assert ledger.get("tx-1").params == {"pidx": "abc"}

    def test_list_grows_by_one_per_add(self, ledger):
        for index in range(3):
            before = len(ledger.list())
            ledger.add(_record(f"tx-{index}"))
            assert len(ledger.list()) == before + 1

        assert len(ledger) == 3

    def test_list_returns_copy_in_insertion_order(self, ledger):
        first, second = _record("a"), _record("b")
        ledger.add(first)
        ledger.add(second)

        snapshot = ledger.list()
        snapshot.clear()

        assert ledger.list() == [first, second]

    def test_duplicate_ids_are_kept_and_first_wins(self, ledger):
        first = _record("dup", attempt=1)
        second = _record("dup", attempt=2)
        ledger.add(first)
        ledger.add(second)

        ledger.update("dup", {"message": "retried"})

        assert len(ledger) == 2
        assert ledger.get("dup") is first
        assert first.message == "retried"
        assert second.message == "ok"

    def test_update_merges_fields_and_metadata(self, ledger):
        record = _record("tx-1")
        ledger.add(record)

        updated = ledger.update("tx-1", {"status": PaymentStatus.FAILURE, "reason": "reversed"})

        assert updated is record
        assert record.status == PaymentStatus.FAILURE
        assert record.metadata == {"reason": "reversed"}
        assert record.gateway == "khalti"

    def test_update_moves_updated_at_strictly_forward(self, ledger):
        record = _record("tx-1")
        # A timestamp in the future forces the monotonic bump path.
        record.updated_at = datetime(2999, 1, 1, tzinfo=timezone.utc)
        ledger.add(record)
        previous = record.updated_at

        ledger.update("tx-1", {})

        assert record.updated_at > previous

    def test_consecutive_updates_keep_increasing(self, ledger):
        record = _record("tx-1")
        ledger.add(record)

        stamps = []
        for _ in range(5):
            ledger.update("tx-1", {"message": "tick"})
            stamps.append(record.updated_at)

        assert all(later > earlier for earlier, later in zip(stamps, stamps[1:]))
        assert record.created_at <= stamps[0]

    def test_update_unknown_id_is_noop(self, ledger):
        record = _record("tx-1")
        ledger.add(record)
        before = (record.status, record.updated_at, dict(record.metadata))

        assert ledger.update("missing", {"status": PaymentStatus.FAILURE}) is None

        assert (record.status, record.updated_at, dict(record.metadata)) == before
        assert len(ledger) == 1

    def test_get_unknown_id(self):
        assert TransactionLedger().get("nothing") is None
