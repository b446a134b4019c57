import pytest
import pytest_asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock

from haulbook.models.activity import ActivityType
from haulbook.models.allocation import WarningKind
from haulbook.models.ledger import LedgerType
from haulbook.models.order import AccountSide, PaymentRecord
from haulbook.schemas.ledger import LedgerEntryCreate, LedgerEntryUpdate
from haulbook.utils.payment_validation import PaymentValidationError

ACME = "Acme Quarry"
RIVERSIDE = "Riverside Builders"


def tagged(order, entry_id, side=AccountSide.EXPENSE):
    return sum(p.amount_cents for p in order.payments_for(side) if p.is_from(entry_id))


def debit(amount_cents, supplier=ACME, **fields):
    return LedgerEntryCreate(type=LedgerType.DEBIT, amount_cents=amount_cents, supplier=supplier, **fields)


def credit(amount_cents, party_name=RIVERSIDE, **fields):
    return LedgerEntryCreate(type=LedgerType.CREDIT, amount_cents=amount_cents, party_name=party_name, **fields)


@pytest_asyncio.fixture
async def acme_orders(make_order):
    """Order A (1000.00, 1 Jan) and Order B (500.00, 10 Jan) for Acme, nothing paid."""
    order_a = await make_order(day=1, original_total_cents=100000)
    order_b = await make_order(day=10, original_total_cents=50000)
    return order_a, order_b


@pytest.mark.asyncio
class TestCreateEntry:

    async def test_acme_payment_is_split_over_both_orders(self, ledger_service, order_repo, acme_orders):
        order_a, order_b = acme_orders

        result = await ledger_service.create_entry(
            debit(120000, date=datetime(2024, 1, 15, tzinfo=timezone.utc))
        )

        a = await order_repo.get(order_a.id)
        b = await order_repo.get(order_b.id)
        assert tagged(a, result.entry.id) == 100000
        assert tagged(b, result.entry.id) == 20000
        assert a.paid is True
        assert b.paid is False
        assert result.entry.amount_cents == 120000
        assert result.warnings == []

    async def test_entry_without_counterparty_touches_no_order(self, ledger_service, stores, acme_orders):
        writes_before = len(stores["orders"].put_calls)

        result = await ledger_service.create_entry(
            LedgerEntryCreate(type=LedgerType.DEBIT, amount_cents=5000, note="diesel")
        )

        assert result.reports == []
        assert len(stores["orders"].put_calls) == writes_before

    async def test_names_and_notes_are_trimmed(self, ledger_service, acme_orders):
        result = await ledger_service.create_entry(debit(1000, supplier="  Acme Quarry ", note="  "))

        assert result.entry.supplier == ACME
        assert result.entry.note is None

    async def test_credit_cannot_name_a_supplier(self, ledger_service):
        with pytest.raises(PaymentValidationError):
            await ledger_service.create_entry(
                LedgerEntryCreate(type=LedgerType.CREDIT, amount_cents=1000, supplier=ACME)
            )

    async def test_amount_must_be_positive(self, ledger_service):
        with pytest.raises(PaymentValidationError):
            await ledger_service.create_entry(debit(0))

    async def test_orphans_are_cleaned_before_distributing(self, ledger_service, order_repo, make_order):
        order = await make_order(
            day=1,
            original_total_cents=100000,
            partial_payments=[PaymentRecord(amount_cents=90000, ledger_entry_id="deleted-entry")],
        )

        result = await ledger_service.create_entry(debit(40000))

        saved = await order_repo.get(order.id)
        assert tagged(saved, "deleted-entry") == 0
        assert tagged(saved, result.entry.id) == 40000

    async def test_party_income_writes_a_party_payment(self, ledger_service, party_payment_repo, make_order):
        await make_order(day=1, total_cents=80000)

        result = await ledger_service.create_entry(credit(30000, note="cheque"))

        payments = await party_payment_repo.list_for_party(RIVERSIDE)
        assert len(payments) == 1
        assert payments[0].id == result.entry.id
        assert payments[0].amount_cents == 30000
        assert payments[0].note == "cheque"

    async def test_creation_is_logged(self, ledger_service):
        result = await ledger_service.create_entry(debit(1000))

        activities = await ledger_service.list_activities(result.entry.id)
        assert [a.activity_type for a in activities] == [ActivityType.CREATED]

    async def test_failed_activity_log_does_not_fail_the_entry(self, ledger_service, ledger_repo):
        ledger_service.activities.log = AsyncMock(side_effect=RuntimeError("activity store down"))

        result = await ledger_service.create_entry(debit(1000))

        assert await ledger_repo.get(result.entry.id) is not None

    async def test_allocation_error_becomes_a_warning(self, ledger_service, ledger_repo, acme_orders):
        ledger_service.engine.distribute = AsyncMock(side_effect=RuntimeError("boom"))

        result = await ledger_service.create_entry(debit(1000))

        assert [w.kind for w in result.warnings] == [WarningKind.ALLOCATION_ERROR]
        assert await ledger_repo.get(result.entry.id) is not None


@pytest.mark.asyncio
class TestUpdateEntry:

    async def test_larger_amount_tops_up_the_open_order(self, ledger_service, order_repo, acme_orders):
        order_a, order_b = acme_orders
        created = await ledger_service.create_entry(debit(120000))

        result = await ledger_service.update_entry(created.entry.id, LedgerEntryUpdate(amount_cents=140000))

        assert tagged(await order_repo.get(order_a.id), created.entry.id) == 100000
        assert tagged(await order_repo.get(order_b.id), created.entry.id) == 40000
        assert result.warnings == []

    async def test_edit_down_is_underfunded_until_an_order_payment_is_removed(
        self, ledger_service, order_service, ledger_repo, order_repo, acme_orders
    ):
        order_a, order_b = acme_orders
        created = await ledger_service.create_entry(debit(120000))
        entry_id = created.entry.id

        result = await ledger_service.update_entry(entry_id, LedgerEntryUpdate(amount_cents=100000))

        assert [w.kind for w in result.warnings] == [WarningKind.UNDERFUNDED_REDISTRIBUTION]
        assert (await ledger_repo.get(entry_id)).amount_cents == 100000
        assert tagged(await order_repo.get(order_a.id), entry_id) == 100000
        b = await order_repo.get(order_b.id)
        assert tagged(b, entry_id) == 20000

        resolved = await order_service.remove_payment(order_b.id, AccountSide.EXPENSE, b.partial_payments[0].id)

        assert resolved.warnings == []
        assert tagged(await order_repo.get(order_a.id), entry_id) == 100000
        assert (await order_repo.get(order_b.id)).partial_payments == []

    async def test_renamed_supplier_moves_the_allocation(self, ledger_service, order_repo, make_order):
        acme = await make_order(day=1, supplier=ACME, original_total_cents=100000)
        other = await make_order(day=2, supplier="Hill Sand Co", original_total_cents=100000)
        created = await ledger_service.create_entry(debit(30000))

        await ledger_service.update_entry(created.entry.id, LedgerEntryUpdate(supplier="Hill Sand Co"))

        assert tagged(await order_repo.get(acme.id), created.entry.id) == 0
        assert tagged(await order_repo.get(other.id), created.entry.id) == 30000

    async def test_removed_supplier_reverts(self, ledger_service, order_repo, acme_orders):
        order_a, _ = acme_orders
        created = await ledger_service.create_entry(debit(30000))

        await ledger_service.update_entry(created.entry.id, LedgerEntryUpdate(supplier=None))

        assert tagged(await order_repo.get(order_a.id), created.entry.id) == 0

    async def test_added_supplier_distributes(self, ledger_service, order_repo, acme_orders):
        order_a, _ = acme_orders
        created = await ledger_service.create_entry(LedgerEntryCreate(type=LedgerType.DEBIT, amount_cents=30000))

        await ledger_service.update_entry(created.entry.id, LedgerEntryUpdate(supplier=ACME))

        assert tagged(await order_repo.get(order_a.id), created.entry.id) == 30000

    async def test_note_change_touches_no_order(self, ledger_service, stores, acme_orders):
        created = await ledger_service.create_entry(debit(30000))
        writes_before = len(stores["orders"].put_calls)

        result = await ledger_service.update_entry(created.entry.id, LedgerEntryUpdate(note="fuel advance"))

        assert result.entry.note == "fuel advance"
        assert result.reports == []
        assert len(stores["orders"].put_calls) == writes_before

    async def test_update_is_logged_with_previous_values(self, ledger_service):
        created = await ledger_service.create_entry(debit(30000))

        await ledger_service.update_entry(created.entry.id, LedgerEntryUpdate(amount_cents=35000))

        activities = await ledger_service.list_activities(created.entry.id)
        update = next(a for a in activities if a.activity_type == ActivityType.UPDATED)
        assert update.amount_cents == 35000
        assert update.previous_amount_cents == 30000

    async def test_party_payment_follows_the_entry(self, ledger_service, party_payment_repo, make_order):
        await make_order(day=1, total_cents=80000)
        created = await ledger_service.create_entry(credit(30000))

        await ledger_service.update_entry(created.entry.id, LedgerEntryUpdate(amount_cents=25000))
        assert await party_payment_repo.total_for_party(RIVERSIDE) == 25000

        await ledger_service.update_entry(created.entry.id, LedgerEntryUpdate(party_name=None))
        assert await party_payment_repo.list_for_party(RIVERSIDE) == []

    async def test_unknown_entry_returns_none(self, ledger_service):
        assert await ledger_service.update_entry("missing", LedgerEntryUpdate(note="x")) is None

    async def test_voided_entry_cannot_be_edited(self, ledger_service):
        created = await ledger_service.create_entry(debit(30000))
        await ledger_service.void_entry(created.entry.id)

        with pytest.raises(PaymentValidationError):
            await ledger_service.update_entry(created.entry.id, LedgerEntryUpdate(amount_cents=1))


@pytest.mark.asyncio
class TestVoidAndDelete:

    async def test_delete_returns_orders_to_unpaid(self, ledger_service, ledger_repo, order_repo, acme_orders):
        order_a, order_b = acme_orders
        created = await ledger_service.create_entry(debit(120000))

        await ledger_service.delete_entry(created.entry.id)

        a = await order_repo.get(order_a.id)
        b = await order_repo.get(order_b.id)
        assert a.partial_payments == [] and b.partial_payments == []
        assert a.paid is False and b.paid is False
        assert await ledger_repo.get(created.entry.id) is None

    async def test_void_keeps_the_entry_and_reverts(self, ledger_service, ledger_repo, order_repo, acme_orders):
        order_a, _ = acme_orders
        created = await ledger_service.create_entry(debit(50000))

        result = await ledger_service.void_entry(created.entry.id)

        assert result.entry.voided is True
        assert (await ledger_repo.get(created.entry.id)).voided is True
        assert tagged(await order_repo.get(order_a.id), created.entry.id) == 0

    async def test_void_twice_is_a_no_op(self, ledger_service, stores, acme_orders):
        created = await ledger_service.create_entry(debit(50000))
        await ledger_service.void_entry(created.entry.id)
        writes_before = len(stores["orders"].put_calls)

        result = await ledger_service.void_entry(created.entry.id)

        assert result.reports == []
        assert len(stores["orders"].put_calls) == writes_before

    async def test_void_and_delete_drop_party_payments(self, ledger_service, party_payment_repo, make_order):
        await make_order(day=1, total_cents=80000)
        first = await ledger_service.create_entry(credit(10000))
        second = await ledger_service.create_entry(credit(20000))

        await ledger_service.void_entry(first.entry.id)
        await ledger_service.delete_entry(second.entry.id)

        assert await party_payment_repo.list_for_party(RIVERSIDE) == []

    async def test_delete_is_logged(self, ledger_service):
        created = await ledger_service.create_entry(debit(1000))

        await ledger_service.delete_entry(created.entry.id)

        activities = await ledger_service.list_activities(created.entry.id)
        assert ActivityType.DELETED in [a.activity_type for a in activities]

    async def test_failed_revert_is_journalled(self, ledger_service, stores, run_repo, acme_orders):
        order_a, _ = acme_orders
        created = await ledger_service.create_entry(debit(50000))
        stores["orders"].failing_ids.add(order_a.id)

        result = await ledger_service.delete_entry(created.entry.id)

        assert [w.kind for w in result.warnings] == [WarningKind.ORDER_WRITE_FAILURE]
        runs = await run_repo.list_unresolved()
        assert [r.ledger_entry_id for r in runs] == [created.entry.id]

    async def test_unknown_entry_returns_none(self, ledger_service):
        assert await ledger_service.delete_entry("missing") is None
        assert await ledger_service.void_entry("missing") is None


@pytest.mark.asyncio
class TestQueries:

    async def test_balance_ignores_voided_entries(self, ledger_service):
        await ledger_service.create_entry(LedgerEntryCreate(type=LedgerType.CREDIT, amount_cents=50000))
        await ledger_service.create_entry(LedgerEntryCreate(type=LedgerType.DEBIT, amount_cents=20000))
        voided = await ledger_service.create_entry(LedgerEntryCreate(type=LedgerType.DEBIT, amount_cents=9000))
        await ledger_service.void_entry(voided.entry.id)

        assert await ledger_service.get_balance() == 30000

    async def test_list_filters_by_type(self, ledger_service):
        await ledger_service.create_entry(LedgerEntryCreate(type=LedgerType.CREDIT, amount_cents=50000))
        await ledger_service.create_entry(LedgerEntryCreate(type=LedgerType.DEBIT, amount_cents=20000))

        entries = await ledger_service.list_entries(type=LedgerType.DEBIT)

        assert [e.amount_cents for e in entries] == [20000]

    async def test_rebuild_party_payments(self, ledger_service, stores, party_payment_repo):
        await ledger_service.create_entry(credit(10000))
        await ledger_service.create_entry(credit(20000))
        stores["party_payments"].documents.clear()

        rebuilt = await ledger_service.rebuild_party_payments(RIVERSIDE)

        assert sorted(p.amount_cents for p in rebuilt) == [10000, 20000]
        assert await party_payment_repo.total_for_party(RIVERSIDE) == 30000
