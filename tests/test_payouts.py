import pytest

from telecare.domain.ledger.ledger import CreditLedger
from telecare.domain.payouts.service import PayoutProcessor
from telecare.errors import InsufficientCreditsError, InvalidStateError, NotFoundError, UnauthorizedError
from telecare.models import Account, CreditTransaction, Payout, PayoutStatus, Role, TransactionType

from .conftest import make_account


@pytest.fixture
def earning_doctor(db):
    return make_account(db, Role.DOCTOR, credits=10, name="Dr. Paid")


def request_payout(db, doctor, credits):
    payout = Payout(doctor_id=doctor.id, credits=credits, status=PayoutStatus.PROCESSING)
    db.add(payout)
    db.commit()
    return payout


def test_approve_debits_doctor_once(db, admin, earning_doctor):
    payout = request_payout(db, earning_doctor, 6)

    processed = PayoutProcessor(db).approve(payout.id, admin)

    assert processed.status == PayoutStatus.PROCESSED
    assert processed.processed_by == admin.id
    assert processed.processed_at is not None
    assert db.get(Account, earning_doctor.id).credits == 4
    entry = db.query(CreditTransaction).filter(CreditTransaction.payout_id == payout.id).one()
    assert entry.amount == -6
    assert entry.type == TransactionType.ADMIN_ADJUSTMENT
    assert CreditLedger(db).reconcile(earning_doctor.id)["consistent"]


def test_second_approval_is_rejected(db, admin, earning_doctor):
    payout = request_payout(db, earning_doctor, 6)
    processor = PayoutProcessor(db)
    processor.approve(payout.id, admin)

    with pytest.raises(InvalidStateError):
        processor.approve(payout.id, admin)

    assert db.get(Account, earning_doctor.id).credits == 4
    assert db.query(CreditTransaction).filter(CreditTransaction.payout_id == payout.id).count() == 1


def test_insufficient_balance_keeps_payout_pending(db, admin, earning_doctor):
    payout = request_payout(db, earning_doctor, 12)

    with pytest.raises(InsufficientCreditsError):
        PayoutProcessor(db).approve(payout.id, admin)

    db.refresh(payout)
    assert payout.status == PayoutStatus.PROCESSING
    assert payout.processed_at is None
    assert db.get(Account, earning_doctor.id).credits == 10


def test_only_admins_approve(db, earning_doctor):
    payout = request_payout(db, earning_doctor, 2)

    with pytest.raises(UnauthorizedError):
        PayoutProcessor(db).approve(payout.id, earning_doctor)


def test_unknown_payout(db, admin):
    with pytest.raises(NotFoundError):
        PayoutProcessor(db).approve(12345, admin)


def test_pending_list_excludes_processed(db, admin, earning_doctor):
    done = request_payout(db, earning_doctor, 2)
    waiting = request_payout(db, earning_doctor, 3)
    PayoutProcessor(db).approve(done.id, admin)

    pending = PayoutProcessor(db).list_pending(admin)

    assert [p.id for p in pending] == [waiting.id]
    assert pending[0].doctor.name == "Dr. Paid"
