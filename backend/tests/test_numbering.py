"""
Document numbering tests (TAG/<branch_code>/<YYYY>/<MM>/<NNN>).
"""

from datetime import datetime
from decimal import Decimal

import pytest

from branchstock.errors import NumberingConflictError, ValidationError
from branchstock.models import Branch, Sale
from branchstock.services import numbering_service
from branchstock.services.numbering_service import TAG_INVOICE
from branchstock.time_utils import Clock, FixedClock, resolve_clock


def _sale(branch, user, number=None):
    return Sale(
        invoice_number=number,
        branch_id=branch.id,
        user_id=user.id,
        sale_date=datetime(2024, 12, 5),
        subtotal=Decimal("0.00"),
        discount=Decimal("0.00"),
        grand_total=Decimal("0.00"),
        payment_method="cash",
    )


class TestFormatting:

    def test_prefix_and_padding(self):
        prefix = numbering_service.number_prefix("INV", "JKT", datetime(2024, 3, 9))
        assert prefix == "INV/JKT/2024/03/"
        assert numbering_service.format_number(prefix, 7) == "INV/JKT/2024/03/007"

    def test_parse_sequence(self):
        assert numbering_service.parse_sequence("TRF/BDG/2024/12/042") == 42

    def test_branch_code_required(self):
        with pytest.raises(ValidationError):
            numbering_service.number_prefix("INV", "", datetime(2024, 1, 1))


class TestClock:

    def test_base_clock_is_abstract(self):
        with pytest.raises(TypeError):
            Clock()

    def test_fixed_clock_drives_prefix(self):
        clock = FixedClock(datetime(2024, 12, 31, 23, 0, 0))
        clock.advance(hours=2)

        assert resolve_clock(clock) is clock
        assert numbering_service.number_prefix("SJ", "BDG", clock.now()) == "SJ/BDG/2025/01/"


class TestNextNumber:

    def test_first_number_of_period_is_001(self, db_session, jakarta):
        number = numbering_service.next_number(Sale.invoice_number, TAG_INVOICE, "JKT", datetime(2024, 12, 5))
        assert number == "INV/JKT/2024/12/001"

    def test_increments_last_existing_number(self, db_session, jakarta, admin):
        db_session.add(_sale(jakarta, admin, "INV/JKT/2024/12/001"))
        db_session.add(_sale(jakarta, admin, "INV/JKT/2024/12/002"))
        db_session.commit()

        number = numbering_service.next_number(Sale.invoice_number, TAG_INVOICE, "JKT", datetime(2024, 12, 20))
        assert number == "INV/JKT/2024/12/003"

    def test_sequence_restarts_per_month_and_branch(self, db_session, jakarta, bandung, admin):
        db_session.add(_sale(jakarta, admin, "INV/JKT/2024/12/005"))
        db_session.commit()

        assert numbering_service.next_number(
            Sale.invoice_number, TAG_INVOICE, "JKT", datetime(2025, 1, 2)
        ) == "INV/JKT/2025/01/001"
        assert numbering_service.next_number(
            Sale.invoice_number, TAG_INVOICE, "BDG", datetime(2024, 12, 5)
        ) == "INV/BDG/2024/12/001"

    def test_branch_code_prefix_does_not_leak(self, db_session, admin):
        # "JK" must not pick up numbers issued for "JKT"
        jk = Branch(code="JK", name="Jakarta Kota")
        jkt = db_session.query(Branch).filter_by(code="JKT").one()
        db_session.add(jk)
        db_session.add(_sale(jkt, admin, "INV/JKT/2024/12/009"))
        db_session.commit()

        assert numbering_service.next_number(
            Sale.invoice_number, TAG_INVOICE, "JK", datetime(2024, 12, 5)
        ) == "INV/JK/2024/12/001"


class TestAssignNumber:

    def test_assigns_and_flushes(self, db_session, jakarta, admin):
        sale = _sale(jakarta, admin)
        number = numbering_service.assign_number(
            sale, "invoice_number", Sale.invoice_number,
            tag=TAG_INVOICE, branch_code="JKT", at=datetime(2024, 12, 5),
        )
        db_session.commit()

        assert number == "INV/JKT/2024/12/001"
        assert sale.id is not None
        assert sale.invoice_number == number

    def test_collision_recomputes_once(self, db_session, jakarta, admin, monkeypatch):
        db_session.add(_sale(jakarta, admin, "INV/JKT/2024/12/001"))
        db_session.commit()

        # First lookup returns a stale answer (as if another writer won the race)
        answers = iter(["INV/JKT/2024/12/001"])
        real_next = numbering_service.next_number

        def flaky_next(column, tag, branch_code, at):
            return next(answers, None) or real_next(column, tag, branch_code, at)

        monkeypatch.setattr(numbering_service, "next_number", flaky_next)

        sale = _sale(jakarta, admin)
        number = numbering_service.assign_number(
            sale, "invoice_number", Sale.invoice_number,
            tag=TAG_INVOICE, branch_code="JKT", at=datetime(2024, 12, 5),
        )
        db_session.commit()

        assert number == "INV/JKT/2024/12/002"
        assert db_session.query(Sale).count() == 2

    def test_second_collision_raises(self, db_session, jakarta, admin, monkeypatch):
        db_session.add(_sale(jakarta, admin, "INV/JKT/2024/12/001"))
        db_session.commit()

        monkeypatch.setattr(numbering_service, "next_number", lambda *args: "INV/JKT/2024/12/001")

        with pytest.raises(NumberingConflictError) as exc_info:
            numbering_service.assign_number(
                _sale(jakarta, admin), "invoice_number", Sale.invoice_number,
                tag=TAG_INVOICE, branch_code="JKT", at=datetime(2024, 12, 5),
            )
        db_session.rollback()

        assert exc_info.value.details["prefix"] == "INV/JKT/2024/12/"
        assert db_session.query(Sale).count() == 1
