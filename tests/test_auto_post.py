from datetime import datetime
from decimal import Decimal

from coopdesk.models import PayrollCycle, PayrollCycleStatus, Transaction
from coopdesk.services import payroll, scheduler
from coopdesk.services.payroll import SYSTEM_ACTOR, auto_post_if_due, confirm_finance, generate_draft

DUE = datetime(2024, 4, 30, 12, 0)


def test_nothing_happens_before_due_day(db, make_member):
    make_member()

    result = auto_post_if_due(db, now=datetime(2024, 4, 29, 12, 0))

    assert result["ran"] is False
    assert result["reason"] == "before_due_day"
    assert result["period"] == "2024-04"
    assert db.query(PayrollCycle).count() == 0


def test_due_day_drafts_confirms_and_posts(db, make_member):
    member = make_member(monthly_contribution="1200.00")

    result = auto_post_if_due(db, now=DUE)

    assert result["ran"] is True
    assert result["reason"] == "posted"
    assert result["summary"]["lines_posted"] == 1
    cycle = db.query(PayrollCycle).one()
    assert cycle.period == "2024-04"
    assert cycle.status == PayrollCycleStatus.POSTED
    assert cycle.created_by == SYSTEM_ACTOR
    assert cycle.finance_confirmed_by == SYSTEM_ACTOR
    assert cycle.posted_by == SYSTEM_ACTOR
    db.refresh(member)
    assert member.balance == Decimal("1200.00")


def test_repeated_runs_post_once(db, make_member):
    make_member(monthly_contribution="1200.00")
    auto_post_if_due(db, now=DUE)

    again = auto_post_if_due(db, now=DUE)

    assert again["ran"] is False
    assert again["reason"] == "already_posted"
    assert db.query(PayrollCycle).count() == 1
    assert db.query(Transaction).count() == 1


def test_existing_admin_draft_is_reused(db, make_member):
    make_member(monthly_contribution="1200.00")
    draft = generate_draft(db, "2024-04", created_by="Back Office")
    confirm_finance(db, draft.id, "Back Office")

    result = auto_post_if_due(db, now=DUE)

    assert result["ran"] is True
    assert result["cycle_id"] == draft.id
    db.refresh(draft)
    assert draft.created_by == "Back Office"
    assert draft.finance_confirmed_by == "Back Office"
    assert draft.posted_by == SYSTEM_ACTOR


def test_scheduler_job_emails_admins_after_posting(db, make_member, admin, session_factory, monkeypatch):
    make_member(monthly_contribution="1200.00")
    sent = []
    monkeypatch.setattr(scheduler, "SessionLocal", session_factory)
    monkeypatch.setattr(
        "coopdesk.core.email.send_month_end_report",
        lambda to_emails, summary: sent.append((to_emails, summary)),
    )

    result = scheduler.run_month_end_job(now=DUE)

    assert result["ran"] is True
    assert sent and sent[0][0] == [admin.email]
    assert sent[0][1]["period"] == "2024-04"


def test_scheduler_job_reports_errors(monkeypatch):
    def broken(db, now=None):
        raise RuntimeError("database gone")

    monkeypatch.setattr(scheduler, "auto_post_if_due", broken)

    result = scheduler.run_month_end_job(now=DUE)

    assert result["ran"] is False
    assert result["reason"] == "error"


def test_auto_post_reuses_cycle_created_by_concurrent_run(db, make_member, monkeypatch):
    make_member(monthly_contribution="1200.00")
    existing = generate_draft(db, "2024-04", created_by="Back Office")
    real_lookup = payroll.get_cycle_by_period
    calls = {"n": 0}

    def lookup_misses_twice(db, period):
        # Both existence checks run before the other draft is visible
        calls["n"] += 1
        if calls["n"] <= 2:
            return None
        return real_lookup(db, period)

    monkeypatch.setattr(payroll, "get_cycle_by_period", lookup_misses_twice)

    result = auto_post_if_due(db, now=DUE)

    assert calls["n"] == 3
    assert result["ran"] is True
    assert result["cycle_id"] == existing.id
    assert db.query(PayrollCycle).count() == 1
    db.refresh(existing)
    assert existing.created_by == "Back Office"
    assert existing.status == PayrollCycleStatus.POSTED
