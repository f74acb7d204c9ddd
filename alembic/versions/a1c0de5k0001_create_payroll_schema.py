"""create member, loan, voucher and payroll tables

Revision ID: a1c0de5k0001
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = 'a1c0de5k0001'
down_revision = None
branch_labels = None
depends_on = None


def _enum(*values, name):
    return sa.Enum(*values, name=name, native_enum=False)


def upgrade():
    op.create_table(
        "member",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("staff_id", sa.String(50), nullable=True),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("department", sa.String(100), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", _enum("admin", "member", name="memberrole"), nullable=False),
        sa.Column("status", _enum("pending", "active", "closed", name="memberstatus"), nullable=False),
        sa.Column("monthly_contribution", sa.Numeric(15, 2), nullable=False),
        sa.Column("voucher_enabled", sa.Boolean(), nullable=False),
        sa.Column("balance", sa.Numeric(15, 2), nullable=False),
        sa.Column("total_contributions", sa.Numeric(15, 2), nullable=False),
        sa.Column("loan_balance", sa.Numeric(15, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("closed_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_member_email", "member", ["email"], unique=True)
    op.create_index("ix_member_staff_id", "member", ["staff_id"], unique=True)

    op.create_table(
        "loan",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("member_id", sa.Uuid(), sa.ForeignKey("member.id"), nullable=False),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("interest_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("duration_months", sa.Integer(), nullable=False),
        sa.Column("total_repayable", sa.Numeric(15, 2), nullable=False),
        sa.Column("monthly_payment", sa.Numeric(15, 2), nullable=False),
        sa.Column("balance", sa.Numeric(15, 2), nullable=False),
        sa.Column("status", _enum("pending", "approved", "rejected", "completed", name="loanstatus"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_loan_member_id", "loan", ["member_id"])

    op.create_table(
        "repayment",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("loan_id", sa.Uuid(), sa.ForeignKey("loan.id"), nullable=False),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_repayment_loan_id", "repayment", ["loan_id"])

    op.create_table(
        "payment",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("member_id", sa.Uuid(), sa.ForeignKey("member.id"), nullable=False),
        sa.Column("type", _enum("contribution", "loan_repayment", "commodity", name="paymenttype"), nullable=False),
        sa.Column("status", _enum("pending", "approved", "rejected", name="paymentstatus"), nullable=False),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("reference", sa.String(100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_payment_member_id", "payment", ["member_id"])
    op.create_index("ix_payment_date", "payment", ["date"])

    op.create_table(
        "ledger_transaction",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("member_id", sa.Uuid(), sa.ForeignKey("member.id"), nullable=False),
        sa.Column("type", _enum("contribution", "loan_repayment", "loan_disbursement", "withdrawal", name="transactiontype"), nullable=False),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("status", _enum("pending", "completed", "failed", name="transactionstatus"), nullable=False),
        sa.Column("reference", sa.String(50), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_ledger_transaction_member_id", "ledger_transaction", ["member_id"])
    op.create_index("ix_ledger_transaction_reference", "ledger_transaction", ["reference"], unique=True)

    op.create_table(
        "voucher",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("member_id", sa.Uuid(), sa.ForeignKey("member.id"), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("staff_id", sa.String(50), nullable=True),
        sa.Column("department", sa.String(100), nullable=True),
        sa.Column("monthly_deduction", sa.Numeric(15, 2), nullable=False),
        sa.Column("effective_start_date", sa.Date(), nullable=False),
        sa.Column("status", _enum("generated", "sent", "removed", name="voucherstatus"), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("removed_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_voucher_member_id", "voucher", ["member_id"])

    op.create_table(
        "payroll_cycle",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("period", sa.String(7), nullable=False),
        sa.Column("status", _enum("draft", "finance_confirmed", "posted", name="payrollcyclestatus"), nullable=False),
        sa.Column("created_by", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("finance_confirmed_by", sa.String(255), nullable=True),
        sa.Column("finance_confirmed_at", sa.DateTime(), nullable=True),
        sa.Column("posted_by", sa.String(255), nullable=True),
        sa.Column("posted_at", sa.DateTime(), nullable=True),
    )
    # One cycle per month; concurrent draft requests collide here
    op.create_index("ix_payroll_cycle_period", "payroll_cycle", ["period"], unique=True)

    op.create_table(
        "payroll_line",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("cycle_id", sa.Uuid(), sa.ForeignKey("payroll_cycle.id"), nullable=False),
        sa.Column("member_id", sa.Uuid(), sa.ForeignKey("member.id"), nullable=False),
        sa.Column("loan_id", sa.Uuid(), sa.ForeignKey("loan.id"), nullable=True),
        sa.Column("line_type", _enum("savings", "loan_repayment", name="payrolllinetype"), nullable=False),
        sa.Column("expected_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("actual_amount", sa.Numeric(15, 2), nullable=True),
        sa.Column("status", _enum("pending", "excluded", "posted", name="payrolllinestatus"), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("posted_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_payroll_line_cycle_id", "payroll_line", ["cycle_id"])
    op.create_index("ix_payroll_line_member_id", "payroll_line", ["member_id"])
    op.create_index("ix_payroll_line_loan_id", "payroll_line", ["loan_id"])


def downgrade():
    op.drop_table("payroll_line")
    op.drop_table("payroll_cycle")
    op.drop_table("voucher")
    op.drop_table("ledger_transaction")
    op.drop_table("payment")
    op.drop_table("repayment")
    op.drop_table("loan")
    op.drop_table("member")
