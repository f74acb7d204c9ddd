import smtplib
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List

from coopdesk.core.config import settings

logger = logging.getLogger(__name__)


def _smtp_configured() -> bool:
    return all([settings.SMTP_HOST, settings.SMTP_USER, settings.SMTP_PASSWORD, settings.FROM_EMAIL])


def _send_email(to_email: str, subject: str, plain_text: str, html_text: str) -> None:
    """Low-level helper to send one email via SMTP."""
    if not _smtp_configured():
        logger.warning("SMTP not fully configured; skipping email to %s.", to_email)
        return

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = settings.FROM_EMAIL
    msg["To"] = to_email
    if settings.REPLY_TO_EMAIL:
        msg["Reply-To"] = settings.REPLY_TO_EMAIL

    msg.attach(MIMEText(plain_text, "plain"))
    msg.attach(MIMEText(html_text, "html"))

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT or 587) as server:
        server.ehlo()
        server.starttls()
        server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.sendmail(settings.FROM_EMAIL, to_email, msg.as_string())


def send_month_end_report(to_emails: List[str], summary: dict) -> None:
    """Email admins the totals of an automatic month-end posting.

    summary is the dict returned by post_cycle: period, lines_posted,
    lines_excluded, savings_total, repayments_total, loans_completed.
    """
    if not to_emails:
        return

    period = summary["period"]
    subject = f"Cooperative month-end payroll posted - {period}"

    rows = [
        ("Lines posted", f"{summary['lines_posted']}"),
        ("Lines excluded", f"{summary['lines_excluded']}"),
        ("Savings credited", f"{summary['savings_total']:,.2f}"),
        ("Loan repayments applied", f"{summary['repayments_total']:,.2f}"),
        ("Loans completed", f"{summary['loans_completed']}"),
    ]

    # ---- plain text --------------------------------------------------------
    lines = [f"Month-end payroll deductions for {period} were posted automatically.", ""]
    lines.extend(f"  {label}: {value}" for label, value in rows)
    lines.append("")
    lines.append("This is an automated notification from the cooperative back-office.")
    plain_text = "\n".join(lines)

    # ---- HTML --------------------------------------------------------------
    table_rows = "".join(
        f'<tr><td style="padding:6px 12px;border-bottom:1px solid #e2e8f0;">{label}</td>'
        f'<td style="padding:6px 12px;border-bottom:1px solid #e2e8f0;text-align:right;">{value}</td></tr>'
        for label, value in rows
    )
    html_text = f"""
    <html>
    <body style="font-family:Arial,sans-serif;color:#1e3a5f;background:#f0f4ff;padding:24px;">
      <div style="max-width:560px;margin:0 auto;background:#ffffff;border-radius:12px;
                  border:2px solid #bfdbfe;padding:32px;">
        <h2 style="color:#1d4ed8;margin-bottom:4px;">Month-End Payroll Posted</h2>
        <p style="font-size:13px;color:#64748b;margin-top:0;">Period {period}</p>
        <table style="width:100%;border-collapse:collapse;font-size:14px;">{table_rows}</table>
        <p style="font-size:12px;color:#94a3b8;margin-top:24px;">
          Review the cycle on the month-end screen if any figure looks wrong.
        </p>
      </div>
    </body>
    </html>
    """

    for email_addr in to_emails:
        try:
            _send_email(email_addr, subject, plain_text, html_text)
            logger.info("Month-end report email sent to %s", email_addr)
        except (smtplib.SMTPException, OSError):
            logger.exception("Failed to send month-end report to %s", email_addr)
