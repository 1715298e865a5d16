"""
Email utility functions.
All senders here are fire-and-forget: failures are logged and reported as
False, never raised into the request that triggered them.
"""
from flask_mail import Mail, Message
from flask import current_app

mail = Mail()


def mail_configured():
    return 'mail' in current_app.extensions and bool(current_app.config.get('MAIL_SERVER'))


def send_email(subject, recipients, body, html=None):
    """
    Send an email

    Args:
        subject: Email subject
        recipients: List of recipient email addresses
        body: Plain text body
        html: HTML body (optional)

    Returns:
        bool: True if handed to the mail server
    """
    recipients = [r for r in (recipients or []) if r]
    if not recipients:
        return False
    if not mail_configured():
        current_app.logger.warning(f"Mail not configured; dropping email '{subject}'")
        return False
    try:
        msg = Message(subject=subject, recipients=recipients, body=body, html=html)
        mail.send(msg)
        return True
    except Exception as e:
        current_app.logger.error(f"Error sending email '{subject}' to {recipients}: {str(e)}", exc_info=True)
        return False


def send_contribution_receipt(payment, campaign):
    """Thank the supporter for a settled contribution"""
    if not payment.email:
        return False
    amount = f"{payment.currency} {float(payment.amount):,.2f}"
    subject = f"Thank you for supporting {campaign.title}"
    body = f"""
Hello {payment.name},

Your contribution of {amount} to "{campaign.title}" was received.

Payment reference: {payment.gateway_payment_id or payment.gateway_order_id}

Thank you for your support!
"""
    html = _receipt_email_html(payment.name, campaign.title, amount,
                               payment.gateway_payment_id or payment.gateway_order_id)
    return send_email(subject, [payment.email], body, html)


def send_update_emails(supporters, campaign, update):
    """Email a published campaign update to supporters; returns number sent"""
    site_url = current_app.config.get('SITE_URL', '').rstrip('/')
    snippet = update.content[:200]
    sent = 0
    for supporter in supporters:
        body = f"""
Hello {supporter.name},

{campaign.title} posted a new update: {update.title}

{snippet}

Read more: {site_url}/campaign/{campaign.slug}#updates
"""
        if send_email(f"New update: {update.title}", [supporter.email], body):
            sent += 1
    return sent


def send_weekly_summary(creator, summary, tips):
    """Weekly performance digest for a creator"""
    tips_text = "\n".join(f"- {tip}" for tip in tips)
    body = f"""
Hello {creator.name},

Here is how your campaigns did over the last 7 days:

New contributions: {summary['payments']}
Amount raised: {summary['amount']:,.2f}
Active campaigns: {summary['active_campaigns']}

Tips for the coming week:
{tips_text}
"""
    return send_email("Your weekly campaign summary", [creator.email], body)


def _receipt_email_html(name: str, campaign_title: str, amount: str, reference: str) -> str:
    """HTML template for contribution receipt"""
    return f"""
    <!DOCTYPE html>
    <html>
    <head><meta charset="utf-8"><title>Thank you</title></head>
    <body style="font-family: system-ui, sans-serif; max-width: 480px; margin: 0 auto; padding: 24px;">
        <h2 style="color: #1a1a2e;">Thank you, {name}!</h2>
        <p>Your contribution of <strong>{amount}</strong> to <strong>{campaign_title}</strong> was received.</p>
        <p style="color: #999; font-size: 12px;">Payment reference: {reference}</p>
    </body>
    </html>
    """
