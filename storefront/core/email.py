# storefront/core/email.py
"""
Email service using Resend for sending transactional emails.
"""
import html
import logging
from typing import List, Sequence

import resend

from storefront.core.config import Settings

logger = logging.getLogger(__name__)


def init_resend(settings: Settings):
    """Initialize Resend with API key."""
    resend.api_key = settings.RESEND_API_KEY


def format_amount(amount: int, currency: str) -> str:
    """Render an amount in minor units, e.g. 49900 INR -> 'INR 499.00'."""
    return f"{currency.upper()} {amount / 100:,.2f}"


def build_download_links(settings: Settings, tokens: Sequence[str]) -> List[str]:
    base = settings.APP_URL.rstrip("/")
    return [f"{base}/api/v1/downloads/{token}" for token in tokens]


def send_purchase_email(
    settings: Settings,
    *,
    to_email: str,
    buyer_name: str,
    order_id: str,
    item_titles: Sequence[str],
    tokens: Sequence[str],
    total_amount: int,
    currency: str,
) -> dict:
    """
    Send the purchase confirmation with one download link per template.

    Returns:
        {"success": True, "id": ...} or {"success": False, "error": ...}
    """
    if not settings.RESEND_API_KEY:
        logger.warning(f"RESEND_API_KEY not set, purchase email for {order_id} skipped")
        return {"success": False, "error": "Email service not configured"}

    init_resend(settings)

    links = build_download_links(settings, tokens)
    rows = "".join(
        f'<li><a href="{html.escape(link)}">{html.escape(title)}</a></li>'
        for title, link in zip(item_titles, links)
    )
    # Any token beyond the listed titles still gets a link
    for link in links[len(item_titles):]:
        rows += f'<li><a href="{html.escape(link)}">Download</a></li>'

    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head><meta charset="utf-8"></head>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
            <h1>Thanks for your purchase!</h1>
            <p>Hi {html.escape(buyer_name or "there")},</p>
            <p>Your order <strong>{html.escape(order_id)}</strong> is confirmed.
               Total paid: <strong>{format_amount(total_amount, currency)}</strong>.</p>
            <p>Your download links (valid for {settings.DOWNLOAD_TOKEN_TTL_DAYS} days):</p>
            <ul>{rows}</ul>
            <p>Best regards,<br>{html.escape(settings.EMAIL_FROM_NAME)}</p>
        </div>
    </body>
    </html>
    """

    params = {
        "from": f"{settings.EMAIL_FROM_NAME} <{settings.EMAIL_FROM_ADDRESS}>",
        "to": [to_email],
        "subject": f"Your order {order_id} is confirmed",
        "html": html_content,
    }

    try:
        response = resend.Emails.send(params)
        logger.info(f"Purchase email sent to {to_email} for order {order_id}")
        return {"success": True, "id": response.get("id")}
    except Exception as e:
        logger.error(f"Failed to send purchase email to {to_email}: {e}")
        return {"success": False, "error": str(e)}
