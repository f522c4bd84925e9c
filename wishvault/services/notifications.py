"""Notification service (Mailgun email).

Every sender returns True when the provider accepted the message and False otherwise;
callers treat delivery as best effort and never roll back on a failed send.
"""
import html
import logging

import httpx

from wishvault.config import get_settings

logger = logging.getLogger("wishvault.notifications")

MAILGUN_US_BASE = "https://api.mailgun.net"
MAILGUN_EU_BASE = "https://api.eu.mailgun.net"


def send_email(to_email: str, subject: str, html_content: str, text_content: str | None = None) -> bool:
    """Send email via Mailgun. Returns False (and sends nothing) when Mailgun is not configured."""
    settings = get_settings()
    if not (settings.mailgun_api_key and settings.mailgun_domain):
        logger.warning(
            "Email NOT SENT: subject=%r. MAILGUN_API_KEY=%s MAILGUN_DOMAIN=%s",
            subject,
            "set" if settings.mailgun_api_key else "MISSING",
            "set" if settings.mailgun_domain else "MISSING",
        )
        return False
    return _send_email_mailgun(to_email, subject, html_content, text_content=text_content, settings=settings)


def _send_email_mailgun(to_email: str, subject: str, html_content: str, text_content: str | None = None, settings=None) -> bool:
    if settings is None:
        settings = get_settings()
    base = (settings.mailgun_base_url or MAILGUN_US_BASE).strip().rstrip("/")
    domain = (settings.mailgun_domain or "").strip().lower()
    from_addr = (settings.mailgun_from_email or "").strip()
    from_domain = from_addr.split("@")[-1].lower() if "@" in from_addr else ""
    if domain and from_domain != domain:
        # Mailgun only delivers when the sender matches the sending domain
        from_addr = f"noreply@{domain}"
    data = {
        "from": f"{settings.mailgun_from_name} <{from_addr}>",
        "to": to_email,
        "subject": subject,
        "text": text_content or "",
        "html": html_content or "",
    }
    try:
        with httpx.Client(timeout=10.0) as client:
            r = client.post(f"{base}/v3/{domain}/messages", auth=("api", settings.mailgun_api_key), data=data)
            if 200 <= r.status_code < 300:
                logger.info("Mailgun accepted message: subject=%r status=%s", subject, r.status_code)
                return True
            if r.status_code == 401 and base == MAILGUN_US_BASE:
                logger.info("Mailgun 401 with US endpoint, retrying with EU endpoint")
                r2 = client.post(f"{MAILGUN_EU_BASE}/v3/{domain}/messages", auth=("api", settings.mailgun_api_key), data=data)
                if 200 <= r2.status_code < 300:
                    return True
                logger.warning("Mailgun EU request failed: status=%s", r2.status_code)
                return False
            logger.warning("Mailgun API failed: status=%s body=%s", r.status_code, r.text[:500])
            return False
    except httpx.HTTPError as e:
        logger.warning("Mailgun request error: %s: %s", type(e).__name__, e)
        return False


def _brand() -> str:
    return get_settings().mailgun_from_name or "Wishkeepers"


def send_verification_email(to_email: str, full_name: str | None, code: str) -> bool:
    """Send the 6-digit signup verification code."""
    name = html.escape((full_name or "").strip() or "there")
    minutes = get_settings().verification_code_expire_minutes
    subject = f"[{_brand()}] Your verification code"
    text = f"Your verification code is: {code}. It expires in {minutes} minutes."
    body = f"""
    <p>Hi {name},</p>
    <p>Your verification code is: <strong style="font-size:1.2em;letter-spacing:0.2em;">{code}</strong></p>
    <p>This code expires in {minutes} minutes. If you did not request this, you can ignore this email.</p>
    <p>- {_brand()}</p>
    """
    return send_email(to_email, subject, body, text_content=text)


def send_trusted_contact_invite(to_email: str, contact_name: str, inviter_name: str, invite_token: str) -> bool:
    """Invite a nominee. The link carries the single-use token."""
    invite_url = f"{get_settings().base_url.rstrip('/')}/trusted-contact/accept/{invite_token}"
    name = html.escape(contact_name or "there")
    inviter = html.escape(inviter_name or "Someone")
    subject = f"{inviter_name} has nominated you as a trusted contact on {_brand()}"
    text = (
        f"Hello {contact_name}, {inviter_name} has nominated you as a trusted contact. "
        f"Accept the invitation: {invite_url}"
    )
    body = f"""
    <h2>You've been nominated as a trusted contact</h2>
    <p>Hello {name},</p>
    <p>{inviter} has nominated you as a trusted contact on {_brand()}, a secure digital legacy vault.</p>
    <p>This means that if needed, you may be able to access important information they've stored for their loved ones.</p>
    <p><a href="{invite_url}">Accept Invitation</a></p>
    <p>- {_brand()}</p>
    """
    return send_email(to_email, subject, body, text_content=text)


def send_contact_removed_to_owner(to_email: str, owner_name: str | None, contact_name: str) -> bool:
    name = html.escape((owner_name or "").strip() or "there")
    contact = html.escape(contact_name)
    subject = f"[{_brand()}] {contact_name} is no longer a trusted contact"
    body = f"""
    <p>Hi {name},</p>
    <p><strong>{contact}</strong> has been removed as a trusted contact for your vault.</p>
    <p>You may want to nominate someone else so your wishes can still be shared.</p>
    <p>- {_brand()}</p>
    """
    return send_email(to_email, subject, body, text_content=f"{contact_name} has been removed as a trusted contact for your vault.")


def send_contact_removed_to_contact(to_email: str, contact_name: str, owner_name: str | None) -> bool:
    name = html.escape(contact_name or "there")
    owner = html.escape((owner_name or "").strip() or "the vault owner")
    subject = f"[{_brand()}] You have been removed as a trusted contact"
    body = f"""
    <p>Hi {name},</p>
    <p>You are no longer a trusted contact for {owner}. No further action is needed.</p>
    <p>- {_brand()}</p>
    """
    return send_email(to_email, subject, body, text_content=f"You are no longer a trusted contact for {owner_name or 'the vault owner'}.")


def send_release_decision(to_email: str, requester_name: str | None, deceased_name: str, approved: bool) -> bool:
    """Tell the requester whether access to the vault was granted."""
    name = html.escape((requester_name or "").strip() or "there")
    deceased = html.escape(deceased_name)
    if approved:
        subject = f"[{_brand()}] Your request has been approved"
        line = f"Your request for access to the vault of {deceased} has been approved. You can now sign in to view it."
    else:
        subject = f"[{_brand()}] Your request could not be approved"
        line = f"Your request for access to the vault of {deceased} could not be approved. Please contact support if you believe this is a mistake."
    body = f"""
    <p>Hi {name},</p>
    <p>{line}</p>
    <p>- {_brand()}</p>
    """
    return send_email(to_email, subject, body, text_content=html.unescape(line))


def dispatch(sender, *args, **kwargs) -> bool:
    """Fire-and-forget call of a send_* function: a failure is logged, never raised to the caller."""
    try:
        return bool(sender(*args, **kwargs))
    except Exception:
        logger.exception("Notification %s failed", getattr(sender, "__name__", sender))
        return False
