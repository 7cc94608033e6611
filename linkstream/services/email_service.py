"""Transactional e-mail through the Resend HTTP API."""

import html
import json
import urllib.error
import urllib.request


RESEND_API_URL = 'https://api.resend.com/emails'
EMAIL_HTTP_TIMEOUT_SECONDS = 10


def send_email(to_email, subject, text_body, *, api_key, from_address, html_body='', logger=None, urlopen=urllib.request.urlopen):
    """Send one message. Returns ``None`` on success or an error string."""
    if not api_key or not from_address:
        return 'Email sending is not configured.'
    payload = {
        'from': from_address,
        'to': [str(to_email or '').strip().lower()],
        'subject': subject,
        'text': text_body,
    }
    if html_body:
        payload['html'] = html_body
    req = urllib.request.Request(
        RESEND_API_URL,
        data=json.dumps(payload).encode('utf-8'),
        method='POST',
        headers={
            'Authorization': f'Bearer {api_key}',
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        },
    )
    try:
        with urlopen(req, timeout=EMAIL_HTTP_TIMEOUT_SECONDS) as resp:
            status_code = int(resp.getcode() or 0)
            if status_code >= 400:
                return f"Resend API rejected the request (HTTP {status_code})."
        return None
    except urllib.error.HTTPError as exc:
        details = exc.read().decode('utf-8', errors='ignore')[:220]
        if logger is not None:
            logger.warning(f"⚠️ Resend HTTP error {exc.code} sending to {to_email}: {details}")
        return f"Resend API error ({exc.code})."
    except (urllib.error.URLError, OSError) as exc:
        if logger is not None:
            logger.warning(f"⚠️ Resend request failed for {to_email}: {exc}")
        return f"Email request failed: {exc}"


def build_team_invite_email(owner_email, accept_url):
    subject = "You've been invited to join a LinkStream team"
    text_body = (
        f"{owner_email} has invited you to join their team on LinkStream.\n\n"
        f"Accept the invitation here: {accept_url}\n\n"
        "If you were not expecting this invitation you can ignore this email."
    )
    html_body = (
        f"<p><strong>{html.escape(owner_email)}</strong> has invited you to join their team on LinkStream.</p>"
        f"<p><a href=\"{html.escape(accept_url, quote=True)}\">Accept the invitation</a></p>"
        "<p>If you were not expecting this invitation you can ignore this email.</p>"
    )
    return subject, text_body, html_body


def build_invite_accept_url(base_url, token):
    return f"{str(base_url or '').rstrip('/')}/team/accept?token={token}"
