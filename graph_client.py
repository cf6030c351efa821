"""
Outlook mail + calendar via Microsoft Graph (delegated token)
- Expects Graph token with scopes: Mail.ReadWrite, Mail.Send, Calendars.ReadWrite
- Date filters come from time_windows.DateWindow (UTC bounds)
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional
import html
import logging
import re
from datetime import datetime, timezone

import requests
from dateutil.parser import isoparse
from flask import current_app, has_app_context

from time_windows import DateWindow, resolve_zone, to_iso_z

log = logging.getLogger(__name__)

GRAPH_BASE = "https://graph.microsoft.com/v1.0"

MESSAGE_LIST_SELECT = "id,subject,from,receivedDateTime,bodyPreview,isRead,importance,hasAttachments"
MESSAGE_DETAIL_SELECT = "id,subject,from,toRecipients,receivedDateTime,body,bodyPreview,replyTo,conversationId,hasAttachments"
EVENT_SELECT = "id,subject,start,end,location,attendees,importance,showAs,organizer,isCancelled,webLink,onlineMeeting"


class GraphAPIError(RuntimeError):
    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


# -----------------------------------------------------------------------------
# HTTP plumbing
# -----------------------------------------------------------------------------
def _timeout() -> int:
    if has_app_context():
        return int(current_app.config.get("GRAPH_TIMEOUT", 20))
    return 20


def _headers(ms_token: str) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {ms_token}",
        "Content-Type": "application/json",
        # event start/end come back in UTC instead of the mailbox zone
        "Prefer": 'outlook.timezone="UTC"',
    }


def _request(method: str, ms_token: str, path: str, *, params=None, json=None) -> Dict[str, Any]:
    url = f"{GRAPH_BASE}{path}"
    try:
        r = requests.request(method, url, headers=_headers(ms_token), params=params, json=json, timeout=_timeout())
    except requests.RequestException as e:
        raise GraphAPIError(f"Graph request failed: {e}") from e

    try:
        r.raise_for_status()
    except requests.HTTPError:
        log.warning("Graph %s %s -> %s: %s", method, path, r.status_code, r.text[:200])
        raise GraphAPIError(f"Graph {method} {path} failed: {r.status_code}", status=r.status_code) from None

    # 202/204 (sendMail, reply, PATCH) have no body
    if not r.content:
        return {}
    return r.json()


# -----------------------------------------------------------------------------
# Time helpers
# -----------------------------------------------------------------------------
# Map common Windows time zone IDs (Graph often returns these) → IANA.
WINDOWS_TZ_TO_IANA = {
    "UTC": "UTC",
    "Coordinated Universal Time": "UTC",
    "Eastern Standard Time": "America/New_York",
    "Central Standard Time": "America/Chicago",
    "Mountain Standard Time": "America/Denver",
    "US Mountain Standard Time": "America/Phoenix",
    "Pacific Standard Time": "America/Los_Angeles",
    "Alaskan Standard Time": "America/Anchorage",
    "Hawaiian Standard Time": "Pacific/Honolulu",
    "Atlantic Standard Time": "America/Halifax",
    "GMT Standard Time": "Europe/London",
    "W. Europe Standard Time": "Europe/Berlin",
    "Romance Standard Time": "Europe/Paris",
    "E. Europe Standard Time": "Europe/Chisinau",
    "India Standard Time": "Asia/Kolkata",
    "Tokyo Standard Time": "Asia/Tokyo",
    "China Standard Time": "Asia/Shanghai",
    "AUS Eastern Standard Time": "Australia/Sydney",
    "New Zealand Standard Time": "Pacific/Auckland",
}

_OFFSET_RE = re.compile(r"[+-]\d{2}:\d{2}$")


def parse_graph_datetime(value: Optional[str], tz_hint: Optional[str] = None) -> Optional[datetime]:
    """
    Graph can return:
      - 'YYYY-MM-DDTHH:MM:SS[.fffffff]Z' (UTC)
      - 'YYYY-MM-DDTHH:MM:SS[.fffffff]+/-HH:MM' (offset)
      - 'YYYY-MM-DDTHH:MM:SS[.fffffff]' (naive) + separate 'timeZone' field
    Return aware UTC datetime. Unknown zone hints raise InvalidTimeZone.
    """
    if not value:
        return None
    s = value.strip()
    dt = isoparse(s)
    if dt.tzinfo is None:
        hint = (tz_hint or "UTC").strip()
        dt = dt.replace(tzinfo=resolve_zone(WINDOWS_TZ_TO_IANA.get(hint, hint)))
    return dt.astimezone(timezone.utc)


def event_start(ev: Dict[str, Any]) -> Optional[datetime]:
    start = ev.get("start") or {}
    return parse_graph_datetime(start.get("dateTime"), start.get("timeZone"))


def event_end(ev: Dict[str, Any]) -> Optional[datetime]:
    end = ev.get("end") or {}
    return parse_graph_datetime(end.get("dateTime"), end.get("timeZone"))


# -----------------------------------------------------------------------------
# Profile
# -----------------------------------------------------------------------------
def get_user_profile(ms_token: str) -> Dict[str, Any]:
    return _request("GET", ms_token, "/me")


def get_organization(ms_token: str) -> Dict[str, Any]:
    """Tenant display name + default verified domain (empty dict if none)."""
    items = _request("GET", ms_token, "/organization", params={"$select": "id,displayName,verifiedDomains"}).get("value") or []
    if not items:
        return {}
    org = items[0]
    domains = org.get("verifiedDomains") or []
    default = next((d.get("name") for d in domains if d.get("isDefault")), None)
    return {"id": org.get("id"), "displayName": org.get("displayName"), "domain": default}


# -----------------------------------------------------------------------------
# Mail
# -----------------------------------------------------------------------------
def get_recent_emails(ms_token: str, window: DateWindow, top: int = 50) -> List[Dict[str, Any]]:
    """Inbox messages received inside [window.start, window.end], newest first."""
    start, end = window.iso_bounds()
    data = _request(
        "GET",
        ms_token,
        "/me/mailFolders/inbox/messages",
        params={
            "$filter": f"receivedDateTime ge {start} and receivedDateTime le {end}",
            "$select": MESSAGE_LIST_SELECT,
            "$orderby": "receivedDateTime desc",
            "$top": min(int(top or 50), 100),
        },
    )
    return data.get("value", []) or []


def get_email_content(ms_token: str, email_id: str) -> Dict[str, Any]:
    return _request("GET", ms_token, f"/me/messages/{email_id}", params={"$select": MESSAGE_DETAIL_SELECT})


def mark_email_as_read(ms_token: str, email_id: str) -> Dict[str, Any]:
    _request("PATCH", ms_token, f"/me/messages/{email_id}", json={"isRead": True})
    return {"success": True, "message": "Email marked as read"}


def send_email(ms_token: str, to: str, subject: str, body_html: str, reply_to_email_id: Optional[str] = None) -> Dict[str, Any]:
    """New message, or a threaded reply when reply_to_email_id is given."""
    if reply_to_email_id:
        return reply_to_email(ms_token, reply_to_email_id, body_html)

    message = {
        "subject": subject,
        "body": {"contentType": "HTML", "content": body_html},
        "toRecipients": [{"emailAddress": {"address": to}}],
    }
    _request("POST", ms_token, "/me/sendMail", json={"message": message})
    log.info("New email sent")
    return {"success": True, "message": "New email sent successfully", "id": None, "type": "new"}


def reply_to_email(ms_token: str, email_id: str, body_html: str, reply_all: bool = False) -> Dict[str, Any]:
    # reply/replyAll keep the conversation thread intact
    endpoint = "replyAll" if reply_all else "reply"
    payload = {"message": {"body": {"contentType": "HTML", "content": body_html}}}
    result = _request("POST", ms_token, f"/me/messages/{email_id}/{endpoint}", json=payload)
    label = "Reply all" if reply_all else "Reply"
    log.info("%s sent for message %s", label, email_id)
    return {
        "success": True,
        "message": f"{label} sent successfully",
        "id": result.get("id"),
        "type": "reply-all" if reply_all else "reply",
    }


def text_to_html(text: str) -> str:
    """Plain text (blank-line paragraphs, single-newline breaks) → escaped HTML."""
    paragraphs = [p for p in re.split(r"\n\s*\n", (text or "").strip()) if p.strip()]
    return "".join(
        "<p>" + "<br>".join(html.escape(line) for line in p.split("\n")) + "</p>"
        for p in paragraphs
    )


# -----------------------------------------------------------------------------
# Calendar
# -----------------------------------------------------------------------------
def get_calendar_events(ms_token: str, window: DateWindow, top: int = 100) -> List[Dict[str, Any]]:
    """
    Events overlapping the window, via /me/calendarView (expands recurrences).
    Cancelled events are dropped.
    """
    data = _request(
        "GET",
        ms_token,
        "/me/calendarView",
        params={
            "startDateTime": to_iso_z(window.start),
            "endDateTime": to_iso_z(window.end),
            "$select": EVENT_SELECT,
            "$orderby": "start/dateTime",
            "$top": min(int(top or 100), 250),
        },
    )
    return [ev for ev in (data.get("value", []) or []) if not ev.get("isCancelled")]
