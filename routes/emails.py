# routes/emails.py
from flask import Blueprint, current_app, g, jsonify, request

import claude_api
import graph_client
from guards import int_param, require_graph_auth, user_zone
from models import UserSettings
from time_windows import DisplayStyle, day_window, range_window, timezone_label, trailing_window, format_local_time

emails_bp = Blueprint("emails", __name__, url_prefix="/api/emails")

SUMMARY_QUERY = (
    "Summarize these emails: group them by topic, call out anything urgent or awaiting my reply, "
    "and list concrete follow-ups."
)


# ----------------------------- helpers -----------------------------

def present_email(email: dict, zone: str) -> dict:
    """Graph message + local display fields (label appended exactly once)."""
    received = graph_client.parse_graph_datetime(email.get("receivedDateTime"))
    out = dict(email)
    if received:
        out["receivedLocal"] = format_local_time(received, zone, DisplayStyle.DATE_AND_TIME)
        out["receivedLabel"] = timezone_label(received, zone)
    return out


def _user_signature():
    settings = UserSettings.find_by_user_email(g.user["username"], g.user["tenantId"])
    if settings and settings.signature:
        return settings.signature
    return None


def _default_tone() -> str:
    settings = UserSettings.find_by_user_email(g.user["username"], g.user["tenantId"])
    return ((settings.preferences or {}) if settings else {}).get("tone") or "professional"


def _json_body() -> dict:
    return request.get_json(silent=True) or {}


# ----------------------------- listing -----------------------------

@emails_bp.get("")
@emails_bp.get("/")
@require_graph_auth
def list_emails():
    days = int_param(request.args, "days", 1)
    zone = user_zone()
    window = trailing_window(zone, days)
    emails = graph_client.get_recent_emails(g.ms_token, window)
    return jsonify({
        "success": True,
        "period": f"{days} days",
        "window": window.as_dict(),
        "count": len(emails),
        "emails": [present_email(e, zone) for e in emails],
    })


@emails_bp.get("/today")
@require_graph_auth
def todays_emails():
    zone = user_zone()
    window = day_window(zone, 0)
    emails = graph_client.get_recent_emails(g.ms_token, window)
    return jsonify({
        "success": True,
        "date": format_local_time(window.start, zone, DisplayStyle.DATE_ONLY),
        "window": window.as_dict(),
        "count": len(emails),
        "emails": [present_email(e, zone) for e in emails],
    })


@emails_bp.get("/summary")
@require_graph_auth
def summarize_emails():
    days = int_param(request.args, "days", 1)
    zone = user_zone()
    window = trailing_window(zone, days)
    emails = graph_client.get_recent_emails(g.ms_token, window)
    summary = claude_api.process_email_query(SUMMARY_QUERY, emails, zone=zone) if emails else "No emails in this period."
    return jsonify({
        "success": True,
        "period": f"{days} days",
        "window": window.as_dict(),
        "emailCount": len(emails),
        "summary": summary,
    })


@emails_bp.get("/<email_id>")
@require_graph_auth
def get_email(email_id):
    email = graph_client.get_email_content(g.ms_token, email_id)
    return jsonify({"success": True, "email": present_email(email, user_zone())})


# ----------------------------- replies -----------------------------

@emails_bp.post("/<email_id>/respond")
@require_graph_auth
def draft_response(email_id):
    data = _json_body()
    context = data.get("context") or ""
    tone = data.get("tone") or _default_tone()

    original = graph_client.get_email_content(g.ms_token, email_id)
    signature = _user_signature()
    current_app.logger.info(
        "Drafting reply to %s for %s (signature %s)",
        email_id, g.user["username"], "enabled" if signature and signature.get("enabled") else "off",
    )
    draft = claude_api.generate_email_response(original, context, tone, signature, zone=user_zone())

    sender = ((original.get("from") or {}).get("emailAddress") or {})
    return jsonify({
        "success": True,
        "originalSubject": original.get("subject"),
        "originalFrom": f"{sender.get('name') or ''} <{sender.get('address') or ''}>",
        "generatedResponse": draft,
        "suggestedSubject": f"Re: {original.get('subject') or ''}",
        "signatureIncluded": bool(signature and signature.get("enabled")),
        "userEmail": g.user["username"],
    })


@emails_bp.post("/<email_id>/send")
@require_graph_auth
def send_response(email_id):
    data = _json_body()
    content = data.get("responseContent")
    if not content:
        return jsonify({"error": "Response content is required"}), 400

    result = graph_client.reply_to_email(
        g.ms_token, email_id, graph_client.text_to_html(content), reply_all=bool(data.get("replyToAll"))
    )
    current_app.logger.info("Reply sent on %s by %s", email_id, g.user["username"])
    return jsonify({
        "success": True,
        "message": "Email reply sent successfully - thread maintained",
        "messageId": result.get("id"),
        "replyType": result.get("type"),
        "sentBy": g.user["username"],
        "threadMaintained": True,
    })


@emails_bp.post("/<email_id>/reply-all")
@require_graph_auth
def reply_all(email_id):
    content = _json_body().get("responseContent")
    if not content:
        return jsonify({"error": "Response content is required"}), 400

    signature_text = claude_api.format_signature(_user_signature())
    if signature_text:
        content += signature_text

    result = graph_client.reply_to_email(g.ms_token, email_id, graph_client.text_to_html(content), reply_all=True)
    current_app.logger.info("Reply-all sent on %s by %s", email_id, g.user["username"])
    return jsonify({
        "success": True,
        "message": "Reply to all sent successfully - thread maintained",
        "messageId": result.get("id"),
        "replyType": result.get("type"),
        "sentBy": g.user["username"],
        "threadMaintained": True,
    })


@emails_bp.post("/<email_id>/read")
@require_graph_auth
def mark_read(email_id):
    return jsonify(graph_client.mark_email_as_read(g.ms_token, email_id))


# ----------------------------- AI query -----------------------------

@emails_bp.post("/query")
@require_graph_auth
def query_emails():
    data = _json_body()
    query = (data.get("query") or "").strip()
    if not query:
        return jsonify({"error": "Query is required"}), 400

    days = int_param(data, "includeDays", 1)
    zone = user_zone()
    emails = graph_client.get_recent_emails(g.ms_token, trailing_window(zone, days))
    try:
        events = graph_client.get_calendar_events(g.ms_token, range_window(zone, 7))
    except graph_client.GraphAPIError as e:
        # calendar is context only; answer from mail alone
        current_app.logger.warning("Calendar unavailable for query: %s", e)
        events = []

    answer = claude_api.process_email_query(query, emails, events, zone=zone)
    return jsonify({
        "success": True,
        "query": query,
        "response": answer,
        "emailCount": len(emails),
        "calendarEventCount": len(events),
    })
