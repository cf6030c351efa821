# routes/calendar.py
from datetime import date

from flask import Blueprint, g, jsonify, request

import claude_api
import graph_client
from guards import ParamError, int_param, require_graph_auth, user_zone
from time_windows import (
    DisplayStyle,
    day_window,
    format_local_time,
    range_window,
    timezone_label,
    trailing_window,
    utc_now,
    window_for_date,
)

calendar_bp = Blueprint("calendar", __name__, url_prefix="/api/calendar")


# ---- helpers ----

def present_event(ev: dict, zone: str) -> dict:
    """Graph event + local start/end strings, each with its own label."""
    out = dict(ev)
    start, end = graph_client.event_start(ev), graph_client.event_end(ev)
    if start:
        out["startLocal"] = format_local_time(start, zone, DisplayStyle.WEEKDAY_AND_TIME)
        out["startLabel"] = timezone_label(start, zone)
    if end:
        out["endLocal"] = format_local_time(end, zone, DisplayStyle.TIME_ONLY)
        out["endLabel"] = timezone_label(end, zone)
    return out


def _parse_date(raw):
    if not raw:
        raise ParamError("date is required (YYYY-MM-DD)")
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise ParamError("date must be YYYY-MM-DD") from None


# ---- routes ----

@calendar_bp.get("/events")
@require_graph_auth
def list_events():
    days = int_param(request.args, "days", 7)
    zone = user_zone()
    window = range_window(zone, days)
    events = graph_client.get_calendar_events(g.ms_token, window)
    return jsonify({
        "success": True,
        "period": f"{days} days",
        "window": window.as_dict(),
        "count": len(events),
        "events": [present_event(ev, zone) for ev in events],
    })


@calendar_bp.get("/today")
@require_graph_auth
def todays_schedule():
    zone = user_zone()
    window = day_window(zone, 0)
    events = graph_client.get_calendar_events(g.ms_token, window)
    summary = "No meetings scheduled for today."
    if events:
        summary = claude_api.process_email_query(
            "Give me an overview of today's schedule: meetings in order, gaps for focused work, "
            "and anything that needs preparation.",
            [], events, zone=zone,
        )
    return jsonify({
        "success": True,
        "date": format_local_time(window.start, zone, DisplayStyle.DATE_ONLY),
        "window": window.as_dict(),
        "count": len(events),
        "events": [present_event(ev, zone) for ev in events],
        "summary": summary,
    })


@calendar_bp.get("/availability")
@require_graph_auth
def availability():
    target = _parse_date(request.args.get("date"))
    duration = int_param(request.args, "duration", 60)
    if duration <= 0:
        raise ParamError("duration must be a positive number of minutes")

    zone = user_zone()
    window = window_for_date(zone, target)
    events = graph_client.get_calendar_events(g.ms_token, window)
    analysis = claude_api.process_email_query(
        f"List the free slots of at least {duration} minutes on {target.isoformat()} "
        "during business hours (9 AM to 5 PM), given these meetings.",
        [], events, zone=zone,
    )
    return jsonify({
        "success": True,
        "date": target.isoformat(),
        "duration": duration,
        "window": window.as_dict(),
        "existingEvents": len(events),
        "availability": analysis,
    })


@calendar_bp.get("/conflicts")
@require_graph_auth
def conflicts():
    days = int_param(request.args, "days", 7)
    zone = user_zone()
    window = range_window(zone, days)
    events = graph_client.get_calendar_events(g.ms_token, window)
    analysis = "No events in this period."
    if events:
        analysis = claude_api.process_email_query(
            "Find overlapping or back-to-back meetings and double bookings, "
            "and suggest which ones to move.",
            [], events, zone=zone,
        )
    return jsonify({
        "success": True,
        "period": f"{days} days",
        "window": window.as_dict(),
        "eventCount": len(events),
        "analysis": analysis,
    })


@calendar_bp.get("/next-meeting")
@require_graph_auth
def next_meeting():
    zone = user_zone()
    now = utc_now()
    events = graph_client.get_calendar_events(g.ms_token, range_window(zone, 1, now))
    upcoming = sorted(
        (ev for ev in events if (graph_client.event_start(ev) or now) > now),
        key=graph_client.event_start,
    )
    if not upcoming:
        return jsonify({"success": True, "nextMeeting": None, "message": "No upcoming meetings in the next day."})

    meeting = upcoming[0]
    emails = graph_client.get_recent_emails(g.ms_token, trailing_window(zone, 7, now))
    prep = claude_api.process_email_query(
        f"Help me prepare for my next meeting, \"{meeting.get('subject') or '(no title)'}\": "
        "summarize related recent emails, open questions, and what to bring.",
        emails, [meeting], zone=zone, now=now,
    )
    return jsonify({
        "success": True,
        "nextMeeting": present_event(meeting, zone),
        "preparation": prep,
    })
