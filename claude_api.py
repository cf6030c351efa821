# claude_api.py: Claude (Anthropic) prompts for mail/calendar summaries + reply drafts
from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from flask import current_app, has_app_context
from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage, SystemMessage

from graph_client import event_end, event_start, parse_graph_datetime
from time_windows import DisplayStyle, format_local_time, format_with_label, timezone_label, utc_now

log = logging.getLogger(__name__)

QUERY_MAX_TOKENS = 1500
REPLY_MAX_TOKENS = 1000
MAX_PROMPT_EMAILS = 20
MAX_PROMPT_EVENTS = 10
PREVIEW_CHARS = 100

_SYSTEM_ASSISTANT = (
    "You are an AI assistant helping to manage Microsoft 365 emails and calendar. "
    "Only use the emails and events you are given; never invent messages, meetings or attendees."
)


class AIServiceError(RuntimeError):
    pass


# -----------------------------------------------------------------------------
# LLM plumbing
# -----------------------------------------------------------------------------
def _setting(key: str, default: str = "") -> str:
    if has_app_context():
        return current_app.config.get(key) or default
    return os.getenv(key, default)


def _get_llm(max_tokens: int) -> ChatAnthropic:
    return ChatAnthropic(
        model=_setting("ANTHROPIC_MODEL", "claude-sonnet-4-20250514"),
        api_key=_setting("ANTHROPIC_API_KEY"),
        max_tokens=max_tokens,
        temperature=0,
    )


def _content_text(out: Any) -> str:
    content = getattr(out, "content", None)
    if isinstance(content, list):
        # content blocks: [{"type": "text", "text": ...}, ...]
        return "".join(b.get("text", "") if isinstance(b, dict) else str(b) for b in content).strip()
    return (content or str(out) or "").strip()


def _invoke(prompt: str, max_tokens: int, system_prompt: str = _SYSTEM_ASSISTANT) -> str:
    try:
        out = _get_llm(max_tokens).invoke([SystemMessage(content=system_prompt), HumanMessage(content=prompt)])
    except Exception as e:
        log.error("Claude call failed: %s", e)
        raise AIServiceError("AI processing failed") from e
    text = _content_text(out)
    if not text:
        raise AIServiceError("AI returned an empty response")
    return text


# -----------------------------------------------------------------------------
# Prompt helpers
# -----------------------------------------------------------------------------
def current_time_context(zone: str, now: Optional[datetime] = None) -> str:
    now = now or utc_now()
    return f"Current time: {format_with_label(now, zone, DisplayStyle.FULL)}"


def format_signature(signature: Optional[Dict[str, Any]]) -> str:
    if not signature or not signature.get("enabled"):
        return ""

    text = "\n\nThank you,\n"
    for key in ("name", "title", "company"):
        if signature.get(key):
            text += f"{signature[key]}\n"

    contact = []
    if signature.get("phone"):
        contact.append(f"Phone: {signature['phone']}")
    if signature.get("email"):
        contact.append(f"Email: {signature['email']}")
    if signature.get("website"):
        contact.append(f"Website: {signature['website']}")
    if contact:
        text += " | ".join(contact) + "\n"

    if signature.get("additional"):
        text += f"{signature['additional']}\n"
    return text


def _sender(email: Dict[str, Any]) -> tuple[str, str]:
    addr = ((email.get("from") or {}).get("emailAddress") or {})
    return addr.get("name") or "", addr.get("address") or "Unknown sender"


def format_emails_for_prompt(emails: Optional[List[Dict[str, Any]]], zone: str) -> str:
    if not emails:
        return "No recent emails found."

    blocks = []
    for i, email in enumerate(emails[:MAX_PROMPT_EMAILS], start=1):
        name, address = _sender(email)
        received = parse_graph_datetime(email.get("receivedDateTime"))
        when = format_with_label(received, zone, DisplayStyle.DATE_AND_TIME) if received else "Unknown date"
        preview = (email.get("bodyPreview") or "")[:PREVIEW_CHARS] or "No preview"
        blocks.append(
            f"{i}. From: {name} <{address}>\n"
            f"   Subject: {email.get('subject') or '(no subject)'}\n"
            f"   Date: {when}\n"
            f"   Read: {'Yes' if email.get('isRead') else 'No'}\n"
            f"   Preview: {preview}..."
        )
    return "\n\n".join(blocks)


def format_calendar_for_prompt(events: Optional[List[Dict[str, Any]]], zone: str) -> str:
    if not events:
        return "No upcoming events found."

    blocks = []
    for i, ev in enumerate(events[:MAX_PROMPT_EVENTS], start=1):
        start, end = event_start(ev), event_end(ev)
        start_txt = format_with_label(start, zone, DisplayStyle.WEEKDAY_AND_TIME) if start else "Unknown"
        end_txt = format_with_label(end, zone, DisplayStyle.TIME_ONLY) if end else "Unknown"
        location = (ev.get("location") or {}).get("displayName") or "No location"
        blocks.append(
            f"{i}. {ev.get('subject') or '(no title)'}\n"
            f"   Start: {start_txt}\n"
            f"   End: {end_txt}\n"
            f"   Location: {location}"
        )
    return "\n\n".join(blocks)


def build_email_query_prompt(query: str, emails, events, zone: str, now: Optional[datetime] = None) -> str:
    now = now or utc_now()
    prompt = (
        f"{current_time_context(zone, now)}\n\n"
        f"User Query: {query}\n\n"
        f"Recent Email Data:\n{format_emails_for_prompt(emails, zone)}"
    )
    if events:
        prompt += f"\n\nUpcoming Calendar Events (times in {zone}):\n{format_calendar_for_prompt(events, zone)}"
    prompt += (
        f"\n\nProvide a helpful response to the user's query. When mentioning times, use the {zone} "
        f"local times given above with their abbreviation (currently {timezone_label(now, zone)}). "
        "Be specific and actionable."
    )
    return prompt


# -----------------------------------------------------------------------------
# Public calls
# -----------------------------------------------------------------------------
def process_email_query(query: str, emails, events=None, *, zone: str, now: Optional[datetime] = None) -> str:
    return _invoke(build_email_query_prompt(query, emails, events, zone, now), QUERY_MAX_TOKENS)


def build_reply_prompt(original: Dict[str, Any], context: str, tone: str, signature_text: str,
                       zone: str, now: Optional[datetime] = None) -> str:
    name, address = _sender(original)
    content = (original.get("body") or {}).get("content") or original.get("bodyPreview") or ""
    closing = (
        "Must end with the provided signature exactly as shown"
        if signature_text else "Includes an appropriate closing with just the first name"
    )
    prompt = (
        f"{current_time_context(zone, now)}\n\n"
        f"Generate a {tone} email response to the following email:\n\n"
        f"Original Email:\nFrom: {name} <{address}>\nSubject: {original.get('subject') or ''}\nContent: {content}\n\n"
        f"Additional Context: {context}\n\n"
        "Generate an appropriate response that:\n"
        "- Addresses the main points of the original email\n"
        f"- Maintains a {tone} tone\n"
        "- Is concise but complete\n"
        "- Includes a proper greeting\n"
        f"- If scheduling is mentioned, give times in {zone} local time with the zone abbreviation\n"
        f"- {closing}\n"
    )
    if signature_text:
        prompt += f"\nIMPORTANT: You must include this exact signature at the end:\n{signature_text}\n"
    prompt += "\nReturn only the email content without subject line."
    return prompt


def generate_email_response(original: Dict[str, Any], context: str = "", tone: str = "professional",
                            signature: Optional[Dict[str, Any]] = None, *, zone: str,
                            now: Optional[datetime] = None) -> str:
    signature_text = format_signature(signature)
    reply = _invoke(build_reply_prompt(original, context, tone, signature_text, zone, now), REPLY_MAX_TOKENS)

    # model sometimes drops the signature; append it when its first line is missing
    if signature_text:
        first_line = signature_text.strip().split("\n")[1] if "\n" in signature_text.strip() else signature_text.strip()
        if first_line not in reply:
            log.info("Appending signature the model left out")
            reply += signature_text
    return reply
