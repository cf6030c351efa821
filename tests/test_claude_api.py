"""
test_claude_api.py

Prompt construction and reply post-processing; the chat model is mocked.
"""

import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

import claude_api

NY = "America/New_York"
NOW = datetime(2025, 1, 15, 19, 5, tzinfo=timezone.utc)

EMAIL = {
    "id": "m1",
    "subject": "Budget review",
    "from": {"emailAddress": {"name": "Dana Lee", "address": "dana@contoso.com"}},
    "receivedDateTime": "2025-01-15T14:30:00Z",
    "bodyPreview": "Can we meet Thursday to go over Q1 numbers?",
    "isRead": False,
    "body": {"content": "Can we meet Thursday to go over Q1 numbers?"},
}

EVENT = {
    "subject": "Standup",
    "start": {"dateTime": "2025-07-16T13:00:00.0000000", "timeZone": "UTC"},
    "end": {"dateTime": "2025-07-16T13:15:00.0000000", "timeZone": "UTC"},
    "location": {"displayName": "Room 4"},
}

SIGNATURE = {"enabled": True, "name": "Sam Park", "title": "CFO", "phone": "555-0100"}


def _fake_llm(text):
    llm = MagicMock()
    llm.invoke.return_value = AIMessage(content=text)
    return llm


class TestPromptHelpers(unittest.TestCase):
    def test_current_time_context(self):
        self.assertEqual(
            claude_api.current_time_context(NY, NOW),
            "Current time: Wednesday, January 15, 2025 at 2:05 PM EST",
        )

    def test_emails_in_local_time_with_one_label(self):
        text = claude_api.format_emails_for_prompt([EMAIL], NY)
        self.assertIn("From: Dana Lee <dana@contoso.com>", text)
        self.assertIn("Date: 1/15/2025, 9:30 AM EST", text)
        self.assertEqual(text.count("EST"), 1)
        self.assertIn("Read: No", text)

    def test_calendar_labels_follow_event_date(self):
        text = claude_api.format_calendar_for_prompt([EVENT], NY)
        self.assertIn("Start: Wed, Jul 16, 9:00 AM EDT", text)
        self.assertIn("End: 9:15 AM EDT", text)
        self.assertIn("Location: Room 4", text)

    def test_empty_inputs(self):
        self.assertEqual(claude_api.format_emails_for_prompt([], NY), "No recent emails found.")
        self.assertEqual(claude_api.format_calendar_for_prompt(None, NY), "No upcoming events found.")

    def test_signature(self):
        self.assertEqual(claude_api.format_signature(None), "")
        self.assertEqual(claude_api.format_signature({"enabled": False, "name": "X"}), "")
        self.assertEqual(
            claude_api.format_signature(SIGNATURE),
            "\n\nThank you,\nSam Park\nCFO\nPhone: 555-0100\n",
        )

    def test_query_prompt_includes_calendar_only_when_given(self):
        with_events = claude_api.build_email_query_prompt("What's urgent?", [EMAIL], [EVENT], NY, NOW)
        without = claude_api.build_email_query_prompt("What's urgent?", [EMAIL], None, NY, NOW)
        self.assertIn("Upcoming Calendar Events", with_events)
        self.assertNotIn("Upcoming Calendar Events", without)
        self.assertIn("User Query: What's urgent?", without)
        self.assertIn("currently EST", without)


class TestCalls(unittest.TestCase):
    @patch("claude_api._get_llm")
    def test_process_email_query(self, mock_get_llm):
        llm = _fake_llm("Reply to Dana about the budget.")
        mock_get_llm.return_value = llm

        answer = claude_api.process_email_query("What's urgent?", [EMAIL], zone=NY, now=NOW)

        self.assertEqual(answer, "Reply to Dana about the budget.")
        mock_get_llm.assert_called_once_with(claude_api.QUERY_MAX_TOKENS)
        system, human = llm.invoke.call_args.args[0]
        self.assertIsInstance(system, SystemMessage)
        self.assertIsInstance(human, HumanMessage)
        self.assertIn("Budget review", human.content)

    @patch("claude_api._get_llm")
    def test_reply_gets_missing_signature(self, mock_get_llm):
        mock_get_llm.return_value = _fake_llm("Hi Dana,\n\nThursday works.")
        reply = claude_api.generate_email_response(EMAIL, "", "friendly", SIGNATURE, zone=NY, now=NOW)
        self.assertTrue(reply.endswith("Sam Park\nCFO\nPhone: 555-0100\n"))
        mock_get_llm.assert_called_once_with(claude_api.REPLY_MAX_TOKENS)

    @patch("claude_api._get_llm")
    def test_reply_keeps_model_signature(self, mock_get_llm):
        mock_get_llm.return_value = _fake_llm("Hi Dana,\n\nThursday works.\n\nThank you,\nSam Park\nCFO")
        reply = claude_api.generate_email_response(EMAIL, signature=SIGNATURE, zone=NY, now=NOW)
        self.assertEqual(reply.count("Sam Park"), 1)

    @patch("claude_api._get_llm")
    def test_content_blocks(self, mock_get_llm):
        mock_get_llm.return_value = _fake_llm([{"type": "text", "text": "Part one. "}, {"type": "text", "text": "Part two."}])
        self.assertEqual(claude_api.process_email_query("q", [], zone=NY, now=NOW), "Part one. Part two.")

    @patch("claude_api._get_llm")
    def test_failures_become_ai_service_error(self, mock_get_llm):
        llm = MagicMock()
        llm.invoke.side_effect = RuntimeError("overloaded")
        mock_get_llm.return_value = llm
        with self.assertRaises(claude_api.AIServiceError):
            claude_api.process_email_query("q", [], zone=NY, now=NOW)

        mock_get_llm.return_value = _fake_llm("   ")
        with self.assertRaises(claude_api.AIServiceError):
            claude_api.process_email_query("q", [], zone=NY, now=NOW)


if __name__ == "__main__":
    unittest.main()
