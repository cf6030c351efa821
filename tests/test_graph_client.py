"""
test_graph_client.py

Microsoft Graph mail/calendar client against a mocked requests layer.
"""

import unittest
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import requests

import graph_client
from time_windows import InvalidTimeZone, day_window


def _response(status=200, payload=None):
    r = MagicMock()
    r.status_code = status
    r.content = b"{}" if payload is not None else b""
    r.json.return_value = payload
    r.text = str(payload)
    if status >= 400:
        r.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
    return r


class TestParseGraphDatetime(unittest.TestCase):
    def test_utc_suffix(self):
        dt = graph_client.parse_graph_datetime("2025-01-15T14:00:00Z")
        self.assertEqual(dt, datetime(2025, 1, 15, 14, 0, tzinfo=timezone.utc))

    def test_seven_digit_fraction_with_windows_zone(self):
        dt = graph_client.parse_graph_datetime("2025-01-15T09:00:00.0000000", "Eastern Standard Time")
        self.assertEqual(dt, datetime(2025, 1, 15, 14, 0, tzinfo=timezone.utc))

    def test_naive_without_hint_is_utc(self):
        dt = graph_client.parse_graph_datetime("2025-07-01T08:30:00")
        self.assertEqual(dt, datetime(2025, 7, 1, 8, 30, tzinfo=timezone.utc))

    def test_offset(self):
        dt = graph_client.parse_graph_datetime("2025-07-01T08:30:00-04:00")
        self.assertEqual(dt.hour, 12)

    def test_empty_and_unknown_zone(self):
        self.assertIsNone(graph_client.parse_graph_datetime(None))
        self.assertIsNone(graph_client.parse_graph_datetime(""))
        with self.assertRaises(InvalidTimeZone):
            graph_client.parse_graph_datetime("2025-07-01T08:30:00", "Atlantis Standard Time")

    def test_event_bounds(self):
        ev = {
            "start": {"dateTime": "2025-01-15T15:00:00.0000000", "timeZone": "UTC"},
            "end": {"dateTime": "2025-01-15T15:30:00.0000000", "timeZone": "UTC"},
        }
        self.assertEqual(graph_client.event_start(ev).hour, 15)
        self.assertEqual(graph_client.event_end(ev).minute, 30)
        self.assertIsNone(graph_client.event_start({}))


class TestMail(unittest.TestCase):
    def setUp(self):
        self.window = day_window("America/New_York", 0, datetime(2025, 1, 15, 12, tzinfo=timezone.utc))

    @patch("graph_client.requests.request")
    def test_recent_emails_filter_uses_window_bounds(self, mock_request):
        mock_request.return_value = _response(payload={"value": [{"id": "m1"}]})
        emails = graph_client.get_recent_emails("tok", self.window)

        self.assertEqual(emails, [{"id": "m1"}])
        method, url = mock_request.call_args.args
        kwargs = mock_request.call_args.kwargs
        self.assertEqual(method, "GET")
        self.assertTrue(url.endswith("/me/mailFolders/inbox/messages"))
        self.assertEqual(
            kwargs["params"]["$filter"],
            "receivedDateTime ge 2025-01-15T05:00:00.000Z and receivedDateTime le 2025-01-16T04:59:59.999Z",
        )
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer tok")
        self.assertEqual(kwargs["timeout"], 20)

    @patch("graph_client.requests.request")
    def test_http_error_carries_status(self, mock_request):
        mock_request.return_value = _response(status=401, payload={"error": "expired"})
        with self.assertRaises(graph_client.GraphAPIError) as ctx:
            graph_client.get_email_content("tok", "m1")
        self.assertEqual(ctx.exception.status, 401)

    @patch("graph_client.requests.request")
    def test_network_error(self, mock_request):
        mock_request.side_effect = requests.ConnectionError("down")
        with self.assertRaises(graph_client.GraphAPIError) as ctx:
            graph_client.get_user_profile("tok")
        self.assertIsNone(ctx.exception.status)

    @patch("graph_client.requests.request")
    def test_reply_all_posts_to_reply_all(self, mock_request):
        mock_request.return_value = _response(status=202)
        result = graph_client.reply_to_email("tok", "m1", "<p>Hi</p>", reply_all=True)

        self.assertTrue(mock_request.call_args.args[1].endswith("/me/messages/m1/replyAll"))
        self.assertEqual(
            mock_request.call_args.kwargs["json"],
            {"message": {"body": {"contentType": "HTML", "content": "<p>Hi</p>"}}},
        )
        self.assertEqual(result["type"], "reply-all")
        self.assertTrue(result["success"])

    @patch("graph_client.requests.request")
    def test_send_email_threads_replies(self, mock_request):
        mock_request.return_value = _response(status=202)
        result = graph_client.send_email("tok", "a@b.com", "Hi", "<p>x</p>", reply_to_email_id="m9")
        self.assertTrue(mock_request.call_args.args[1].endswith("/me/messages/m9/reply"))
        self.assertEqual(result["type"], "reply")

        result = graph_client.send_email("tok", "a@b.com", "Hi", "<p>x</p>")
        self.assertTrue(mock_request.call_args.args[1].endswith("/me/sendMail"))
        self.assertEqual(result["type"], "new")

    @patch("graph_client.requests.request")
    def test_mark_as_read(self, mock_request):
        mock_request.return_value = _response(status=200)
        self.assertTrue(graph_client.mark_email_as_read("tok", "m1")["success"])
        self.assertEqual(mock_request.call_args.args[0], "PATCH")
        self.assertEqual(mock_request.call_args.kwargs["json"], {"isRead": True})

    def test_text_to_html(self):
        html = graph_client.text_to_html("Hi <Bob>,\nthanks.\n\nBest,\nAnn")
        self.assertEqual(html, "<p>Hi &lt;Bob&gt;,<br>thanks.</p><p>Best,<br>Ann</p>")
        self.assertEqual(graph_client.text_to_html(""), "")


class TestCalendarAndOrg(unittest.TestCase):
    @patch("graph_client.requests.request")
    def test_calendar_view_drops_cancelled(self, mock_request):
        mock_request.return_value = _response(payload={"value": [
            {"id": "e1", "isCancelled": False},
            {"id": "e2", "isCancelled": True},
        ]})
        window = day_window("America/New_York", 0, datetime(2025, 7, 15, 12, tzinfo=timezone.utc))
        events = graph_client.get_calendar_events("tok", window)

        self.assertEqual([e["id"] for e in events], ["e1"])
        params = mock_request.call_args.kwargs["params"]
        self.assertEqual(params["startDateTime"], "2025-07-15T04:00:00.000Z")
        self.assertEqual(params["endDateTime"], "2025-07-16T03:59:59.999Z")
        self.assertIn('outlook.timezone="UTC"', mock_request.call_args.kwargs["headers"]["Prefer"])

    @patch("graph_client.requests.request")
    def test_organization_default_domain(self, mock_request):
        mock_request.return_value = _response(payload={"value": [{
            "id": "t1",
            "displayName": "Contoso",
            "verifiedDomains": [{"name": "contoso.onmicrosoft.com"}, {"name": "contoso.com", "isDefault": True}],
        }]})
        self.assertEqual(
            graph_client.get_organization("tok"),
            {"id": "t1", "displayName": "Contoso", "domain": "contoso.com"},
        )

    @patch("graph_client.requests.request")
    def test_organization_empty(self, mock_request):
        mock_request.return_value = _response(payload={"value": []})
        self.assertEqual(graph_client.get_organization("tok"), {})


if __name__ == "__main__":
    unittest.main()
