import json
import logging

from django.test import SimpleTestCase, TestCase

from notevault.log import JsonFormatter


class HealthcheckTests(TestCase):

    def test_healthz(self):
        res = self.client.get("/healthz/")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["status"], "ok")
        self.assertEqual(res.json()["service"], "notevault-api")


class JsonFormatterTests(SimpleTestCase):

    def test_formats_extras(self):
        record = logging.LogRecord("notes", logging.INFO, __file__, 1, "saved %s", ("x",), None)
        record.event = "note_created"
        record.note_id = "n1"

        line = json.loads(JsonFormatter().format(record))

        self.assertEqual(line["msg"], "saved x")
        self.assertEqual(line["level"], "INFO")
        self.assertEqual(line["event"], "note_created")
        self.assertEqual(line["note_id"], "n1")
        self.assertNotIn("user_id", line)
