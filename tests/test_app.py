"""Tests for the app factory."""

import json
import os
import unittest
from unittest.mock import patch

from basecamp import create_app


class AppFactoryTestCase(unittest.TestCase):
    """Test case for the app factory."""

    def test_json_error_handlers(self):
        app = create_app({"TESTING": True, "WTF_CSRF_ENABLED": False})
        with app.test_client() as client:
            response = client.get("/non_existent_page")
            self.assertEqual(response.status_code, 404)
            self.assertEqual(
                response.get_json(), {"status": "error", "message": "Not found."}
            )
            response = client.delete("/squad/")
            self.assertEqual(response.status_code, 405)

    def test_csrf_failure_is_json(self):
        app = create_app({"TESTING": True})
        with app.test_client() as client:
            response = client.post("/squad/create", json={"name": "Kita"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("session may have expired", response.get_json()["message"])

    def test_calendar_config_from_environment(self):
        env_vars = {"CALENDAR_TIMEZONE": "Europe/Berlin", "FIRST_WEEKDAY": "0"}
        with patch.dict(os.environ, env_vars):
            app = create_app({"TESTING": True})
        self.assertEqual(app.config["CALENDAR_TIMEZONE"], "Europe/Berlin")
        self.assertEqual(app.config["FIRST_WEEKDAY"], 0)

    def test_calendar_config_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            app = create_app({"TESTING": True})
        self.assertEqual(app.config["CALENDAR_TIMEZONE"], "Asia/Jakarta")
        self.assertEqual(app.config["FIRST_WEEKDAY"], 6)
        self.assertEqual(app.config["MONTH_PREVIEW_LIMIT"], 3)

    @patch("firebase_admin.initialize_app")
    def test_firebase_skipped_when_testing(self, mock_init_app):
        create_app({"TESTING": True})
        mock_init_app.assert_not_called()

    @patch("firebase_admin._apps", new={})
    @patch("basecamp.credentials.Certificate")
    @patch("firebase_admin.initialize_app")
    def test_firebase_from_environment_credentials(self, mock_init_app, mock_cert):
        cred_info = {"project_id": "kita-app", "type": "service_account"}
        env_vars = {"FIREBASE_CREDENTIALS_JSON": json.dumps(cred_info)}
        with patch.dict(os.environ, env_vars):
            create_app()
        mock_cert.assert_called_once_with(cred_info)
        options = mock_init_app.call_args[0][1]
        self.assertEqual(options["projectId"], "kita-app")
        self.assertEqual(
            options["databaseURL"], "https://kita-app-default-rtdb.firebaseio.com"
        )


class ProxyFixTestCase(unittest.TestCase):
    def test_https_scheme_with_proxy_headers(self):
        app = create_app({"TESTING": True})

        @app.route("/test_scheme")
        def test_scheme():
            from flask import request

            return request.scheme

        response = app.test_client().get(
            "/test_scheme", headers={"X-Forwarded-Proto": "https"}
        )
        self.assertEqual(response.data.decode(), "https")


if __name__ == "__main__":
    unittest.main()
