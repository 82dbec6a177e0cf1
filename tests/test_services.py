# tests/test_services.py

"""
Ce qu'on teste :
→ La fusion defaults ← environnement ← overrides de la config
→ L'envoi d'email via Resend
→ Le job du scheduler (digest hebdomadaire)

Ce qu'on mocke :
→ requests.post (pas d'email envoyé)
→ Le store et le digest dans le job scheduler
"""

import pytest
import requests
from unittest.mock import MagicMock, patch

from config import DEFAULT_STAGE_WEIGHTS, STAGE_WEIGHTS_VERSION, load_config
from errors import ConfigurationError, FetchFailed, ReportUnavailable


class TestConfig:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("CRM_PAGE_SIZE", raising=False)
        monkeypatch.delenv("CRM_STORE_BACKEND", raising=False)

        config = load_config()

        assert config.page_size == 200
        assert config.store_backend == "pocketbase"
        assert config.stage_weights == DEFAULT_STAGE_WEIGHTS
        assert config.stage_weights_version == STAGE_WEIGHTS_VERSION
        assert config.ranked_roles == ("admin", "commercial")

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("CRM_PAGE_SIZE", "50")
        monkeypatch.setenv("DIGEST_RECIPIENTS", "a@acme.fr, b@acme.fr,")

        config = load_config()

        assert config.page_size == 50
        assert config.digest_recipients == ("a@acme.fr", "b@acme.fr")

    def test_overrides_win_over_environment(self, monkeypatch):
        monkeypatch.setenv("CRM_TOP_CLIENTS", "5")
        config = load_config({"top_clients_limit": 3})
        assert config.top_clients_limit == 3

    def test_invalid_environment_value(self, monkeypatch):
        monkeypatch.setenv("CRM_PAGE_SIZE", "beaucoup")
        with pytest.raises(ConfigurationError):
            load_config()

    def test_unknown_parameter(self):
        with pytest.raises(ConfigurationError):
            load_config({"cache_ttl": 60})

    def test_non_positive_page_size(self):
        with pytest.raises(ConfigurationError):
            load_config({"page_size": 0})

    def test_custom_weights_versioned(self):
        weights = dict(DEFAULT_STAGE_WEIGHTS, contacte=0.25)
        config = load_config({
            "stage_weights": weights,
            "stage_weights_version": "2025.2",
        })
        assert config.stage_weights["contacte"] == 0.25
        assert config.stage_weights_version == "2025.2"

    def test_weight_out_of_bounds(self):
        with pytest.raises(ConfigurationError):
            load_config({"stage_weights": {"nouveau": 1.2}})


class TestNotification:

    def test_missing_api_key(self, monkeypatch):
        from services.notification import send_email
        monkeypatch.delenv("RESEND_API_KEY", raising=False)

        with patch("services.notification.requests.post") as mock_post:
            assert send_email("a@acme.fr", "Sujet", "Corps") is False
        mock_post.assert_not_called()

    def test_sends_plain_text(self, monkeypatch):
        from services.notification import send_email, RESEND_URL
        monkeypatch.setenv("RESEND_API_KEY", "re_test")
        monkeypatch.setenv("RESEND_FROM_EMAIL", "stats@acme.fr")

        with patch("services.notification.requests.post") as mock_post:
            mock_post.return_value = MagicMock()
            assert send_email(["a@acme.fr"], "Digest", "Bonjour") is True

        args, kwargs = mock_post.call_args
        assert args[0] == RESEND_URL
        assert kwargs["json"]["to"] == ["a@acme.fr"]
        assert kwargs["json"]["text"] == "Bonjour"
        assert kwargs["json"]["from"] == "CRM Analytics <stats@acme.fr>"
        assert kwargs["headers"]["Authorization"] == "Bearer re_test"

    def test_api_error_returns_false(self, monkeypatch):
        from services.notification import send_email
        monkeypatch.setenv("RESEND_API_KEY", "re_test")

        with patch("services.notification.requests.post") as mock_post:
            mock_post.side_effect = requests.ConnectionError("timeout")
            assert send_email("a@acme.fr", "Digest", "Bonjour") is False


class TestScheduler:

    def test_weekly_digest_job_registered(self):
        from scheduler import build_scheduler

        scheduler = build_scheduler()
        jobs = {job.id: job for job in scheduler.get_jobs()}

        assert list(jobs) == ["weekly_digest"]
        assert "mon" in str(jobs["weekly_digest"].trigger)

    def test_job_sends_digest(self):
        with patch("scheduler.get_store") as mock_store, \
             patch("scheduler.send_digest", return_value=True) as mock_digest:
            from scheduler import run_weekly_digest
            run_weekly_digest()

        mock_store.assert_called_once()
        mock_digest.assert_called_once()

    def test_job_survives_unavailable_report(self):
        error = ReportUnavailable("dashboard", FetchFailed("leads", "HTTP 502"))

        with patch("scheduler.get_store"), \
             patch("scheduler.send_digest", side_effect=error):
            from scheduler import run_weekly_digest
            # loggé, pas propagé : le scheduler continue
            run_weekly_digest()
