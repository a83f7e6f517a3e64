"""Unit tests for Settings parsing and validation."""

import pytest

from sharepoint_connector.main.config import Settings, get_settings, reset_settings, set_settings


class TestSettingsDefaults:
    def test_defaults_match_connector_behaviour(self):
        settings = Settings(_env_file=None)

        assert settings.queue_name == "sharepoint-tasks"
        assert settings.processing_concurrency == 4
        assert settings.max_retries == 3
        assert settings.step_timeout_seconds == 30
        assert settings.max_file_size_bytes == 209715200
        assert settings.sharepoint_sync_column_name == "FinanceGPTKnowledge"
        assert settings.scan_interval_seconds == 900
        assert settings.graph_token_expiration_buffer_seconds == 900
        assert settings.unique_token_expiration_buffer_seconds == 300

    def test_comma_separated_lists_are_split_and_trimmed(self):
        settings = Settings(
            _env_file=None,
            sharepoint_sites=" site-a, site-b ,,site-c",
            allowed_mime_types="application/pdf, text/plain",
        )

        assert settings.sharepoint_site_ids == ["site-a", "site-b", "site-c"]
        assert settings.allowed_mime_type_list == ["application/pdf", "text/plain"]

    def test_empty_lists(self):
        settings = Settings(_env_file=None, sharepoint_sites="", allowed_mime_types="")

        assert settings.sharepoint_site_ids == []
        assert settings.allowed_mime_type_list == []

    def test_lock_ttl_defaults_to_scan_interval(self):
        settings = Settings(_env_file=None, scan_interval_seconds=600)

        assert settings.effective_scan_lock_ttl_seconds == 600

    def test_lock_ttl_override(self):
        settings = Settings(_env_file=None, scan_interval_seconds=600, scan_lock_ttl_seconds=120)

        assert settings.effective_scan_lock_ttl_seconds == 120


class TestSettingsValidation:
    @pytest.mark.parametrize(
        "overrides",
        [
            {"processing_concurrency": 0},
            {"max_retries": 0},
            {"step_timeout_seconds": 0},
            {"scan_interval_seconds": 0},
            {"scan_lock_ttl_seconds": 2},
        ],
    )
    def test_invalid_values_exit(self, overrides):
        with pytest.raises(SystemExit):
            Settings(_env_file=None, **overrides)


class TestSettingsSingleton:
    def test_set_and_reset(self, test_settings):
        set_settings(test_settings)
        assert get_settings() is test_settings

        reset_settings()
        set_settings(test_settings.model_copy(update={"queue_name": "other"}))
        assert get_settings().queue_name == "other"
