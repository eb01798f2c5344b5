import logging

from clinicrelay.config import Settings, load_settings, validate_config

CALL_VARS = {
    "ELEVENLABS_API_KEY": "xi-key",
    "ELEVENLABS_AGENT_ID": "agent_1",
    "ELEVENLABS_PHONE_NUMBER_ID": "phnum_1",
}


def set_env(monkeypatch, **values):
    for key, value in values.items():
        monkeypatch.setenv(key, value)


class TestLoadSettings:
    def test_defaults(self, monkeypatch):
        for var in list(CALL_VARS) + ["PENDING_TIMEOUT_S", "TRANSCRIPT_POLLING", "PORT"]:
            monkeypatch.delenv(var, raising=False)
        settings = load_settings()
        assert settings.pending_timeout_s == 60.0
        assert settings.transcript_polling is True
        assert settings.port == 3001
        assert settings.calls_enabled is False

    def test_reads_environment(self, monkeypatch):
        set_env(monkeypatch, **CALL_VARS, PENDING_TIMEOUT_S="30", TRANSCRIPT_POLLING="off", LOG_LEVEL="debug")
        settings = load_settings()
        assert settings.calls_enabled is True
        assert settings.pending_timeout_s == 30.0
        assert settings.transcript_polling is False
        assert settings.log_level == "DEBUG"

    def test_bad_number_falls_back(self, monkeypatch, caplog):
        set_env(monkeypatch, PENDING_TIMEOUT_S="soon")
        with caplog.at_level(logging.WARNING):
            settings = load_settings()
        assert settings.pending_timeout_s == 60.0
        assert "PENDING_TIMEOUT_S" in caplog.text


class TestValidateConfig:
    def test_missing_required_vars_disable_calls(self, caplog):
        settings = Settings(elevenlabs_api_key="xi-key")
        with caplog.at_level(logging.ERROR):
            assert validate_config(settings) is False
        assert "ELEVENLABS_AGENT_ID" in caplog.text
        assert "ELEVENLABS_PHONE_NUMBER_ID" in caplog.text
        assert "ELEVENLABS_API_KEY" not in caplog.text

    def test_complete_config(self, caplog):
        settings = Settings(
            elevenlabs_api_key="xi-key",
            elevenlabs_agent_id="agent_1",
            elevenlabs_phone_number_id="phnum_1",
        )
        with caplog.at_level(logging.ERROR):
            assert validate_config(settings) is True
        assert "disabled" not in caplog.text

    def test_missing_optional_vars_warn(self, monkeypatch, caplog):
        monkeypatch.delenv("EMERGENCY_PHONE_NUMBER", raising=False)
        with caplog.at_level(logging.WARNING):
            validate_config(Settings())
        assert "EMERGENCY_PHONE_NUMBER" in caplog.text
