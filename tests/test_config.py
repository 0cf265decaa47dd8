"""Tests for settings resolution: defaults, YAML file, environment."""

from metronome import paths
from metronome.config import Settings, load_settings


class TestDefaults:
    def test_no_file_no_env(self, tmp_path):
        settings = load_settings(tmp_path / "missing.yaml", environ={})
        assert settings == Settings()
        assert settings.notice_seconds == 3.0
        assert settings.long_notice_seconds == 5.0
        assert settings.max_occurrences == 500
        assert settings.restore_priority == "strategic"

    def test_default_path_under_home(self, isolated_home):
        assert paths.config_file() == isolated_home.resolve() / "config" / "metronome.yaml"
        assert load_settings(environ={}) == Settings()


class TestYaml:
    def test_file_values(self, tmp_path):
        config = tmp_path / "metronome.yaml"
        config.write_text("base_url: http://tracker.test\nmax_occurrences: 50\n")
        settings = load_settings(config, environ={})
        assert settings.base_url == "http://tracker.test"
        assert settings.max_occurrences == 50

    def test_unknown_key_warns(self, tmp_path, caplog):
        config = tmp_path / "metronome.yaml"
        config.write_text("colour: blue\n")
        assert load_settings(config, environ={}) == Settings()
        assert "Unknown setting 'colour'" in caplog.text

    def test_broken_yaml_falls_back(self, tmp_path, caplog):
        config = tmp_path / "metronome.yaml"
        config.write_text("base_url: [unclosed\n")
        assert load_settings(config, environ={}) == Settings()
        assert "Failed to load settings" in caplog.text

    def test_non_mapping_ignored(self, tmp_path):
        config = tmp_path / "metronome.yaml"
        config.write_text("- a\n- b\n")
        assert load_settings(config, environ={}) == Settings()


class TestEnvironment:
    def test_env_beats_file(self, tmp_path):
        config = tmp_path / "metronome.yaml"
        config.write_text("notice_seconds: 10\n")
        settings = load_settings(
            config,
            environ={"METRONOME_NOTICE_SECONDS": "1.5", "METRONOME_RESTORE_PRIORITY": "high"},
        )
        assert settings.notice_seconds == 1.5
        assert settings.restore_priority == "high"

    def test_invalid_value_ignored(self, tmp_path, caplog):
        settings = load_settings(tmp_path / "none.yaml", environ={"METRONOME_MAX_OCCURRENCES": "lots"})
        assert settings.max_occurrences == 500
        assert "METRONOME_MAX_OCCURRENCES" in caplog.text

    def test_reads_process_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("METRONOME_BASE_URL", "http://from-env.test")
        assert load_settings(tmp_path / "none.yaml").base_url == "http://from-env.test"
