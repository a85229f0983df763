"""Settings sources: defaults, YAML file and environment overrides."""

import pytest

from shortfactory.config import Settings


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Settings read config.yaml and .env from the working directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_defaults():
    config = Settings()
    assert config.providers.scripting == "gemini"
    assert config.pipeline.retry_max_attempts == 3
    assert config.pipeline.retry_base_delay == 2.0
    assert config.storage.database_url.startswith("sqlite+aiosqlite")


def test_yaml_file_is_read(isolated_cwd):
    (isolated_cwd / "config.yaml").write_text(
        "pipeline:\n  segment_seconds: 7\nmodels:\n  scripting: gpt-4o-mini\n"
    )
    config = Settings()
    assert config.pipeline.segment_seconds == 7
    assert config.models.scripting == "gpt-4o-mini"


def test_environment_overrides_yaml(isolated_cwd, monkeypatch):
    (isolated_cwd / "config.yaml").write_text("pipeline:\n  segment_seconds: 7\n")
    monkeypatch.setenv("SHORTFACTORY_PIPELINE__SEGMENT_SECONDS", "9")
    monkeypatch.setenv("SHORTFACTORY_API_KEYS__GEMINI", "key-a,key-b")

    config = Settings()
    assert config.pipeline.segment_seconds == 9
    assert config.api_keys.gemini == "key-a,key-b"


def test_tmp_dir_becomes_path(monkeypatch):
    monkeypatch.setenv("SHORTFACTORY_STORAGE__TMP_DIR", "/var/tmp/shorts")
    assert str(Settings().storage.tmp_dir) == "/var/tmp/shorts"
