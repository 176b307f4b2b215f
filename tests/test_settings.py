"""Unit tests for Settings."""
import pytest
from pydantic import ValidationError

from voyage_manifest_extraction.schema import StandardizationMode
from voyage_manifest_extraction.settings import Settings

ENV_NAMES = (
    "VOYAGE_MODEL",
    "OPENAI_API_KEY",
    "VOYAGE_PAGE_CHUNK_SIZE",
    "VOYAGE_ROW_CHUNK_SIZE",
    "VOYAGE_RENDER_SCALE",
    "VOYAGE_JPEG_QUALITY",
    "VOYAGE_MODE",
    "VOYAGE_TAG_SOURCE",
    "VOYAGE_ISOLATE_DOCUMENTS",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestSettings:
    def test_defaults(self, clean_env):
        settings = Settings()
        assert settings.model_name == "openai:gpt-4o"
        assert settings.api_key is None
        assert settings.page_chunk_size == 5
        assert settings.row_chunk_size == 100
        assert settings.mode is StandardizationMode.ROW
        assert settings.isolate_document_failures is False

    def test_from_env(self, clean_env):
        for name, value in {
            "VOYAGE_MODEL": "openai:gpt-4o-mini",
            "OPENAI_API_KEY": "sk-test",
            "VOYAGE_PAGE_CHUNK_SIZE": "3",
            "VOYAGE_ROW_CHUNK_SIZE": "50",
            "VOYAGE_RENDER_SCALE": "1.5",
            "VOYAGE_JPEG_QUALITY": "70",
            "VOYAGE_MODE": "Voyage",
            "VOYAGE_TAG_SOURCE": "yes",
            "VOYAGE_ISOLATE_DOCUMENTS": "0",
        }.items():
            clean_env.setenv(name, value)

        settings = Settings.from_env()

        assert settings.model_name == "openai:gpt-4o-mini"
        assert settings.api_key == "sk-test"
        assert settings.page_chunk_size == 3
        assert settings.row_chunk_size == 50
        assert settings.render_scale == 1.5
        assert settings.jpeg_quality == 70
        assert settings.mode is StandardizationMode.VOYAGE
        assert settings.tag_source is True
        assert settings.isolate_document_failures is False

    def test_empty_variables_keep_defaults(self, clean_env):
        clean_env.setenv("VOYAGE_PAGE_CHUNK_SIZE", "")
        clean_env.setenv("OPENAI_API_KEY", "")
        settings = Settings()
        assert settings.page_chunk_size == 5
        assert settings.api_key is None

    def test_reads_env_file(self, clean_env, tmp_path):
        env_file = tmp_path / "voyage.env"
        env_file.write_text("VOYAGE_ROW_CHUNK_SIZE=25\nVOYAGE_MODE=voyage\n")

        settings = Settings(_env_file=env_file)

        assert settings.row_chunk_size == 25
        assert settings.mode is StandardizationMode.VOYAGE

    def test_invalid_values_rejected(self, clean_env):
        clean_env.setenv("VOYAGE_PAGE_CHUNK_SIZE", "0")
        with pytest.raises(ValidationError):
            Settings()
        clean_env.setenv("VOYAGE_PAGE_CHUNK_SIZE", "2")
        clean_env.setenv("VOYAGE_MODE", "columns")
        with pytest.raises(ValueError):
            Settings()
        with pytest.raises(ValueError):
            Settings(jpeg_quality=0)

    def test_settings_are_frozen(self, clean_env):
        with pytest.raises(ValidationError):
            Settings().page_chunk_size = 9

    def test_override_skips_none(self, clean_env):
        settings = Settings(row_chunk_size=20).override(row_chunk_size=None, page_chunk_size=2)
        assert settings.row_chunk_size == 20
        assert settings.page_chunk_size == 2

    def test_override_mode_from_string(self, clean_env):
        assert Settings().override(mode="voyage").mode is StandardizationMode.VOYAGE

    def test_override_validates(self, clean_env):
        with pytest.raises(ValueError):
            Settings().override(render_scale=0)

    def test_override_keeps_aliased_fields(self, clean_env):
        settings = Settings(model_name="openai:gpt-4o-mini", api_key="sk-test").override(
            isolate_document_failures=True
        )
        assert settings.model_name == "openai:gpt-4o-mini"
        assert settings.api_key == "sk-test"
        assert settings.isolate_document_failures is True

    def test_override_unknown_setting(self, clean_env):
        with pytest.raises(TypeError, match="Unknown settings"):
            Settings().override(colour="blue")
