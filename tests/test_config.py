"""Tests for store configuration."""

import pytest

from studykeep.config import (
    CONFIG_FILENAME,
    ProviderConfig,
    StoreConfig,
    get_default_store_path,
    load_config,
    load_or_create_config,
    save_config,
)


def test_create_defaults(tmp_path):
    config = load_or_create_config(tmp_path)

    assert (tmp_path / CONFIG_FILENAME).exists()
    assert config.answer.name == "groq"
    assert config.extractor.name == "composite"
    assert config.classifier.name == "keyword"
    assert config.ingest.chunk_size == 1000
    assert config.sessions.ttl_hours == 24.0
    assert config.retrieval.max_results == 3
    assert config.dataset_path is None


def test_round_trip(tmp_path):
    config = StoreConfig(path=tmp_path)
    config.answer = ProviderConfig("groq", {"model": "llama-3.3-70b-versatile", "timeout": 10})
    config.ingest.chunk_size = 500
    config.sessions.flush_interval = 60.0
    config.retrieval.max_results = 5
    config.dataset_path = tmp_path / "dataset.json"
    save_config(config)

    loaded = load_config(tmp_path)

    assert loaded.answer.params == {"model": "llama-3.3-70b-versatile", "timeout": 10}
    assert loaded.ingest.chunk_size == 500
    assert loaded.sessions.flush_interval == 60.0
    assert loaded.retrieval.max_results == 5
    assert loaded.dataset_path == tmp_path / "dataset.json"
    assert 'path = "dataset.json"' in (tmp_path / CONFIG_FILENAME).read_text()


def test_existing_config_is_kept(tmp_path):
    (tmp_path / CONFIG_FILENAME).write_text('[ingest]\nchunk_size = 250\n')
    assert load_or_create_config(tmp_path).ingest.chunk_size == 250


def test_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path)


def test_newer_version_rejected(tmp_path):
    (tmp_path / CONFIG_FILENAME).write_text("[store]\nversion = 99\n")
    with pytest.raises(ValueError, match="newer"):
        load_config(tmp_path)


def test_invalid_toml(tmp_path):
    (tmp_path / CONFIG_FILENAME).write_text("[store\n")
    with pytest.raises(ValueError):
        load_config(tmp_path)


def test_invalid_value(tmp_path):
    (tmp_path / CONFIG_FILENAME).write_text('[ingest]\nchunk_size = "big"\n')
    with pytest.raises(ValueError):
        load_config(tmp_path)


def test_default_store_path_from_env(tmp_path, monkeypatch):
    monkeypatch.setenv("STUDYKEEP_STORE_PATH", str(tmp_path))
    assert get_default_store_path() == tmp_path.resolve()
