"""
Configuration management for studykeep stores.

The configuration is stored as a TOML file in the store directory.
It specifies which providers to use, their parameters, and the tuning
knobs for ingestion, sessions and retrieval.
"""

import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import tomli_w


CONFIG_FILENAME = "studykeep.toml"
CONFIG_VERSION = 1

STORE_PATH_ENV = "STUDYKEEP_STORE_PATH"


@dataclass
class ProviderConfig:
    """Configuration for a single provider."""
    name: str
    params: dict[str, Any] = field(default_factory=dict)


@dataclass
class IngestConfig:
    chunk_size: int = 1000
    extraction_timeout: float = 30.0
    max_file_size: int = 100_000_000


@dataclass
class SessionConfig:
    ttl_hours: float = 24.0
    flush_interval: float = 300.0   # 5 minutes
    sweep_interval: float = 3600.0  # hourly


@dataclass
class RetrievalConfig:
    max_results: int = 3


@dataclass
class StoreConfig:
    """Complete store configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    # Provider configurations
    answer: ProviderConfig = field(default_factory=lambda: ProviderConfig("groq"))
    extractor: ProviderConfig = field(default_factory=lambda: ProviderConfig("composite"))
    classifier: ProviderConfig = field(default_factory=lambda: ProviderConfig("keyword"))

    ingest: IngestConfig = field(default_factory=IngestConfig)
    sessions: SessionConfig = field(default_factory=SessionConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)

    # Optional local Q&A dataset: {subject: {question: answer}}
    dataset_path: Optional[Path] = None

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()


def get_default_store_path() -> Path:
    """Store directory from STUDYKEEP_STORE_PATH, else ~/.studykeep."""
    env = os.environ.get(STORE_PATH_ENV)
    if env:
        return Path(env).expanduser().resolve()
    return Path.home() / ".studykeep"


def _parse_provider(section: dict, default_name: str) -> ProviderConfig:
    return ProviderConfig(
        name=section.get("name", default_name),
        params={k: v for k, v in section.items() if k != "name"},
    )


def load_config(store_path: Path) -> StoreConfig:
    """
    Load configuration from a store directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = store_path / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid config {config_path}: {e}") from e

    version = data.get("store", {}).get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    ingest = data.get("ingest", {})
    sessions = data.get("sessions", {})
    retrieval = data.get("retrieval", {})
    dataset = data.get("dataset", {}).get("path")

    try:
        return StoreConfig(
            path=store_path,
            version=version,
            created=data.get("store", {}).get("created", ""),
            answer=_parse_provider(data.get("answer", {}), "groq"),
            extractor=_parse_provider(data.get("extractor", {}), "composite"),
            classifier=_parse_provider(data.get("classifier", {}), "keyword"),
            ingest=IngestConfig(
                chunk_size=int(ingest.get("chunk_size", IngestConfig.chunk_size)),
                extraction_timeout=float(ingest.get("extraction_timeout", IngestConfig.extraction_timeout)),
                max_file_size=int(ingest.get("max_file_size", IngestConfig.max_file_size)),
            ),
            sessions=SessionConfig(
                ttl_hours=float(sessions.get("ttl_hours", SessionConfig.ttl_hours)),
                flush_interval=float(sessions.get("flush_interval", SessionConfig.flush_interval)),
                sweep_interval=float(sessions.get("sweep_interval", SessionConfig.sweep_interval)),
            ),
            retrieval=RetrievalConfig(
                max_results=int(retrieval.get("max_results", RetrievalConfig.max_results)),
            ),
            dataset_path=(store_path / dataset) if dataset else None,
        )
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid config {config_path}: {e}") from e


def save_config(config: StoreConfig) -> None:
    """
    Save configuration to the store directory.

    Creates the directory if it doesn't exist.
    """
    config.path.mkdir(parents=True, exist_ok=True)

    def provider_to_dict(p: ProviderConfig) -> dict:
        d = {"name": p.name}
        d.update(p.params)
        return d

    data: dict[str, Any] = {
        "store": {
            "version": config.version,
            "created": config.created,
        },
        "answer": provider_to_dict(config.answer),
        "extractor": provider_to_dict(config.extractor),
        "classifier": provider_to_dict(config.classifier),
        "ingest": {
            "chunk_size": config.ingest.chunk_size,
            "extraction_timeout": config.ingest.extraction_timeout,
            "max_file_size": config.ingest.max_file_size,
        },
        "sessions": {
            "ttl_hours": config.sessions.ttl_hours,
            "flush_interval": config.sessions.flush_interval,
            "sweep_interval": config.sessions.sweep_interval,
        },
        "retrieval": {
            "max_results": config.retrieval.max_results,
        },
    }
    if config.dataset_path is not None:
        try:
            rel = config.dataset_path.relative_to(config.path)
        except ValueError:
            rel = config.dataset_path
        data["dataset"] = {"path": str(rel)}

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(store_path: Path) -> StoreConfig:
    """
    Load existing config or create a new one with defaults.

    This is the main entry point for config management.
    """
    config_path = store_path / CONFIG_FILENAME

    if config_path.exists():
        return load_config(store_path)
    config = StoreConfig(path=store_path)
    save_config(config)
    return config
