"""Backend configuration module"""

from .ingestion_config import IngestionConfig, load_ingestion_config

__all__ = [
    "IngestionConfig",
    "load_ingestion_config",
]
