"""Configuration for a synchronization run.

Example ``api-doc-sync.yaml``::

    app_root: .
    max_errors: 20
    targets:
      - service: users
        file: users/api.py
"""

from pathlib import Path

import yaml
from pydantic import BaseModel

from api_doc_sync.sync.models import Target
from api_doc_sync.sync.pipeline import DEFAULT_MAX_ERRORS

DEFAULT_CONFIG_NAME = "api-doc-sync.yaml"


class SyncConfig(BaseModel):
    app_root: Path = Path(".")
    max_errors: int = DEFAULT_MAX_ERRORS
    parse_tests: bool = False
    targets: list[Target] = []

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "SyncConfig":
        """Load configuration from a YAML file.

        A relative ``app_root`` is resolved against the file's directory.
        """
        data = yaml.safe_load(yaml_path.read_text(encoding="utf-8")) or {}
        config = cls(**data)
        if not config.app_root.is_absolute():
            config.app_root = yaml_path.parent / config.app_root
        return config
