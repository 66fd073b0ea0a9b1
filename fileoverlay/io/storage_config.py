"""
Overlay configuration for fileoverlay.

This module provides a Pydantic model for the settings an OverlayNamespace
reads at construction: where to stage copies and the defaults applied when
materialize() is called without explicit flags.
"""

import codecs
import json
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

from fileoverlay.io.constants import DEFAULT_ENCODING, DEFAULT_STAGING_PREFIX


class OverlayConfig(BaseModel):
    """
    Configuration for an OverlayNamespace.

    Attributes:
        staging_root: Caller-owned directory to stage copies in. When None, a
            temporary directory is created and removed again at teardown.
        staging_prefix: Name prefix of the temporary staging directory
        auto_refresh: Default for materialize(auto_refresh=...)
        preserve_timestamp: Default for materialize(preserve_timestamp=...)
        default_encoding: Encoding assumed for staged content without a byte order mark
    """
    staging_root: Optional[Path] = Field(None, description="Caller-owned staging directory")
    staging_prefix: str = Field(DEFAULT_STAGING_PREFIX, description="Prefix of the temporary staging directory")
    auto_refresh: bool = Field(False, description="Re-materialize overlays when the source changes")
    preserve_timestamp: bool = Field(True, description="Copy the source modification time onto staged files")
    default_encoding: str = Field(DEFAULT_ENCODING, description="Encoding for content without a byte order mark")

    @field_validator('staging_prefix')
    @classmethod
    def validate_staging_prefix(cls, v):
        """Validate that the prefix is a plain, non-empty file name fragment."""
        if not v or "/" in v or "\\" in v:
            raise ValueError(f"staging_prefix must be a non-empty name without separators, got {v!r}")
        return v

    @field_validator('default_encoding')
    @classmethod
    def validate_default_encoding(cls, v):
        """Validate that the encoding is known to the codecs registry."""
        try:
            codecs.lookup(v)
        except LookupError:
            raise ValueError(f"Unknown encoding: {v}")
        return v

    def to_json(self, path: Union[str, Path]) -> None:
        """
        Save the configuration to a JSON file.

        Args:
            path: Path to save the JSON file
        """
        with open(path, 'w') as f:
            json.dump(self.model_dump(mode='json'), f, indent=2)

    def to_yaml(self, path: Union[str, Path]) -> None:
        """
        Save the configuration to a YAML file.

        Args:
            path: Path to save the YAML file
        """
        with open(path, 'w') as f:
            yaml.dump(self.model_dump(mode='json'), f, default_flow_style=False)

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> 'OverlayConfig':
        """
        Load the configuration from a JSON file.

        Args:
            path: Path to the JSON file

        Returns:
            OverlayConfig: Loaded configuration
        """
        with open(path, 'r') as f:
            config_dict = json.load(f)

        return cls(**config_dict)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> 'OverlayConfig':
        """
        Load the configuration from a YAML file.

        Args:
            path: Path to the YAML file

        Returns:
            OverlayConfig: Loaded configuration
        """
        with open(path, 'r') as f:
            config_dict = yaml.safe_load(f) or {}

        return cls(**config_dict)
