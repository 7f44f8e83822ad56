"""
Engine settings using Pydantic Settings v2.

Environment variables are loaded from .env file and can be overridden
by actual environment variables.

Block-location preloading is resolved per filesystem: an override keyed by
``scheme://authority`` wins over one keyed by ``scheme``, which wins over the
global default.
"""

import json
from pathlib import Path
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from filemeta.common.paths import split_uri


def find_env_file() -> str:
    """
    Find .env file in current directory or parent directory.

    Returns:
        Path to .env file (current dir, parent dir, or default ".env")
    """
    current = Path.cwd() / ".env"
    parent = Path.cwd().parent / ".env"

    if current.exists():
        return str(current)
    elif parent.exists():
        return str(parent)
    else:
        # Fallback to default (will use environment variables only)
        return ".env"


class FileLoaderSettings(BaseSettings):
    """File metadata loader configuration."""

    preload_block_locations: Annotated[
        bool,
        Field(
            default=True,
            description="Resolve block locations for newly loaded files unless overridden",
            validation_alias="FILEMETA_PRELOAD_BLOCK_LOCATIONS",
        ),
    ]
    # Note: Type is str | dict[str, bool] to prevent Pydantic Settings from trying
    # to JSON-parse the env var. The validator accepts JSON or "key=bool,key=bool".
    preload_block_locations_overrides: Annotated[
        str | dict[str, bool],
        Field(
            default_factory=dict,
            description="Preload switch per scheme (hdfs) or per scheme://authority",
            validation_alias="FILEMETA_PRELOAD_BLOCK_LOCATIONS_OVERRIDES",
        ),
    ]
    iceberg_datafiles_in_table_location_only: Annotated[
        bool,
        Field(
            default=True,
            description="If True, Iceberg content files must live under the table location",
            validation_alias="FILEMETA_ICEBERG_DATAFILES_IN_TABLE_LOCATION_ONLY",
        ),
    ]
    max_concurrency: Annotated[
        int,
        Field(
            default=8,
            ge=1,
            le=256,
            description="Worker threads used to reconcile files within one load",
            validation_alias="FILEMETA_MAX_CONCURRENCY",
        ),
    ]
    synthetic_block_size: Annotated[
        int,
        Field(
            default=128 * 1024 * 1024,
            ge=1,
            description="Block size used when storage reports no native blocks",
            validation_alias="FILEMETA_SYNTHETIC_BLOCK_SIZE",
        ),
    ]

    @field_validator("preload_block_locations_overrides", mode="before")
    @classmethod
    def parse_preload_overrides(cls, v: str | dict[str, bool]) -> dict[str, bool]:
        """Parse preload overrides from a JSON object or comma-separated pairs.

        Args:
            v: Either a dict, a JSON object string, or "hdfs=false,s3a://bucket=true".

        Returns:
            Mapping of lower-cased scheme or scheme://authority keys to booleans.
        """
        if isinstance(v, str):
            if not v.strip():
                return {}
            try:
                parsed = json.loads(v)
            except json.JSONDecodeError:
                parsed = {}
                for pair in v.split(","):
                    key, sep, value = pair.partition("=")
                    if not sep:
                        raise ValueError(f"Preload override must be key=bool, got: {pair!r}")
                    parsed[key.strip()] = value.strip()
            v = parsed
        if not isinstance(v, dict):
            raise TypeError(f"Expected dict or str, got {type(v)}")

        overrides: dict[str, bool] = {}
        for key, value in v.items():
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered not in ("true", "false"):
                    raise ValueError(f"Preload override for {key!r} must be true/false, got: {value!r}")
                value = lowered == "true"
            overrides[key.strip().rstrip("/").lower()] = bool(value)
        return overrides

    def preload_enabled_for(self, path: str) -> bool:
        """Return whether block locations should be preloaded for files under path.

        Local paths without a scheme are looked up under the ``file`` scheme.
        """
        scheme, authority, _ = split_uri(path)
        scheme = scheme or "file"
        overrides = self.preload_block_locations_overrides
        if authority:
            by_authority = overrides.get(f"{scheme}://{authority}".lower())
            if by_authority is not None:
                return by_authority
        by_scheme = overrides.get(scheme.lower())
        if by_scheme is not None:
            return by_scheme
        return self.preload_block_locations

    model_config = SettingsConfigDict(
        env_file=find_env_file(),
        env_file_encoding="utf-8",
        extra="ignore",
    )


class AppSettings(BaseSettings):
    """Main engine settings"""

    # Logging
    log_level: Annotated[
        str,
        Field(
            default="info",
            description="Log level: debug, info, warn, error",
            validation_alias="FILEMETA_LOG_LEVEL",
        ),
    ]
    log_format: Annotated[
        str,
        Field(
            default="json",
            description="Log format: json, text",
            validation_alias="FILEMETA_LOG_FORMAT",
        ),
    ]

    # Nested settings
    file_loader: Annotated[
        FileLoaderSettings,
        Field(default_factory=FileLoaderSettings, description="File metadata loader settings"),
    ]

    @field_validator("log_format", mode="after")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v.lower() not in ("json", "text"):
            raise ValueError(f"FILEMETA_LOG_FORMAT must be json or text. Got: {v}")
        return v.lower()

    model_config = SettingsConfigDict(
        env_file=find_env_file(),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance (singleton, loaded once at import)
settings = AppSettings()
