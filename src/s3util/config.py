"""
Configuration for s3util.

This module centralizes all configuration, loading credentials from
environment variables and providing typed dataclasses that are passed
explicitly to the components that need them.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from s3util.exceptions import ConfigError


def _get_env_var(name: str, default: Optional[str] = None) -> str:
    """
    Retrieves a required environment variable.

    Args:
        name (str): The name of the environment variable.
        default (str, optional): The default value if the variable is not set.

    Returns:
        str: The value of the environment variable.
    """
    value: Optional[str] = os.environ.get(name, default)
    if not value:
        raise ConfigError(f"Environment variable '{name}' must be set.")
    return value


@dataclass(frozen=True)
class S3Config:
    """
    Represents the configuration for an S3-compatible endpoint.

    Attributes:
        endpoint_url (str, optional): The S3 endpoint URL, None for AWS.
        access_key_id (str): The access key ID.
        secret_access_key (str): The secret access key.
        region (str): The region name.
    """

    endpoint_url: Optional[str]
    access_key_id: str
    secret_access_key: str
    region: str

    def as_boto_dict(self) -> Dict[str, Optional[str]]:
        """
        Returns the configuration as a dictionary suitable for aiobotocore clients.

        Returns:
            Dict[str, Optional[str]]: A dictionary of client parameters.
        """
        return {
            "endpoint_url": self.endpoint_url,
            "aws_access_key_id": self.access_key_id,
            "aws_secret_access_key": self.secret_access_key,
            "region_name": self.region,
        }

    @classmethod
    def from_env(
        cls, endpoint_url: Optional[str] = None, region: Optional[str] = None
    ) -> "S3Config":
        """
        Builds an `S3Config` from the environment, with optional overrides.

        Args:
            endpoint_url (str, optional): Overrides `S3UTIL_ENDPOINT_URL`.
            region (str, optional): Overrides `S3UTIL_REGION`.

        Returns:
            S3Config: The resolved endpoint configuration.
        """
        return cls(
            endpoint_url=endpoint_url or os.environ.get("S3UTIL_ENDPOINT_URL") or None,
            access_key_id=_get_env_var("AWS_ACCESS_KEY_ID"),
            secret_access_key=_get_env_var("AWS_SECRET_ACCESS_KEY"),
            region=region or _get_env_var("S3UTIL_REGION", "us-east-1"),
        )


@dataclass(frozen=True)
class AppConfig:
    """
    Defines the application's operational parameters.

    Attributes:
        parallelism (int): The number of concurrent transfer workers.
        chunk_size (int): Read size in bytes when streaming downloads to disk.
        transfer_max_attempts (int): Max attempts handed to the botocore retry config.
    """

    parallelism: int = 8
    chunk_size: int = 1024 * 1024
    transfer_max_attempts: int = 5

    def __post_init__(self) -> None:
        if self.parallelism < 1:
            raise ConfigError(
                f"Parallelism must be at least 1, got {self.parallelism}."
            )
        if self.chunk_size < 1:
            raise ConfigError(f"Chunk size must be at least 1, got {self.chunk_size}.")


@dataclass(frozen=True)
class Config:
    """
    Top-level configuration container for the entire application.

    Attributes:
        storage (S3Config): Configuration for the S3-compatible service.
        app (AppConfig): General application settings.
    """

    storage: S3Config = field(default_factory=S3Config.from_env)
    app: AppConfig = field(default_factory=AppConfig)
