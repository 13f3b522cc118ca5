# infra_cdk/config.py
"""
Deployment settings for the clean serverless stack.

Everything the stack needs from the environment is read here, once, before
any construct is created. Missing or malformed values raise ConfigError
instead of leaking empty strings into the Lambda environment.
"""
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

ROOT_DIR = Path(__file__).resolve().parent.parent
DEFAULT_IMAGE_DIRECTORY = ROOT_DIR / "lambdas"

_BUCKET_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")
_ATTRIBUTE_NAME_RE = re.compile(r"^[A-Za-z0-9_.-]{1,255}$")
_STAGE_NAME_RE = re.compile(r"^[A-Za-z0-9_]+$")
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigError(ValueError):
    """Raised when the deployment environment is incomplete or invalid."""
    pass


@dataclass(frozen=True)
class StackConfig:
    """Validated settings consumed by CleanServerlessStack."""

    table_name: Optional[str] = None
    pk_name: str = "PK"
    sk_name: str = "SK"
    bucket_name: str = "clean-serverless-book-sample-bucket"
    function_name_prefix: str = "clean-serverless"
    stage_name: str = "dev"
    image_directory: Path = DEFAULT_IMAGE_DIRECTORY
    enable_nag: bool = False

    def __post_init__(self):
        if self.table_name is not None and not self.table_name.strip():
            raise ConfigError("DYNAMO_TABLE_NAME must not be blank when set")
        if not _ATTRIBUTE_NAME_RE.match(self.pk_name):
            raise ConfigError(f"DYNAMO_PK_NAME is not a valid attribute name: {self.pk_name!r}")
        if not _ATTRIBUTE_NAME_RE.match(self.sk_name):
            raise ConfigError(f"DYNAMO_SK_NAME is not a valid attribute name: {self.sk_name!r}")
        if self.pk_name == self.sk_name:
            raise ConfigError("DYNAMO_PK_NAME and DYNAMO_SK_NAME must differ")
        if not _BUCKET_NAME_RE.match(self.bucket_name) or ".." in self.bucket_name:
            raise ConfigError(f"S3_BUCKET_NAME is not a valid bucket name: {self.bucket_name!r}")
        if not self.function_name_prefix:
            raise ConfigError("FUNCTION_NAME_PREFIX must not be empty")
        if not _STAGE_NAME_RE.match(self.stage_name):
            raise ConfigError(f"API_STAGE_NAME is not a valid stage name: {self.stage_name!r}")
        if not (Path(self.image_directory) / "Dockerfile").is_file():
            raise ConfigError(f"No Dockerfile found in image directory: {self.image_directory}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "StackConfig":
        """
        Builds a config from environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ.

        Returns:
            A validated StackConfig.

        Raises:
            ConfigError: If a variable is present but invalid.
        """
        if environ is None:
            environ = os.environ

        def read(name: str) -> Optional[str]:
            # Empty strings count as unset
            value = environ.get(name, "").strip()
            return value or None

        values = {}
        for field_name, env_name in (
            ("table_name", "DYNAMO_TABLE_NAME"),
            ("pk_name", "DYNAMO_PK_NAME"),
            ("sk_name", "DYNAMO_SK_NAME"),
            ("bucket_name", "S3_BUCKET_NAME"),
            ("function_name_prefix", "FUNCTION_NAME_PREFIX"),
            ("stage_name", "API_STAGE_NAME"),
        ):
            value = read(env_name)
            if value is not None:
                values[field_name] = value

        image_directory = read("IMAGE_DIRECTORY")
        if image_directory is not None:
            values["image_directory"] = Path(image_directory).resolve()

        enable_nag = read("ENABLE_CDK_NAG")
        if enable_nag is not None:
            values["enable_nag"] = _parse_flag("ENABLE_CDK_NAG", enable_nag)

        return cls(**values)


def _parse_flag(name: str, value: str) -> bool:
    lowered = value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean flag, got: {value!r}")


_config: Optional[StackConfig] = None


def get_config() -> StackConfig:
    """Returns the process-wide config, loading it on first use."""
    global _config
    if _config is None:
        _config = StackConfig.from_env()
    return _config
