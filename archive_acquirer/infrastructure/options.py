"""
Pydantic models for validating raw invocation options and batch manifests.

These models check only the shape of the input (types, coercion of "true"
to True, positive timeouts). Domain rules such as supported digest types or
schemes are enforced by DownloadSpec.validate so that they surface as the
application's own configuration errors.
"""

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import toml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..application.domain import DownloadSpec
from ..application.exceptions import ConfigurationError


class DownloadOptions(BaseModel):
    """The options of one download, named as on the command line."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    url: str = Field(min_length=1)
    ensure: str = "present"
    checksum: bool = True
    digest_url: Optional[str] = None
    digest_string: Optional[str] = None
    digest_type: str = "md5"
    timeout: int = Field(default=120, gt=0)
    src_target: str = "/usr/src"
    allow_insecure: bool = False
    follow_redirects: bool = False

    def to_spec(self) -> DownloadSpec:
        """Maps the validated options to a domain model."""
        return DownloadSpec(
            name=self.name,
            url=self.url,
            ensure=self.ensure,
            digest_url=self.digest_url or "",
            digest_string=self.digest_string or "",
            digest_type=self.digest_type,
            timeout=self.timeout,
            target_dir=Path(self.src_target),
            allow_insecure=self.allow_insecure,
            follow_redirects=self.follow_redirects,
            checksum_enabled=self.checksum,
        )


class Manifest(BaseModel):
    """A batch of downloads, read from a TOML `[[downloads]]` array."""

    downloads: List[Dict[str, Any]] = Field(default_factory=list)


def _merge(defaults: Mapping[str, Any], raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Layers explicitly given options over the configured defaults."""
    merged = {key.lower(): value for key, value in defaults.items()}
    merged.update({key: value for key, value in raw.items() if value is not None})
    return merged


def build_spec(
    raw: Mapping[str, Any], defaults: Optional[Mapping[str, Any]] = None
) -> DownloadSpec:
    """
    Validates raw options and returns the corresponding DownloadSpec.

    Args:
        raw: Options as given by the CLI or a manifest entry; None values
            fall back to the defaults.
        defaults: Configured defaults (the `defaults` settings section).

    Raises:
        ConfigurationError: If the options are malformed.
    """

    try:
        options = DownloadOptions.model_validate(_merge(defaults or {}, raw))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid download options: {e}") from e
    return options.to_spec()


def load_manifest(
    path: Path, defaults: Optional[Mapping[str, Any]] = None
) -> List[DownloadSpec]:
    """
    Reads a TOML manifest of downloads.

    Raises:
        ConfigurationError: If the file cannot be read or parsed, or any
            entry is malformed.
    """

    try:
        data = toml.load(path)
    except (OSError, toml.TomlDecodeError) as e:
        raise ConfigurationError(f"Cannot read manifest {path}: {e}") from e

    try:
        manifest = Manifest.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid manifest {path}: {e}") from e

    return [build_spec(entry, defaults) for entry in manifest.downloads]
