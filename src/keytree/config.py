"""StorageConfig — explicit service configuration."""

from __future__ import annotations

from dataclasses import dataclass, field

from .types import ShareSettings


@dataclass
class StorageConfig:
    """Configuration passed into ``StorageService``."""

    users_dir: str = "users"
    """Root directory under which per-user directories are created."""

    default_share: ShareSettings = field(default_factory=ShareSettings)
    """Settings for new nodes that have no existing ancestor."""

    id_length: int = 12
    """Length of generated node ids."""

    upload_url_base: str = "https://storage.local/upload"
    """Endpoint that signed upload URLs point at."""

    upload_url_ttl: int = 3600
    """Lifetime of a signed upload URL, in seconds."""

    signing_secret: str = "keytree-dev-secret"
    """HMAC key used to sign upload URLs."""

    def __post_init__(self) -> None:
        self.users_dir = self.users_dir.strip().strip("/")
        self.upload_url_base = self.upload_url_base.rstrip("/")
        if not 8 <= self.id_length <= 32:
            raise ValueError(f"id_length must be between 8 and 32, got {self.id_length}")
        if self.upload_url_ttl <= 0:
            raise ValueError(f"upload_url_ttl must be positive, got {self.upload_url_ttl}")
