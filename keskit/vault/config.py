"""Configuration of a client for a Vault K/V secret engine."""

from __future__ import annotations

import dataclasses
import logging
import threading
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional

# K/V secret engine API versions. Version 1 does not support versioned secrets.
APIV1 = "v1"
APIV2 = "v2"

# Default engine paths.
ENGINE_KV = "kv"
ENGINE_APPROLE = "approle"
ENGINE_KUBERNETES = "kubernetes"

_DEFAULT_RETRY = timedelta(seconds=5)


@dataclass
class AppRole:
    """Credentials for the AppRole authentication API."""

    engine: str = ""
    id: str = ""
    secret: str = ""
    retry: timedelta = timedelta(0)


@dataclass
class Kubernetes:
    """Credentials for the Kubernetes authentication API."""

    engine: str = ""
    role: str = ""
    jwt: str = ""
    retry: timedelta = timedelta(0)


@dataclass
class Config:
    """Settings of a client for a Vault server."""

    endpoint: str = ""
    engine: str = ""
    api_version: str = ""
    namespace: str = ""
    prefix: str = ""
    app_role: AppRole = field(default_factory=AppRole)
    k8s: Kubernetes = field(default_factory=Kubernetes)
    error_log: Optional[logging.Logger] = None
    status_ping_after: timedelta = timedelta(0)
    client_key_path: str = ""
    client_cert_path: str = ""
    ca_path: str = ""
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def clone(self) -> "Config":
        """Return a shallow copy; safe while the config is in concurrent use."""
        with self._lock:
            return dataclasses.replace(
                self,
                app_role=dataclasses.replace(self.app_role),
                k8s=dataclasses.replace(self.k8s),
            )

    def set_defaults(self) -> None:
        """Fill some empty fields with their default values."""
        with self._lock:
            if not self.engine:
                self.engine = ENGINE_KV
            if not self.api_version:
                self.api_version = APIV1
            if not self.app_role.retry:
                self.app_role.retry = _DEFAULT_RETRY
            if not self.k8s.engine:
                self.k8s.engine = ENGINE_KUBERNETES
            if not self.k8s.retry:
                self.k8s.retry = _DEFAULT_RETRY