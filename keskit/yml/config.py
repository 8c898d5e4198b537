"""Reading and validating key server configuration files."""

from __future__ import annotations

import json
from dataclasses import replace
from datetime import timedelta
from typing import Any, Dict, Optional, Union

import yaml

from keskit.yml.legacy import migrate_v0135, migrate_v0140, migrate_v0170
from keskit.yml.server_config import Backend, ServerConfig
from keskit.yml.types import ConfigTypeError

_NULL_TAG = "tag:yaml.org,2002:null"
_MERGE_TAG = "tag:yaml.org,2002:merge"


class _StringLoader(yaml.SafeLoader):
    """Loads plain scalars as strings so that values like "on" keep their text."""


_StringLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag in (_NULL_TAG, _MERGE_TAG)]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def unmarshal_server_config(data: Union[bytes, str]) -> ServerConfig:
    """Decode a YAML configuration, falling back to older formats on type errors."""
    document = yaml.load(data, Loader=_StringLoader)
    try:
        return ServerConfig.from_dict(document)
    except ConfigTypeError as exc:
        error = exc
    for migrate in (migrate_v0170, migrate_v0140, migrate_v0135):
        try:
            return migrate(document)
        except ConfigTypeError:
            continue
    raise error


def _default(item: Any, value: Any) -> Any:
    return item if item.value else replace(item, value=value)


def _apply_defaults(config: ServerConfig) -> None:
    expiry = config.cache.expiry
    expiry.any = _default(expiry.any, timedelta(minutes=5))
    expiry.unused = _default(expiry.unused, timedelta(seconds=30))

    config.log.audit = _default(config.log.audit, "off")
    config.log.error = _default(config.log.error, "on")

    vault = config.key_store.vault
    vault.engine = _default(vault.engine, "kv")
    vault.api_version = _default(vault.api_version, "v1")
    vault.app_role.engine = _default(vault.app_role.engine, "approle")
    vault.app_role.retry = _default(vault.app_role.retry, timedelta(seconds=5))
    vault.kubernetes.engine = _default(vault.kubernetes.engine, "kubernetes")
    if not vault.kubernetes.retry.value:
        # An empty Kubernetes retry resets the AppRole retry.
        vault.app_role.retry = replace(vault.app_role.retry, value=timedelta(seconds=5))

    gcp = config.key_store.gcp.secret_manager
    gcp.endpoint = _default(gcp.endpoint, "secretmanager.googleapis.com:443")


def _read_jwt(path: str) -> Optional[str]:
    """Return the content of the file at path, or None if there is no such file."""
    try:
        file = open(path, "rb")
    except FileNotFoundError:
        return None
    except OSError as exc:
        raise OSError(f"yml: failed to open Vault Kubernetes JWT: {exc}") from exc
    with file:
        try:
            return file.read().decode("utf-8", errors="replace")
        except OSError as exc:
            raise OSError(f"yml: failed to read Vault Kubernetes JWT: {exc}") from exc


def _validate(config: ServerConfig) -> None:
    admin = config.admin.identity.value
    proxies = config.tls.proxy.identities
    for identity in proxies:
        if identity.is_unknown():
            continue
        if identity.value == admin:
            raise ValueError(
                "yml: TLS proxy contains admin identity: admin identity cannot be used as TLS proxy"
            )

    if config.log.audit.value.lower() not in ("on", "off"):
        raise ValueError("yml: invalid audit log configuration: allowed values are { on | off }")
    if config.log.error.value.lower() not in ("on", "off"):
        raise ValueError("yml: invalid error log configuration: allowed values are { on | off }")

    assigned: Dict[str, str] = {}
    for name, policy in config.policies.items():
        for identity in policy.identities:
            if identity.is_unknown():
                continue
            if identity.value == admin:
                raise ValueError(f"yml: policy {_quote(name)} contains admin identity")
            if any(identity.value == proxy.value for proxy in proxies):
                raise ValueError(f"yml: policy {_quote(name)} contains TLS proxy identity")
            if identity.value in assigned:
                raise ValueError(
                    f"yml: identity {_quote(identity.value)} assigned to multiple policies: "
                    f"{_quote(name)} and {_quote(assigned[identity.value])}"
                )
            assigned[identity.value] = name

    chosen = Backend("", "")
    for backend in config.backends():
        if chosen.endpoint and backend.endpoint:
            raise ValueError(
                f"yml: ambiguous KMS configuration: {chosen.type} and {backend.type} "
                "KMS key store specified at the same time"
            )
        if backend.endpoint:
            chosen = backend

    vault = config.key_store.vault
    if vault.endpoint.value:
        has_app_role = bool(vault.app_role.id.value or vault.app_role.secret.value)
        has_k8s = bool(vault.kubernetes.role.value or vault.kubernetes.jwt.value)
        if has_app_role and has_k8s:
            raise ValueError(
                "yml: amiguous KMS configuration: Hashicorp Vault AppRole and Kubernetes credentials found"
            )


def read_server_config(filename: str) -> ServerConfig:
    """Read, complete with defaults and validate the configuration file filename."""
    with open(filename, "rb") as file:
        config = unmarshal_server_config(file.read())

    _apply_defaults(config)

    # The Kubernetes JWT is either the token itself or the path of a file holding it.
    vault = config.key_store.vault
    jwt = vault.kubernetes.jwt
    if vault.endpoint.value and jwt.value:
        content = _read_jwt(jwt.value)
        if content is not None:
            vault.kubernetes.jwt = replace(jwt, value=content)

    _validate(config)
    return config