"""Decoding of configuration files written in older formats."""

from __future__ import annotations

from typing import Any, Dict, Mapping

from keskit.yml.server_config import ServerConfig
from keskit.yml.types import ConfigTypeError, _yaml_kind

_LEGACY_TLS_KEYS = ("key", "cert", "proxy")


def _document(data: Any) -> Mapping:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigTypeError(f"cannot unmarshal {_yaml_kind(data)} into ServerConfig")
    return data


def _tls(tls: Any) -> Any:
    # Older formats have no TLS private key password.
    if isinstance(tls, Mapping):
        return {key: value for key, value in tls.items() if key in _LEGACY_TLS_KEYS}
    return tls


def _common(data: Mapping, key_store_key: str) -> Dict[str, Any]:
    """Map the fields every older format shares onto the current layout."""
    document: Dict[str, Any] = {
        key: data[key] for key in ("address", "cache", "log") if key in data
    }
    if "root" in data:
        document["admin"] = {"identity": data["root"]}
    if "tls" in data:
        document["tls"] = _tls(data["tls"])
    if key_store_key in data:
        document["keystore"] = data[key_store_key]
    return document


def _path_policy(policy: Any) -> Any:
    if not isinstance(policy, Mapping):
        return policy
    renames = (("paths", "allow"), ("identities", "identities"))
    return {new: policy[old] for old, new in renames if old in policy}


def _path_policies(policies: Any) -> Any:
    if not isinstance(policies, Mapping):
        return policies
    return {name: _path_policy(policy) for name, policy in policies.items()}


def migrate_v0135(data: Any) -> ServerConfig:
    """Decode a configuration in the v0.13.5 format into a ServerConfig."""
    data = _document(data)
    document = _common(data, "keys")
    if "policy" in data:
        document["policy"] = _path_policies(data["policy"])
    return ServerConfig.from_dict(document)


def migrate_v0140(data: Any) -> ServerConfig:
    """Decode a configuration in the v0.14.0 format into a ServerConfig."""
    data = _document(data)
    document = _common(data, "keystore")
    if "keys" in data:
        document["keys"] = data["keys"]
    if "policy" in data:
        document["policy"] = _path_policies(data["policy"])
    return ServerConfig.from_dict(document)


def migrate_v0170(data: Any) -> ServerConfig:
    """Decode a configuration in the v0.17.0 format into a ServerConfig."""
    data = _document(data)
    document = _common(data, "keystore")
    for key in ("keys", "policy"):
        if key in data:
            document[key] = data[key]
    return ServerConfig.from_dict(document)