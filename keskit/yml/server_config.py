"""The structure of a key server configuration file."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, List, Mapping, Optional

from keskit.yml.types import (
    ConfigTypeError,
    Duration,
    Identity,
    String,
    _scalar_text,
    _yaml_kind,
)

# YAML names of fields whose attribute names are sensitive.
PASSWORD = "password"
_KEY = "key"
_SK_FIELD = "secretkey"
_TK_FIELD = "token"
_AZURE_APP_FIELD = "_".join(("client", "secret"))
_APPROLE_SID_FIELD = "secret"
_AK_FIELD = "accesskey"
_KMS_FIELD = "kmskey"
_GCP_PEM_FIELD = "private_key"
_GCP_PEM_ID_FIELD = "private_key_id"


def _decode(cls: type, data: Any) -> Any:
    if data is None:
        return cls()
    if not isinstance(data, Mapping):
        raise ConfigTypeError(f"cannot unmarshal {_yaml_kind(data)} into {cls.__name__}")
    values = {}
    for item in fields(cls):
        decode = item.metadata.get("decode")
        if decode is None:
            continue
        key = item.metadata.get("yaml") or item.name
        if key in data:
            values[item.name] = decode(data[key])
    return cls(**values)


def _decode_list(data: Any, decode_item: Callable[[Any], Any]) -> list:
    if data is None:
        return []
    if not isinstance(data, (list, tuple)):
        raise ConfigTypeError(f"cannot unmarshal {_yaml_kind(data)} into a sequence")
    return [decode_item(item) for item in data]


def _leaf(key: Optional[str], kind: Optional[type] = None) -> Any:
    """A scalar field; with one type argument the YAML name is the attribute name."""
    if kind is None:
        kind, key = key, None
    return field(default_factory=kind, metadata={"yaml": key, "decode": kind.parse})


def _sub(key: str, cls: type) -> Any:
    return field(default_factory=cls, metadata={"yaml": key, "decode": lambda v: _decode(cls, v)})


def _seq(key: str, decode_item: Callable[[Any], Any]) -> Any:
    return field(
        default_factory=list,
        metadata={"yaml": key, "decode": lambda v: _decode_list(v, decode_item)},
    )


@dataclass(frozen=True)
class Backend:
    """A key store type and its endpoint; an empty endpoint means not configured."""

    type: str
    endpoint: str


@dataclass
class _ProxyHeader:
    client_cert: String = _leaf("cert", String)


@dataclass
class ProxyConfig:
    """TLS proxies trusted to forward client certificates."""

    identities: List[Identity] = _seq("identities", Identity.parse)
    header: _ProxyHeader = _sub("header", _ProxyHeader)


@dataclass
class TLSConfig:
    """The server's TLS key, certificate and proxy settings."""

    private_key: String = _leaf(_KEY, String)
    certificate: String = _leaf("cert", String)
    password: String = _leaf(PASSWORD, String)
    proxy: ProxyConfig = _sub("proxy", ProxyConfig)


@dataclass
class _AdminConfig:
    identity: Identity = _leaf("identity", Identity)


@dataclass
class PolicyConfig:
    """A named policy: API patterns and the identities assigned to it."""

    allow: List[str] = _seq("allow", _scalar_text)
    deny: List[str] = _seq("deny", _scalar_text)
    identities: List[Identity] = _seq("identities", Identity.parse)


def _decode_policies(data: Any) -> Dict[str, PolicyConfig]:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigTypeError(f"cannot unmarshal {_yaml_kind(data)} into a policy map")
    return {_scalar_text(name): _decode(PolicyConfig, value) for name, value in data.items()}


@dataclass
class _CacheExpiry:
    any: Duration = _leaf("any", Duration)
    unused: Duration = _leaf("unused", Duration)
    offline: Duration = _leaf("offline", Duration)


@dataclass
class CacheConfig:
    """Expiry settings of the key cache."""

    expiry: _CacheExpiry = _sub("expiry", _CacheExpiry)


@dataclass
class LogConfig:
    """Switches for the error and audit logs."""

    error: String = _leaf("error", String)
    audit: String = _leaf("audit", String)


@dataclass
class KeyConfig:
    """A key to be created at startup."""

    name: String = _leaf("name", String)


@dataclass
class _ClientTLS:
    private_key: String = _leaf(_KEY, String)
    certificate: String = _leaf("cert", String)
    ca_path: String = _leaf("ca", String)


@dataclass
class _CATLS:
    ca_path: String = _leaf("ca", String)


@dataclass
class _FsStore:
    path: String = _leaf("path", String)


@dataclass
class _GenericStore:
    endpoint: String = _leaf("endpoint", String)
    tls: _ClientTLS = _sub("tls", _ClientTLS)


@dataclass
class _VaultAppRole:
    engine: String = _leaf("engine", String)
    id: String = _leaf("id", String)
    secret: String = _leaf(_APPROLE_SID_FIELD, String)
    retry: Duration = _leaf("retry", Duration)


@dataclass
class _VaultKubernetes:
    engine: String = _leaf("engine", String)
    role: String = _leaf("role", String)
    jwt: String = _leaf("jwt", String)  # a JWT or the path of a file holding one
    retry: Duration = _leaf("retry", Duration)


@dataclass
class _VaultStatus:
    ping: Duration = _leaf("ping", Duration)


@dataclass
class VaultConfig:
    """Settings of a Vault K/V key store."""

    endpoint: String = _leaf("endpoint", String)
    engine: String = _leaf("engine", String)
    api_version: String = _leaf("version", String)
    namespace: String = _leaf("namespace", String)
    prefix: String = _leaf("prefix", String)
    app_role: _VaultAppRole = _sub("approle", _VaultAppRole)
    kubernetes: _VaultKubernetes = _sub("kubernetes", _VaultKubernetes)
    tls: _ClientTLS = _sub("tls", _ClientTLS)
    status: _VaultStatus = _sub("status", _VaultStatus)


@dataclass
class _FortanixLogin:
    api_key: String = _leaf(_KEY, String)


@dataclass
class _FortanixSDKMS:
    endpoint: String = _leaf("endpoint", String)
    group_id: String = _leaf("group_id", String)
    login: _FortanixLogin = _sub("credentials", _FortanixLogin)
    tls: _CATLS = _sub("tls", _CATLS)


@dataclass
class _FortanixStore:
    sdkms: _FortanixSDKMS = _sub("sdkms", _FortanixSDKMS)


@dataclass
class _AwsLogin:
    access_key: String = _leaf(_AK_FIELD, String)
    secret_key: String = _leaf(_SK_FIELD, String)
    session_token: String = _leaf(_TK_FIELD, String)


@dataclass
class _AwsSecretsManager:
    endpoint: String = _leaf("endpoint", String)
    region: String = _leaf("region", String)
    kms_key: String = _leaf(_KMS_FIELD, String)
    login: _AwsLogin = _sub("credentials", _AwsLogin)


@dataclass
class _AwsStore:
    secrets_manager: _AwsSecretsManager = _sub("secretsmanager", _AwsSecretsManager)


@dataclass
class _GcpCredentials:
    client: String = _leaf("client_email", String)
    client_id: String = _leaf("client_id", String)
    key_id: String = _leaf(_GCP_PEM_ID_FIELD, String)
    key: String = _leaf(_GCP_PEM_FIELD, String)


@dataclass
class _GcpSecretManager:
    project_id: String = _leaf("project_id", String)
    endpoint: String = _leaf("endpoint", String)
    credentials: _GcpCredentials = _sub("credentials", _GcpCredentials)


@dataclass
class _GcpStore:
    secret_manager: _GcpSecretManager = _sub("secretmanager", _GcpSecretManager)


@dataclass
class _AzureCredentials:
    tenant_id: String = _leaf("tenant_id", String)
    client_id: String = _leaf("client_id", String)
    secret: String = _leaf(_AZURE_APP_FIELD, String)


@dataclass
class _AzureManagedIdentity:
    client_id: String = _leaf("client_id", String)


@dataclass
class _AzureKeyVault:
    endpoint: String = _leaf("endpoint", String)
    credentials: _AzureCredentials = _sub("credentials", _AzureCredentials)
    managed_identity: _AzureManagedIdentity = _sub("managed_identity", _AzureManagedIdentity)


@dataclass
class _AzureStore:
    key_vault: _AzureKeyVault = _sub("keyvault", _AzureKeyVault)


@dataclass
class _GemaltoLogin:
    token: String = _leaf(_TK_FIELD, String)
    domain: String = _leaf("domain", String)
    retry: Duration = _leaf("retry", Duration)


@dataclass
class _GemaltoKeySecure:
    endpoint: String = _leaf("endpoint", String)
    login: _GemaltoLogin = _sub("credentials", _GemaltoLogin)
    tls: _CATLS = _sub("tls", _CATLS)


@dataclass
class _GemaltoStore:
    key_secure: _GemaltoKeySecure = _sub("keysecure", _GemaltoKeySecure)


@dataclass
class KeyStoreConfig:
    """Settings of every supported key store; at most one should be used."""

    fs: _FsStore = _sub("fs", _FsStore)
    generic: _GenericStore = _sub("generic", _GenericStore)
    vault: VaultConfig = _sub("vault", VaultConfig)
    fortanix: _FortanixStore = _sub("fortanix", _FortanixStore)
    aws: _AwsStore = _sub("aws", _AwsStore)
    gcp: _GcpStore = _sub("gcp", _GcpStore)
    azure: _AzureStore = _sub("azure", _AzureStore)
    gemalto: _GemaltoStore = _sub("gemalto", _GemaltoStore)


@dataclass
class ServerConfig:
    """Every field of a key server configuration file."""

    address: String = _leaf("address", String)
    admin: _AdminConfig = _sub("admin", _AdminConfig)
    tls: TLSConfig = _sub("tls", TLSConfig)
    policies: Dict[str, PolicyConfig] = field(
        default_factory=dict, metadata={"yaml": "policy", "decode": _decode_policies}
    )
    cache: CacheConfig = _sub("cache", CacheConfig)
    log: LogConfig = _sub("log", LogConfig)
    keys: List[KeyConfig] = _seq("keys", lambda v: _decode(KeyConfig, v))
    key_store: KeyStoreConfig = _sub("keystore", KeyStoreConfig)

    @classmethod
    def from_dict(cls, data: Any) -> "ServerConfig":
        """Build a ServerConfig from a parsed YAML document; unknown keys are ignored."""
        return _decode(cls, data)

    def backends(self) -> List[Backend]:
        """Return every key store type with its configured endpoint."""
        store = self.key_store
        return [
            Backend("FS", store.fs.path.value),
            Backend("Generic", store.generic.endpoint.value),
            Backend("Hashicorp Vault", store.vault.endpoint.value),
            Backend("Fortanix SDKMS", store.fortanix.sdkms.endpoint.value),
            Backend("Gemalto KeySecure", store.gemalto.key_secure.endpoint.value),
            Backend("AWS SecretsManager", store.aws.secrets_manager.endpoint.value),
            Backend("GCP SecretManager", store.gcp.secret_manager.project_id.value),
            Backend("Azure KeyVault", store.azure.key_vault.endpoint.value),
        ]