from datetime import timedelta

import pytest

from keskit.yml.server_config import Backend, ServerConfig
from keskit.yml.types import ConfigTypeError, Duration

ADMIN = "3ecfcdf38fcbe141ae26a1030f81e96b753365a46760ae6b578698a97c59fd22"
PROXY = "c84cc9b91ae2399b043da7eca616048e4b4200b6d6e9d3c9f4e4fd5b76ba5e5b"
CLIENT = "a2b1c0f1e2d3c4b5a69788796a5b4c3d2e1f0a9b8c7d6e5f4a3b2c1d0e9f8a7b"

SAMPLE = {
    "address": "0.0.0.0:7373",
    "admin": {"identity": ADMIN},
    "tls": {
        "key": "./server.key",
        "cert": "./server.cert",
        "proxy": {"identities": [PROXY], "header": {"cert": "X-Tls-Client-Cert"}},
    },
    "policy": {
        "my-app": {
            "allow": ["/v1/key/create/my-app*", "/v1/key/generate/my-app*"],
            "deny": ["/v1/key/generate/my-app-internal*"],
            "identities": [CLIENT],
        }
    },
    "cache": {"expiry": {"any": "5m", "unused": "20s"}},
    "log": {"error": "on", "audit": "off"},
    "keys": [{"name": "my-key"}, {"name": "other-key"}],
    "keystore": {
        "vault": {
            "endpoint": "https://127.0.0.1:8200",
            "engine": "secrets",
            "version": "v2",
            "namespace": "tenant",
            "prefix": "kes",
            "approle": {"id": "role", "secret": "secret", "retry": "15s"},
            "tls": {"ca": "./vault.ca"},
            "status": {"ping": "10s"},
        },
        "aws": {"secretsmanager": {"kmskey": "alias/kes"}},
    },
    "unknown": {"ignored": True},
}


def test_empty_document():
    config = ServerConfig.from_dict(None)
    assert config.address.value == ""
    assert config.policies == {}
    assert config.keys == []
    assert all(backend.endpoint == "" for backend in config.backends())


def test_decodes_top_level_fields():
    config = ServerConfig.from_dict(SAMPLE)
    assert config.address.value == "0.0.0.0:7373"
    assert config.admin.identity.value == ADMIN
    assert config.tls.private_key.value == "./server.key"
    assert config.tls.certificate.value == "./server.cert"
    assert [i.value for i in config.tls.proxy.identities] == [PROXY]
    assert config.tls.proxy.header.client_cert.value == "X-Tls-Client-Cert"


def test_decodes_policies():
    config = ServerConfig.from_dict(SAMPLE)
    policy = config.policies["my-app"]
    assert policy.allow == SAMPLE["policy"]["my-app"]["allow"]
    assert policy.deny == SAMPLE["policy"]["my-app"]["deny"]
    assert [i.value for i in policy.identities] == [CLIENT]


def test_decodes_cache_log_and_keys():
    config = ServerConfig.from_dict(SAMPLE)
    assert config.cache.expiry.any == Duration.parse("5m")
    assert config.cache.expiry.unused.raw == "20s"
    assert config.cache.expiry.offline.value == timedelta(0)
    assert (config.log.error.value, config.log.audit.value) == ("on", "off")
    assert [key.name.value for key in config.keys] == ["my-key", "other-key"]


def test_decodes_vault_store():
    vault = ServerConfig.from_dict(SAMPLE).key_store.vault
    assert vault.endpoint.value == "https://127.0.0.1:8200"
    assert vault.engine.value == "secrets"
    assert vault.api_version.value == "v2"
    assert vault.namespace.value == "tenant"
    assert vault.prefix.value == "kes"
    assert vault.app_role.id.value == "role"
    assert vault.app_role.secret.value == "secret"
    assert vault.app_role.retry == Duration.parse("15s")
    assert vault.tls.ca_path.value == "./vault.ca"
    assert vault.status.ping.raw == "10s"
    assert vault.kubernetes.jwt.value == ""


def test_aws_kms_key_field():
    config = ServerConfig.from_dict(SAMPLE)
    assert config.key_store.aws.secrets_manager.kms_key.value == "alias/kes"


def test_backends_order_and_endpoint():
    backends = ServerConfig.from_dict(SAMPLE).backends()
    assert [b.type for b in backends] == [
        "FS",
        "Generic",
        "Hashicorp Vault",
        "Fortanix SDKMS",
        "Gemalto KeySecure",
        "AWS SecretsManager",
        "GCP SecretManager",
        "Azure KeyVault",
    ]
    configured = [b for b in backends if b.endpoint]
    assert configured == [Backend("Hashicorp Vault", "https://127.0.0.1:8200")]


def test_gcp_backend_uses_project_id():
    config = ServerConfig.from_dict(
        {"keystore": {"gcp": {"secretmanager": {"project_id": "my-project"}}}}
    )
    assert Backend("GCP SecretManager", "my-project") in config.backends()


def test_environment_references(monkeypatch):
    monkeypatch.setenv("KESKIT_TEST_ADMIN", ADMIN)
    config = ServerConfig.from_dict({"admin": {"identity": "${KESKIT_TEST_ADMIN}"}})
    assert config.admin.identity.value == ADMIN
    assert config.admin.identity.to_yaml() == "${KESKIT_TEST_ADMIN}"


@pytest.mark.parametrize(
    "data",
    [
        "not a mapping",
        {"address": ["a", "b"]},
        {"policy": "my-app"},
        {"keys": {"name": "my-key"}},
        {"tls": {"proxy": {"identities": [{"a": 1}]}}},
        {"cache": {"expiry": {"any": "forever"}}},
    ],
)
def test_type_errors(data):
    with pytest.raises(ConfigTypeError):
        ServerConfig.from_dict(data)


def test_null_sections_are_empty():
    config = ServerConfig.from_dict({"tls": None, "policy": None, "keys": None})
    assert config.tls.proxy.identities == []
    assert config.policies == {}
    assert config.keys == []