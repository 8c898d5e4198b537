from datetime import timedelta

from keskit.vault.config import (
    APIV1,
    ENGINE_KUBERNETES,
    ENGINE_KV,
    AppRole,
    Config,
    Kubernetes,
)


def test_set_defaults_fills_empty_fields():
    config = Config()
    config.set_defaults()
    assert config.engine == "kv"
    assert config.api_version == "v1"
    assert config.k8s.engine == "kubernetes"
    assert config.app_role.retry == timedelta(seconds=5)
    assert config.k8s.retry == config.app_role.retry


def test_set_defaults_leaves_app_role_engine_empty():
    config = Config()
    config.set_defaults()
    assert config.app_role.engine == ""


def test_set_defaults_keeps_explicit_values():
    retry = timedelta(seconds=1)
    config = Config(
        engine="secrets",
        api_version="v2",
        app_role=AppRole(retry=retry),
        k8s=Kubernetes(engine="k8s", retry=retry),
    )
    config.set_defaults()
    assert config.engine == "secrets"
    assert config.api_version == "v2"
    assert config.app_role.retry == retry
    assert config.k8s.engine == "k8s"
    assert config.k8s.retry == retry


def test_defaults_match_constants():
    config = Config()
    config.set_defaults()
    assert (config.engine, config.api_version, config.k8s.engine) == (
        ENGINE_KV,
        APIV1,
        ENGINE_KUBERNETES,
    )


def test_clone_is_equal():
    original = Config(
        endpoint="https://127.0.0.1:8200",
        namespace="tenant",
        prefix="keys",
        app_role=AppRole(id="role", secret="secret"),
    )
    copy = original.clone()
    assert copy == original
    assert copy is not original


def test_clone_copies_credentials():
    original = Config(app_role=AppRole(id="role"), k8s=Kubernetes(role="reader"))
    copy = original.clone()
    copy.app_role.id = "other"
    copy.k8s.role = "writer"
    assert original.app_role.id == "role"
    assert original.k8s.role == "reader"


def test_clone_keeps_error_log():
    import logging

    logger = logging.getLogger("keskit-test")
    copy = Config(error_log=logger).clone()
    assert copy.error_log is logger


def test_clone_does_not_share_defaults():
    original = Config()
    copy = original.clone()
    copy.set_defaults()
    assert original.engine == ""
    assert copy.engine == ENGINE_KV