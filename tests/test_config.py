import pytest
from pydantic import ValidationError

from elemental_e2e.config import SuiteConfig, TimingConfig, display_config


def test_defaults_describe_a_single_node(clean_env):
    cfg = SuiteConfig()
    assert cfg.vm_index == 0
    assert cfg.last_index == 0
    assert cfg.used_nodes == 1
    assert cfg.operator_type == "capi"
    assert not cfg.iso_boot


def test_node_range_from_env(clean_env):
    clean_env.setenv("VM_INDEX", "2")
    clean_env.setenv("VM_NUMBERS", "4")
    cfg = SuiteConfig()
    assert (cfg.vm_index, cfg.last_index, cfg.used_nodes) == (2, 4, 3)


def test_empty_env_values_are_ignored(clean_env):
    clean_env.setenv("VM_NUMBERS", "")
    assert SuiteConfig().vm_numbers is None


def test_node_range_must_not_be_reversed(clean_env):
    clean_env.setenv("VM_INDEX", "5")
    clean_env.setenv("VM_NUMBERS", "3")
    with pytest.raises(ValidationError):
        SuiteConfig()


@pytest.mark.parametrize("value, expected", [("true", True), ("True", True), ("false", False),
                                             ("yes", False), ("1", False)])
def test_emulate_tpm_only_accepts_true(clean_env, value, expected):
    clean_env.setenv("EMULATE_TPM", value)
    assert SuiteConfig().emulate_tpm is expected


def test_iso_boot(clean_env):
    clean_env.setenv("BOOT_TYPE", "iso")
    assert SuiteConfig().iso_boot


def test_timing_overrides_from_env(monkeypatch):
    monkeypatch.setenv("E2E_MAX_CONCURRENT_NODES", "4")
    monkeypatch.setenv("E2E_RESOURCE_DEADLINE", "60")
    cfg = TimingConfig()
    assert cfg.max_concurrent_nodes == 4
    assert cfg.resource_deadline == 60
    assert cfg.resource_interval == 20


def test_timing_rejects_zero_concurrency(monkeypatch):
    monkeypatch.setenv("E2E_MAX_CONCURRENT_NODES", "0")
    with pytest.raises(ValidationError):
        TimingConfig()


def test_display_config_shows_ci_descriptors(clean_env, capsys):
    clean_env.setenv("CLUSTER_TYPE", "hardened")
    clean_env.setenv("OPERATOR_REPO", "oci://registry.example/elemental")
    clean_env.setenv("TEST_TYPE", "multi")
    display_config(SuiteConfig(), TimingConfig())
    err = capsys.readouterr().err
    assert "cluster_type    : hardened" in err
    assert "operator_repo   : oci://registry.example/elemental" in err
    assert "test_type       : multi" in err
