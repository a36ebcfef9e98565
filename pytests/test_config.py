#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Tests for the stack configuration loading and validation
"""

import pytest

from aurora_stack.common.config import (
    DEFAULT_CONFIG,
    DEFAULT_EXCLUDE_CHARACTERS,
    StackConfig,
    load_config_content,
    merge_config,
)
from aurora_stack.exceptions import InvalidConfiguration


def test_default_config():
    config = StackConfig()
    assert config.ingress["Port"] == 5432
    assert config.ingress["CidrIp"] == "0.0.0.0/0"
    assert config.secret["Username"] == "postgres"
    assert config.secret["PasswordLength"] == 16
    assert config.secret["ExcludeCharacters"] == "\"/\\'@"
    assert set(DEFAULT_EXCLUDE_CHARACTERS) == set("\"/\\'@")
    assert config.network["VpcCidr"] == "10.0.0.0/16"
    assert config.network["Subnets"] == ["10.0.1.0/24", "10.0.2.0/24"]
    assert config.zones == []
    assert config.publicly_accessible is True


def test_merge_config_does_not_change_defaults():
    merged = merge_config(DEFAULT_CONFIG, {"Ingress": {"Port": 6543}})
    assert merged["Ingress"]["Port"] == 6543
    assert merged["Ingress"]["CidrIp"] == "0.0.0.0/0"
    assert DEFAULT_CONFIG["Ingress"]["Port"] == 5432


def test_config_from_file(use_cases, monkeypatch):
    monkeypatch.setenv("DB_USERNAME", "appadmin")
    config = StackConfig(file_path=f"{use_cases}/custom.yml")
    assert config.secret["Username"] == "appadmin"
    assert config.secret["PasswordLength"] == 32
    assert config.secret["ExcludeCharacters"] == DEFAULT_EXCLUDE_CHARACTERS
    assert config.ingress["Port"] == 5433
    assert config.zones == ["eu-west-1a", "eu-west-1b"]
    assert config.publicly_accessible is False
    assert isinstance(config.tags, list)


def test_config_env_default(use_cases, monkeypatch):
    monkeypatch.delenv("DB_USERNAME", raising=False)
    config = StackConfig(file_path=f"{use_cases}/custom.yml")
    assert config.secret["Username"] == "dbadmin"


def test_invalid_configs(use_cases, tmp_path):
    with pytest.raises(InvalidConfiguration):
        StackConfig(file_path=f"{use_cases}/invalid.yml")
    with pytest.raises(InvalidConfiguration):
        StackConfig(content={"Network": {"Subnets": ["10.0.1.0/24"]}})
    with pytest.raises(InvalidConfiguration):
        StackConfig(content={"Unknown": {}})
    with pytest.raises(InvalidConfiguration):
        StackConfig(file_path=f"{use_cases}/does_not_exist.yml")
    not_a_mapping = tmp_path / "list.yml"
    not_a_mapping.write_text("- a\n- b\n")
    with pytest.raises(InvalidConfiguration):
        load_config_content(str(not_a_mapping))
    with pytest.raises(TypeError):
        StackConfig(content=["Network"])
    with pytest.raises(ValueError):
        StackConfig(content={}, file_path=f"{use_cases}/default.yml")


def test_empty_config_file(tmp_path):
    empty = tmp_path / "empty.yml"
    empty.write_text("")
    assert load_config_content(str(empty)) == {}
    config = StackConfig(file_path=str(empty))
    assert config.ingress["Port"] == 5432


def test_set_zones():
    config = StackConfig()
    config.set_zones([])
    assert config.zones == []
    config.set_zones(["eu-west-1b", "eu-west-1c"])
    assert config.zones == ["eu-west-1b", "eu-west-1c"]
    with pytest.raises(InvalidConfiguration):
        config.set_zones(["eu-west-1a"])
    assert config.zones == ["eu-west-1b", "eu-west-1c"]
