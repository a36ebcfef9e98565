#  -*- coding: utf-8 -*-
# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2021 John Mille <john@compose-x.io>

"""
Module to load, interpolate and validate the stack configuration file.
"""

from __future__ import annotations

from copy import deepcopy
from json import loads

import jsonschema
import yaml
from compose_x_common.compose_x_common import keyisset
from importlib_resources import files as pkg_files

from aurora_stack.common.envsubst import expandvars
from aurora_stack.common.logging import LOG
from aurora_stack.exceptions import InvalidConfiguration

DEFAULT_EXCLUDE_CHARACTERS = "\"/\\'@"

DEFAULT_CONFIG = {
    "Network": {
        "VpcCidr": "10.0.0.0/16",
        "EnableDnsSupport": True,
        "EnableDnsHostnames": True,
        "MapPublicIpOnLaunch": True,
        "Subnets": ["10.0.1.0/24", "10.0.2.0/24"],
        "AvailabilityZones": [],
    },
    "Ingress": {
        "Port": 5432,
        "CidrIp": "0.0.0.0/0",
        "Description": "PostgreSQL access",
    },
    "Secret": {
        "Username": "postgres",
        "PasswordLength": 16,
        "ExcludeCharacters": DEFAULT_EXCLUDE_CHARACTERS,
        "Description": "Aurora PostgreSQL master user credentials",
    },
    "Cluster": {
        "Engine": "aurora-postgresql",
        "EngineVersion": "15.4",
        "BackupRetentionPeriod": 7,
        "PreferredBackupWindow": "01:00-02:00",
        "PreferredMaintenanceWindow": "mon:03:00-mon:04:00",
        "StorageEncrypted": True,
    },
    "Instances": {
        "DBInstanceClass": "db.t3.medium",
        "PubliclyAccessible": True,
    },
    "ParameterGroups": {},
    "Tags": {},
}


def merge_config(base: dict, override: dict) -> dict:
    """
    Merges the override into a copy of base. Nested dicts are merged, any other value is replaced.

    :param dict base:
    :param dict override:
    :return: the merged configuration
    :rtype: dict
    """
    merged = deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def load_config_content(file_path: str) -> dict:
    """
    Reads the configuration file, interpolates the environment variables and parses the YAML content.

    :param str file_path: path to the configuration file
    :return: the parsed content
    :rtype: dict
    """
    try:
        with open(file_path, "r") as config_fd:
            raw_content = config_fd.read()
    except OSError as error:
        raise InvalidConfiguration(
            f"Unable to read configuration file {file_path}", str(error)
        )
    try:
        content = yaml.safe_load(expandvars(raw_content))
    except yaml.YAMLError as error:
        raise InvalidConfiguration(f"Invalid YAML in {file_path}", str(error))
    if content is None:
        LOG.warning(f"Configuration file {file_path} is empty. Using defaults")
        return {}
    if not isinstance(content, dict):
        raise InvalidConfiguration(
            f"Configuration {file_path} must be a mapping. Got", type(content)
        )
    return content


def validate_config(content: dict) -> None:
    """
    Validates the configuration against the JSON schema shipped with the package.

    :raises: InvalidConfiguration
    """
    source = pkg_files("aurora_stack").joinpath("specs/aurora-stack.spec.json")
    LOG.debug(f"Validating configuration against input schema {source}")
    try:
        jsonschema.validate(content, loads(source.read_text()))
    except jsonschema.ValidationError as error:
        path = ".".join(str(part) for part in error.absolute_path)
        raise InvalidConfiguration(
            f"Invalid configuration at {path if path else 'root'}: {error.message}"
        )


class StackConfig(object):
    """
    Class to hold the configuration of the Aurora stack: the defaults overridden by the configuration file.

    :ivar dict network: VPC and subnets settings
    :ivar dict ingress: Security group ingress settings
    :ivar dict secret: Generated credentials settings
    :ivar dict cluster: DB Cluster settings
    :ivar dict instances: DB Instances settings
    :ivar dict parameter_groups: Default values for the parameter groups parameters
    :ivar tags: Tags to add to all resources
    """

    def __init__(self, content: dict = None, file_path: str = None):
        if content is not None and file_path is not None:
            raise ValueError("Only one of content or file_path can be set")
        if file_path:
            content = load_config_content(file_path)
            LOG.info(f"Loaded stack configuration from {file_path}")
        elif content is None:
            content = {}
        elif not isinstance(content, dict):
            raise TypeError("content must be of type", dict, "Got", type(content))
        self.definition = merge_config(DEFAULT_CONFIG, content)
        validate_config(self.definition)
        self.network = self.definition["Network"]
        self.ingress = self.definition["Ingress"]
        self.secret = self.definition["Secret"]
        self.cluster = self.definition["Cluster"]
        self.instances = self.definition["Instances"]
        self.parameter_groups = self.definition["ParameterGroups"]
        self.tags = self.definition["Tags"]

    @property
    def zones(self) -> list:
        return self.network["AvailabilityZones"]

    @property
    def publicly_accessible(self) -> bool:
        return keyisset("PubliclyAccessible", self.instances)

    def set_zones(self, zones: list) -> None:
        """
        Overrides the availability zones, i.e. from the command line.
        """
        if not zones:
            return
        updated = merge_config(self.definition, {"Network": {"AvailabilityZones": zones}})
        validate_config(updated)
        self.definition = updated
        self.network = self.definition["Network"]
