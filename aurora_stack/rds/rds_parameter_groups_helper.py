# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Helper to define the parameter groups names from engine name and version
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from boto3.session import Session

from botocore.exceptions import ClientError
from compose_x_common.aws import get_session
from compose_x_common.compose_x_common import keyisset

from aurora_stack.common.logging import LOG


def get_family_from_engine_version(engine_name: str, engine_version: str) -> str:
    """
    Returns the DB Parameter Group family for the engine, i.e. aurora-postgresql15 for aurora-postgresql@15.4

    :param str engine_name:
    :param str engine_version:
    :raises: ValueError if the version cannot be parsed
    """
    if not engine_name or not engine_version:
        raise ValueError("Engine and EngineVersion must be set", engine_name, engine_version)
    major = engine_version.split(".")[0]
    if not major.isdigit():
        raise ValueError(f"Invalid engine version {engine_version} for {engine_name}")
    if engine_name == "aurora-postgresql" and int(major) < 10:
        return f"{engine_name}{'.'.join(engine_version.split('.')[:2])}"
    return f"{engine_name}{major}"


def lookup_family_from_engine_version(
    engine_name: str, engine_version: str, session: Session = None
) -> Union[str, None]:
    """
    Get the engine family from engine name and version using the RDS API
    """
    session = get_session(session)
    client = session.client("rds")
    try:
        req = client.describe_db_engine_versions(
            Engine=engine_name, EngineVersion=engine_version
        )
    except ClientError as error:
        LOG.error(
            f"Failed to describe DB Engine Versions for {engine_name}@{engine_version}"
        )
        LOG.exception(error)
        return None

    if not keyisset("DBEngineVersions", req):
        raise LookupError(
            "Failed to get DB Engine version details for",
            engine_name,
            engine_version,
        )
    return req["DBEngineVersions"][0]["DBParameterGroupFamily"]


def define_default_parameter_groups(
    engine_name: str, engine_version: str, session: Session = None
) -> tuple:
    """
    Returns the names of the default cluster and instance parameter groups for the engine version,
    i.e. default.aurora-postgresql15. When a session is given, the family is looked up with the RDS API.

    :return: cluster parameter group name, instance parameter group name
    :rtype: tuple
    """
    family = None
    if session:
        family = lookup_family_from_engine_version(engine_name, engine_version, session)
    if not family:
        family = get_family_from_engine_version(engine_name, engine_version)
    default_name = f"default.{family}"
    LOG.debug(f"Default parameter groups for {engine_name}@{engine_version}: {default_name}")
    return default_name, default_name
