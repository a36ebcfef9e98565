# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Main module generating the Aurora PostgreSQL CloudFormation template.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aurora_stack.common.settings import AuroraStackSettings

from troposphere import Template

from aurora_stack.common.cfn_params import Parameter
from aurora_stack.common.logging import LOG
from aurora_stack.common.tagging import add_all_tags
from aurora_stack.common.troposphere_tools import build_template
from aurora_stack.rds.rds_params import CLUSTER_PARAMETER_GROUP, PARAMETER_GROUP
from aurora_stack.rds.rds_parameter_groups_helper import (
    define_default_parameter_groups,
)
from aurora_stack.rds.rds_template import (
    add_db_cluster,
    add_db_instances,
    add_db_outputs,
    add_db_sg,
    create_db_subnet_group,
)
from aurora_stack.secrets import (
    add_db_dependency,
    add_db_secret,
    attach_to_secret_to_resource,
)
from aurora_stack.vpc.vpc_template import add_network

TEMPLATE_DESCRIPTION = "Aurora PostgreSQL cluster with a primary and a replica instance"


def define_parameter(parameter: Parameter, default: str = None) -> Parameter:
    """
    Returns a new Parameter with the same properties as the given one, and the Default when set.
    """
    props = dict(parameter.properties)
    if default:
        props["Default"] = default
    return Parameter(
        parameter.title,
        return_value=parameter.return_value,
        group_label=parameter.group_label,
        label=parameter.label,
        **props,
    )


def define_parameters(settings: AuroraStackSettings) -> list:
    """
    Returns the parameter groups parameters, with their Default from the configuration or from the engine version.
    """
    config = settings.config
    cluster_group, instance_group = None, None
    if config.cluster.get("EngineVersion"):
        cluster_group, instance_group = define_default_parameter_groups(
            config.cluster["Engine"],
            config.cluster["EngineVersion"],
            session=settings.session if settings.lookup_family else None,
        )
    cluster_group = config.parameter_groups.get(
        CLUSTER_PARAMETER_GROUP.title, cluster_group
    )
    instance_group = config.parameter_groups.get(PARAMETER_GROUP.title, instance_group)
    return [
        define_parameter(CLUSTER_PARAMETER_GROUP, cluster_group),
        define_parameter(PARAMETER_GROUP, instance_group),
    ]


def generate_full_template(settings: AuroraStackSettings) -> Template:
    """
    Function generating the Aurora stack template from the settings.

    :param AuroraStackSettings settings: The settings for the execution
    :return: the template
    :rtype: troposphere.Template
    """
    config = settings.config
    template = build_template(TEMPLATE_DESCRIPTION, define_parameters(settings))
    vpc, subnets = add_network(template, config)
    subnet_group = create_db_subnet_group(template, subnets)
    sg = add_db_sg(template, vpc, config)
    secret = add_db_secret(template, config)
    cluster = add_db_cluster(template, config, secret, sg, subnet_group)
    add_db_dependency(cluster, secret)
    attach_to_secret_to_resource(template, cluster, secret)
    add_db_instances(template, cluster, config)
    add_db_outputs(template, cluster, secret)
    add_all_tags(template, config.tags, stack_name=settings.name)
    LOG.info(
        f"{settings.name} - Generated template with {len(template.resources)} resources"
    )
    return template
