# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Module for the AuroraStackSettings class
"""

from __future__ import annotations

from copy import deepcopy
from datetime import datetime as dt
from re import compile

import boto3
from compose_x_common.aws import validate_iam_role_arn
from compose_x_common.compose_x_common import keyisset, set_else_none

from aurora_stack.common import parse_parameter_overrides
from aurora_stack.common.aws import get_cross_role_session
from aurora_stack.common.config import StackConfig
from aurora_stack.common.logging import LOG
from aurora_stack.exceptions import InvalidParameterOverride

STACK_NAME_RE = compile(r"^[a-zA-Z][-a-zA-Z0-9]{0,127}$")


class AuroraStackSettings:
    """
    Class to handle the settings to use for Aurora Stack.

    :ivar boto3.session.Session session: the session to use for all API calls
    :ivar StackConfig config: the stack configuration
    :ivar dict parameter_overrides: the parameters values set from the command line
    """

    name_arg = "Name"
    command_arg = "command"
    region_arg = "RegionName"
    zones_arg = "Zones"
    arn_arg = "RoleArn"
    bucket_arg = "BucketName"
    config_file_arg = "ConfigFile"
    template_file_arg = "TemplateFile"
    output_dir_arg = "OutputDirectory"
    format_arg = "TemplateFormat"
    overrides_arg = "ParameterOverrides"
    validate_arg = "ValidateTemplate"
    no_wait_arg = "NoWait"
    lookup_family_arg = "LookupEngineFamily"
    disable_rollback_arg = "DisableRollback"

    render_arg = "render"
    lint_arg = "lint"
    deploy_arg = "deploy"
    plan_arg = "plan"
    outputs_arg = "outputs"
    delete_arg = "delete"

    default_format = "yaml"
    allowed_formats = ["json", "yaml"]
    default_output_dir = f"/tmp/aurora-stack/{dt.utcnow().strftime('%s')}"

    active_commands = [
        {
            "name": deploy_arg,
            "help": "Generates the CFN template (or uses --template-file), Creates/Updates the stack in CFN",
        },
        {
            "name": plan_arg,
            "help": "Creates a change-set to show the diff prior to a create or update",
        },
        {
            "name": render_arg,
            "help": "Generates the CFN template locally. --validate to validate it with CFN",
        },
    ]
    validation_commands = [
        {
            "name": lint_arg,
            "help": "Checks a template file for unresolved references and expected settings",
        }
    ]
    stack_commands = [
        {"name": outputs_arg, "help": "Prints the exported values of the stack"},
        {"name": delete_arg, "help": "Deletes the stack and all its resources"},
    ]
    neutral_commands = [{"name": "version", "help": "Aurora Stack Version"}]
    all_commands = active_commands + validation_commands + stack_commands + neutral_commands

    def __init__(
        self,
        config=None,
        profile_name=None,
        session=None,
        **kwargs,
    ):
        """
        Class to init the configuration

        :param StackConfig config: override the stack configuration instead of loading it from the config file
        :param str profile_name: Name of a profile configured in .aws/config
        :param boto3.session.Session session: The session to override the API calls with
        """
        self.command = set_else_none(self.command_arg, kwargs)
        if self.command and self.command not in [
            cmd["name"] for cmd in self.all_commands
        ]:
            raise ValueError(
                f"Command {self.command} is not valid. Must be one of",
                [cmd["name"] for cmd in self.all_commands],
            )
        self.session = boto3.session.Session()
        self.override_session(session, profile_name, kwargs)
        self.aws_region = (
            kwargs[self.region_arg]
            if keyisset(self.region_arg, kwargs)
            else self.session.region_name
        )
        self.name = set_else_none(self.name_arg, kwargs, alt_value="aurora-postgres")
        if not STACK_NAME_RE.match(self.name):
            raise ValueError(
                f"Stack name must match {STACK_NAME_RE.pattern}",
                self.name,
            )
        self.bucket_name = set_else_none(self.bucket_arg, kwargs)
        self.template_file = set_else_none(self.template_file_arg, kwargs)
        self.set_output_settings(kwargs)
        self.validate = keyisset(self.validate_arg, kwargs)
        self.wait = not keyisset(self.no_wait_arg, kwargs)
        self.lookup_family = keyisset(self.lookup_family_arg, kwargs)
        self.disable_rollback = keyisset(self.disable_rollback_arg, kwargs)
        self.deploy = self.command == self.deploy_arg
        self.plan = self.command == self.plan_arg
        self.upload = bool(self.bucket_name)

        if config is not None and not isinstance(config, StackConfig):
            raise TypeError("config must be of type", StackConfig, "Got", type(config))
        self.config = (
            deepcopy(config)
            if config is not None
            else StackConfig(file_path=set_else_none(self.config_file_arg, kwargs))
        )
        self.config.set_zones(set_else_none(self.zones_arg, kwargs, alt_value=[]))
        try:
            self.parameter_overrides = parse_parameter_overrides(
                set_else_none(self.overrides_arg, kwargs, alt_value=[])
            )
        except ValueError as error:
            raise InvalidParameterOverride(*error.args)
        LOG.debug(
            f"Settings {self.name} - region {self.aws_region}, format {self.format}, output {self.output_dir}"
        )

    def __repr__(self):
        return f"{self.name} ({self.command})"

    def set_output_settings(self, kwargs):
        """
        Method to set the output settings based on kwargs
        """
        self.format = self.default_format
        if (
            keyisset(self.format_arg, kwargs)
            and kwargs[self.format_arg] in self.allowed_formats
        ):
            self.format = kwargs[self.format_arg]

        self.output_dir = (
            kwargs[self.output_dir_arg]
            if keyisset(self.output_dir_arg, kwargs)
            else self.default_output_dir
        )

    def override_session(self, session, profile_name, kwargs):
        """
        Method to set the session based on input params

        :param boto3.session.Session session: The session to override the API calls with
        :param str profile_name: Name of a profile configured in .aws/config
        :param dict kwargs: CLI kwargs
        """
        if profile_name and not session:
            self.session = boto3.session.Session(profile_name=profile_name)
        elif session:
            self.session = session
        if keyisset(self.arn_arg, kwargs):
            validate_iam_role_arn(arn=kwargs[self.arn_arg])
            self.session = get_cross_role_session(
                self.session,
                kwargs[self.arn_arg],
                region_name=set_else_none(self.region_arg, kwargs),
                session_name=f"AuroraStack@{set_else_none(self.command_arg, kwargs, alt_value='cli')}",
            )
        elif keyisset(self.region_arg, kwargs) and not session:
            self.session = boto3.session.Session(
                profile_name=profile_name, region_name=kwargs[self.region_arg]
            )

