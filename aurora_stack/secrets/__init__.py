#  -*- coding: utf-8 -*-
# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2021 John Mille <john@compose-x.io>

"""
Package to handle the DB credentials secret
"""

from __future__ import annotations

from json import dumps
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from troposphere import Template
    from aurora_stack.common.config import StackConfig

from troposphere import Ref, Sub
from troposphere.rds import DBCluster, DBInstance
from troposphere.secretsmanager import (
    GenerateSecretString,
    Secret,
    SecretTargetAttachment,
)

from aurora_stack.common.troposphere_tools import add_resource
from aurora_stack.secrets.secrets_params import (
    DB_SECRET_T,
    PASSWORD_KEY,
    SECRET_ATTACHMENT_SUFFIX,
    USERNAME_KEY,
)


def add_db_secret(template: Template, config: StackConfig) -> Secret:
    """
    Function to add a Secrets Manager secret that will be associated with the DB.
    The username is fixed from the configuration, the password is generated by Secrets Manager.

    :param template.Template template: The template to add the secret to.
    :param StackConfig config: the stack configuration
    """
    secret = Secret(
        DB_SECRET_T,
        Description=Sub(f"{config.secret['Description']} - ${{AWS::StackName}}"),
        GenerateSecretString=GenerateSecretString(
            SecretStringTemplate=dumps({USERNAME_KEY: config.secret["Username"]}),
            GenerateStringKey=PASSWORD_KEY,
            PasswordLength=config.secret["PasswordLength"],
            ExcludeCharacters=config.secret["ExcludeCharacters"],
        ),
    )
    return add_resource(template, secret)


def define_secret_resolve(secret: Secret, key: str) -> Sub:
    """
    Returns the dynamic reference to a key of the secret, resolved by CloudFormation at deploy time.

    :param Secret secret:
    :param str key: the JSON key in the SecretString, i.e. username
    :rtype: troposphere.Sub
    """
    return Sub(
        f"{{{{resolve:secretsmanager:${{{secret.title}}}:SecretString:{key}}}}}"
    )


def add_db_dependency(resource, secret: Secret) -> None:
    if hasattr(resource, "DependsOn") and secret.title not in resource.DependsOn:
        resource.DependsOn.append(secret.title)
    elif not hasattr(resource, "DependsOn"):
        setattr(resource, "DependsOn", [secret.title])


def attach_to_secret_to_resource(template: Template, resource, secret: Secret):
    """
    Function to associate a secret to a resource. Secrets Manager then adds the connection details
    of the resource (host, port, engine) to the secret.

    :param troposphere.Template template:
    :param resource: The resource we can link the secret to.
    :param secret: The secret to attach to the resource
    :return: the attachment
    """
    if not isinstance(resource, (DBCluster, DBInstance)):
        raise TypeError(
            "The resource to attach can only be one of ",
            (DBCluster, DBInstance),
            "Got",
            type(resource),
        )
    return add_resource(
        template,
        SecretTargetAttachment(
            f"{resource.title}{SECRET_ATTACHMENT_SUFFIX}",
            DependsOn=[resource.title, secret.title],
            TargetType=resource.resource_type,
            SecretId=Ref(secret),
            TargetId=Ref(resource),
        ),
    )
