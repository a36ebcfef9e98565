#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Custom exceptions for aurora-stack
"""


class AuroraStackException(Exception):
    """
    Top class for Aurora Stack Exceptions
    """

    def __init__(self, msg, *args):
        super().__init__(msg, *args)


class TemplateLoadError(AuroraStackException):
    """
    Exception when a template document cannot be read or is not a CloudFormation template
    """


class InvalidConfiguration(AuroraStackException):
    """
    Exception when the stack configuration file does not match the schema
    """


class InvalidParameterOverride(AuroraStackException):
    """
    Exception when a parameter override is not key=value or names a parameter the template does not declare
    """


class StackOperationError(AuroraStackException):
    """
    Exception when CloudFormation reports the stack or change set in a failed state
    """
