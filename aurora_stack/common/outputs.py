#  -*- coding: utf-8 -*-
# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2021 John Mille <john@compose-x.io>

"""
Functions to format CFN template Outputs
"""

from os import environ

from troposphere import AWS_STACK_NAME, AWSHelperFn, Export, Output, Sub

from aurora_stack.common.cfn_params import Parameter

CFN_EXPORT_DELIMITER = environ.get("AURORA_STACK_EXPORTS_SEPARATOR", r"::")


def validate(value):
    """
    Method to validate the input
    :raises: ValueError
    """
    if not len(value) == 3:
        raise ValueError(
            "Output argument expects Name, Description, Value. Only got", len(value)
        )
    if not isinstance(value[0], (Parameter, str)):
        raise TypeError("Name should be of type", str, Parameter, "Got", type(value[0]))
    if not isinstance(value[1], str):
        raise TypeError("Description should be of type", str, "Got", type(value[1]))

    valid_type = issubclass(type(value[2]), AWSHelperFn)
    if not (valid_type or isinstance(value[2], (str, int))):
        raise TypeError("Value type is", type(value[2]), "Expected", str, AWSHelperFn)


class StackOutputs(object):
    """
    Class to make the output easier.
    Each value is a tuple of (name, description, value). The name is also the last part of the export name,
    ${AWS::StackName}::<name>
    """

    delim = CFN_EXPORT_DELIMITER
    stack_string_base = f"${{{AWS_STACK_NAME}}}{delim}"

    def __init__(self, values, export=True):
        """
        Initialize the output class.

        :param list values: list of (name, description, value) tuples
        :param bool export: Whether the outputs are exported for other stacks to import
        """
        if not isinstance(values, list):
            raise TypeError("values must be of type", list)
        self.values = values
        self.outputs = []

        for value in self.values:
            if not isinstance(value, tuple):
                raise TypeError(
                    "All values should be a tuple of (str, str, value). Got",
                    type(value),
                )
            validate(value)
            output_name = (
                value[0] if not isinstance(value[0], Parameter) else value[0].title
            )
            output = Output(output_name, Description=value[1], Value=value[2])
            if export:
                output.Export = Export(Sub(f"{self.stack_string_base}{output_name}"))
            self.outputs.append(output)
