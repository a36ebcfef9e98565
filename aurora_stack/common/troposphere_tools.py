# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Helpers to build and fill troposphere templates.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from troposphere import AWSObject, Output

from troposphere import Parameter as CfnParameter
from troposphere import Template

from aurora_stack.common.cfn_params import Parameter
from aurora_stack.common.logging import LOG


def add_parameters(template: Template, parameters: list) -> None:
    """
    Function to add parameters to the template, skipping the ones already present

    :param troposphere.Template template: the template to add the parameters to
    :param list parameters: list of Parameter()
    """
    for param in parameters:
        if not isinstance(param, CfnParameter):
            raise TypeError("Expected a Parameter, got", type(param))
        if param.title in template.parameters:
            LOG.debug(f"Parameter {param.title} already in template")
            continue
        template.add_parameter(param)
    add_parameters_metadata(template)


def add_parameters_metadata(template: Template) -> None:
    """
    Groups the parameters per group_label into the CloudFormation console interface metadata
    """
    groups = {}
    labels = {}
    for param in template.parameters.values():
        if not isinstance(param, Parameter):
            continue
        groups.setdefault(param.group_label, []).append(param.title)
        if param.label:
            labels[param.title] = {"default": param.label}
    if not groups:
        return
    template.set_metadata(
        {
            "AWS::CloudFormation::Interface": {
                "ParameterGroups": [
                    {"Label": {"default": label}, "Parameters": titles}
                    for label, titles in groups.items()
                ],
                "ParameterLabels": labels,
            }
        }
    )


def add_resource(template: Template, resource: AWSObject, replace=False) -> AWSObject:
    """
    Function to add a resource to the template if it is not already present

    :param troposphere.Template template:
    :param resource: the troposphere resource
    :param bool replace: whether to replace an existing resource with the same title
    :return: the resource in the template
    """
    if resource.title not in template.resources:
        template.add_resource(resource)
    elif replace:
        LOG.debug(f"Replacing {resource.title} in template")
        template.resources[resource.title] = resource
    else:
        LOG.debug(f"Resource {resource.title} already in template")
    return template.resources[resource.title]


def add_outputs(template: Template, outputs: list) -> None:
    """
    Function to add outputs to the template, replacing the ones with the same title.

    :param troposphere.Template template:
    :param list[troposphere.Output] outputs:
    """
    for output in outputs:
        if output.title in template.outputs:
            template.outputs[output.title] = output
        else:
            template.add_output(output)


def build_template(description=None, parameters: list = None) -> Template:
    """
    Function to init a new template with the format version and description

    :param str description: the description of the template
    :param list parameters: optional list of parameters to add to the template
    :return: the new template
    :rtype: troposphere.Template
    """
    template = Template(Description=description if description else "Aurora Stack")
    template.set_version()
    if parameters:
        add_parameters(template, parameters)
    return template
