# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Adds the generic tags from the stack configuration to all the resources supporting AWS Tags from CFN.

When the stack is created with Tags, CloudFormation propagates these to the resources itself, but setting them
on the resources in the template keeps them when the template is deployed by other means.
"""

from __future__ import annotations

import copy

from troposphere import Tags, Template

from aurora_stack.common import NONALPHANUM
from aurora_stack.common.logging import LOG


def define_extended_tags(tags) -> Tags | None:
    """
    Function to generate the tags to be added to objects from the configuration Tags

    :param tags: tags as defined in the configuration file
    :type tags: list or dict
    :return: Tags() or None
    :rtype: troposphere.Tags or None
    """
    tags_keys = ["Key", "Value"]
    rendered_tags = []
    if isinstance(tags, list):
        for tag in tags:
            if not isinstance(tag, dict):
                raise TypeError("Tags must be of type", dict)
            elif not set(tag.keys()) == set(tags_keys):
                raise KeyError("Keys for tags must be", "Key", "Value")
            rendered_tags.append({tag["Key"]: str(tag["Value"])})
    elif isinstance(tags, dict):
        for key, value in tags.items():
            rendered_tags.append({key: str(value)})
    elif tags is not None:
        raise TypeError("Tags must be one of", [list, dict], "Got", type(tags))
    if rendered_tags:
        return Tags(*rendered_tags)
    return None


def merge_tags_lists(x_data, y_data):
    x_keys = [x["Key"] for x in x_data]
    result = [{a["Key"]: a["Value"]} for a in x_data]
    for count, tag in enumerate(y_data):
        if tag["Key"] not in x_keys:
            result.append({y_data[count]["Key"]: y_data[count]["Value"]})
    return result


def add_object_tags(obj, tags: Tags) -> None:
    """
    Function to add tags to the object if the object supports it.
    Tags already set on the object take precedence.

    :param obj: Troposphere object to add the tags to
    :param troposphere.Tags tags: list of tags to add
    """
    if tags is None:
        return
    clean_tags = copy.deepcopy(tags)
    if hasattr(obj, "props") and "Tags" not in obj.props:
        LOG.debug(f"Item {obj.title} - {obj.resource_type} does not support tags")
        return
    if hasattr(obj, "Tags") and isinstance(getattr(obj, "Tags"), Tags):
        existing_tags = getattr(obj, "Tags").to_dict()
        new_tags = clean_tags.to_dict()
        result = merge_tags_lists(existing_tags, new_tags)
        setattr(obj, "Tags", Tags(*result))
    elif not hasattr(obj, "Tags"):
        LOG.debug(f"No existing tags. Adding tags to {obj.title}")
        setattr(obj, "Tags", clean_tags)


def default_tags() -> Tags:
    return Tags(CreatedByAuroraStack="true")


def name_tag(stack_name: str, resource_title: str) -> Tags:
    """
    Returns the Name tag for a resource of the stack, i.e. mydb-DbSecurityGroup
    """
    return Tags(Name=f"{NONALPHANUM.sub('-', stack_name)}-{resource_title}")


def add_all_tags(template: Template, tags=None, stack_name: str = None) -> None:
    """
    Function to go through all the resources of the template and add the tags.

    :param troposphere.Template template: the template to iterate over the resources.
    :param tags: Tags as defined in the configuration
    :param str stack_name: when set, each resource also gets a Name tag
    """
    xtags = define_extended_tags(tags)
    xtags = xtags + default_tags() if xtags else default_tags()
    for resource in template.resources.values():
        if stack_name:
            add_object_tags(resource, name_tag(stack_name, resource.title))
        add_object_tags(resource, xtags)
