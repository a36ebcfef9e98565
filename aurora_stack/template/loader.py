# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Functions to load and dump CloudFormation template documents, in JSON or YAML.
YAML documents can use the CloudFormation short form tags (!Ref, !GetAtt, !Sub etc.),
which are loaded into their long form (Ref, Fn::GetAtt, Fn::Sub).
"""

from __future__ import annotations

from typing import Union

import cfn_flip
from cfn_tools.odict import ODict
from troposphere import Template

from aurora_stack.common.logging import LOG
from aurora_stack.exceptions import TemplateLoadError

JSON_FORMAT = "json"
YAML_FORMAT = "yaml"
SUPPORTED_FORMATS = [JSON_FORMAT, YAML_FORMAT]


def to_builtin(data):
    """
    Recursively converts the ordered mappings of the loaded document to plain dict and list
    """
    if isinstance(data, dict):
        return {key: to_builtin(value) for key, value in data.items()}
    elif isinstance(data, (list, tuple)):
        return [to_builtin(value) for value in data]
    return data


def to_odict(data):
    """
    Recursively converts the mappings to cfn-flip ODict, which the YAML dumper needs
    to keep the keys order and write the intrinsic functions in short form.
    """
    if isinstance(data, dict):
        return ODict([(key, to_odict(value)) for key, value in data.items()])
    elif isinstance(data, (list, tuple)):
        return [to_odict(value) for value in data]
    return data


def validate_document(document) -> None:
    """
    Checks that the loaded document has the shape of a CloudFormation template

    :raises: TemplateLoadError
    """
    if not isinstance(document, dict):
        raise TemplateLoadError(
            "Template document must be a mapping. Got", type(document)
        )
    if "Resources" not in document:
        raise TemplateLoadError("Template document has no Resources section")
    for section in ["Resources", "Parameters", "Outputs", "Conditions"]:
        if section in document and not isinstance(document[section], dict):
            raise TemplateLoadError(
                f"Template section {section} must be a mapping. Got",
                type(document[section]),
            )


def loads_document(content: str) -> tuple:
    """
    Parses the template content, JSON or YAML.

    :param str content: the template body
    :return: the document and the format it was found in
    :rtype: tuple
    :raises: TemplateLoadError
    """
    if not isinstance(content, str):
        raise TypeError("content must be of type", str, "Got", type(content))
    try:
        document, file_format = cfn_flip.load(content)
    except ValueError as error:
        raise TemplateLoadError("Template is neither valid JSON nor YAML", str(error))
    validate_document(document)
    return to_builtin(document), file_format


def load_document(file_path: str) -> tuple:
    """
    Reads and parses a template file.

    :param str file_path: path to the template file
    :return: the document and the format it was found in
    :rtype: tuple
    :raises: TemplateLoadError
    """
    try:
        with open(file_path, "r") as template_fd:
            content = template_fd.read()
    except OSError as error:
        raise TemplateLoadError(f"Unable to read template {file_path}", str(error))
    document, file_format = loads_document(content)
    LOG.debug(f"Loaded {file_path} as {file_format}")
    return document, file_format


def dumps_document(document: Union[dict, Template], file_format: str = YAML_FORMAT) -> str:
    """
    Serializes the document. YAML output uses the short form tags.

    :param document: the template document or troposphere Template
    :param str file_format: json or yaml
    :rtype: str
    """
    if file_format not in SUPPORTED_FORMATS:
        raise ValueError(f"Format {file_format} not supported. Must be one of", SUPPORTED_FORMATS)
    if isinstance(document, Template):
        document = document.to_dict()
    if file_format == JSON_FORMAT:
        return cfn_flip.dump_json(document)
    return cfn_flip.dump_yaml(to_odict(document), clean_up=False, long_form=False)


def round_trip(content: str, file_format: str = None) -> str:
    """
    Loads the content and serializes it again, by default in the format it was written in.
    """
    document, found_format = loads_document(content)
    return dumps_document(document, file_format if file_format else found_format)


def is_idempotent(content: str, file_format: str = None) -> bool:
    """
    Checks that re-reading and re-serializing the document changes neither its data nor its text.

    :param str content: the template body
    :param str file_format: output format, defaults to the input format
    :rtype: bool
    """
    original, found_format = loads_document(content)
    file_format = file_format if file_format else found_format
    first_pass = dumps_document(original, file_format)
    reloaded, _ = loads_document(first_pass)
    second_pass = dumps_document(reloaded, file_format)
    if reloaded != original:
        LOG.warning("Template data changed after re-reading the serialized document")
        return False
    if first_pass != second_pass:
        LOG.warning("Template text changed after a second serialization")
        return False
    return True
