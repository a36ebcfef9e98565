#  -*- coding: utf-8 -*-
# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2021 John Mille <john@compose-x.io>

"""
Environment variables interpolation for the stack configuration files.

Supports $VAR, ${VAR}, ${VAR:-default} (default when unset or empty) and ${VAR:+alt} (alt when set).
CloudFormation pseudo parameters such as ${AWS::Region} are left untouched, as are escaped \\${VAR}.
"""

import os
import re

SPECIAL_INTERPOLATION = r"(?<!\\)(\$(\{(((?!AWS::)[^}]+)(\:[+-]{1}))([^}]+)\}))"
IF_UNDEFINED = r":-"
IF_DEFINED = r":+"


def expandvars(content: str, default=None, skip_escaped=True) -> str:
    """
    Expand environment variables in the content.
    Unknown variables are set to `default`. If `default` is None, they are left unchanged.

    :param str content: the text to interpolate
    :param str default: value for undefined variables
    :param bool skip_escaped: when True, variables preceded by a backslash are not expanded
    :return: the interpolated content
    """

    def replace_var(match):
        if re.match(SPECIAL_INTERPOLATION, match.group(0)):
            groups = re.findall(SPECIAL_INTERPOLATION, match.group(0))
            var_name, operator, alternative = groups[0][-3], groups[0][-2], groups[0][-1]
            if operator == IF_UNDEFINED:
                return os.environ.get(var_name) or expandvars(
                    alternative, default, skip_escaped
                )
            elif operator == IF_DEFINED:
                return (
                    expandvars(alternative, default, skip_escaped)
                    if os.environ.get(var_name)
                    else ""
                )
        return os.environ.get(
            match.group(2) or match.group(1),
            match.group(0) if default is None else default,
        )

    re_string = (r"(?<!\\)" if skip_escaped else "") + r"\$(\w+|\{(?!AWS::)([^}]*)\})"
    return re.sub(re_string, replace_var, content)
