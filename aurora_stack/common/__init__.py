# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Most commonly used functions shared across all modules.
"""

from __future__ import annotations

import re
from datetime import datetime as dt
from uuid import uuid4

FILE_PREFIX = f'{dt.utcnow().strftime("%Y/%m/%d/%H%M")}/{str(uuid4().hex)[:6]}'
NONALPHANUM = re.compile(r"([^a-zA-Z\d]+)")


def parse_parameter_overrides(overrides) -> dict:
    """
    Function to parse the key=value parameter overrides given on the command line

    :param list overrides: list of key=value strings
    :return: the parameters values mapping
    :rtype: dict
    :raises: ValueError if an override is not key=value
    """
    parameters = {}
    if not overrides:
        return parameters
    if isinstance(overrides, str):
        overrides = [overrides]
    for override in overrides:
        if not isinstance(override, str) or "=" not in override:
            raise ValueError(
                "Parameter overrides must be of the form key=value. Got", override
            )
        key, value = override.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Parameter override has an empty key", override)
        parameters[key] = value
    return parameters
