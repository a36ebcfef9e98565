#  -*- coding: utf-8 -*-
# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2021 John Mille <john@compose-x.io>

"""
Module for Secrets parameters
"""

DB_SECRET_T = "DbSecret"
SECRET_ATTACHMENT_SUFFIX = "SecretAttachment"

USERNAME_KEY = "username"
PASSWORD_KEY = "password"
