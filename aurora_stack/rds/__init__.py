# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Package to create the Aurora PostgreSQL DB Cluster, its instances and access control.
"""
