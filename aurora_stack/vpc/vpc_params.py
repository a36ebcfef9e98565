# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Logical names of the network resources.

You can change the names *values* so you like so long as you keep it Alphanumerical [a-zA-Z0-9]
"""

VPC_T = "Vpc"
SUBNETS_T = ["SubnetA", "SubnetB"]

IGW_T = "InternetGateway"
IGW_ATTACHMENT_T = "InternetGatewayAttachment"
PUBLIC_ROUTE_TABLE_T = "PublicRouteTable"
PUBLIC_DEFAULT_ROUTE_T = "PublicDefaultRoute"
SUBNET_ROUTE_TABLE_ASSOCIATION_T = "RouteTableAssociation"

DEFAULT_ROUTE_CIDR = "0.0.0.0/0"
