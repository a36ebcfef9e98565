# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Functions to add the VPC, subnets and public routing to the template.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from troposphere import Template
    from aurora_stack.common.config import StackConfig

from ipaddress import IPv4Network

from troposphere import GetAZs, Ref, Select
from troposphere.ec2 import (
    VPC,
    InternetGateway,
    Route,
    RouteTable,
    Subnet,
    SubnetRouteTableAssociation,
    VPCGatewayAttachment,
)

from aurora_stack.common.logging import LOG
from aurora_stack.common.troposphere_tools import add_resource
from aurora_stack.vpc.vpc_params import (
    DEFAULT_ROUTE_CIDR,
    IGW_ATTACHMENT_T,
    IGW_T,
    PUBLIC_DEFAULT_ROUTE_T,
    PUBLIC_ROUTE_TABLE_T,
    SUBNET_ROUTE_TABLE_ASSOCIATION_T,
    SUBNETS_T,
    VPC_T,
)


def define_zones(zones: list, count: int = 2) -> list:
    """
    Returns the availability zones to use for the subnets and DB instances.
    Without zones set, picks the first ones of the region with Fn::GetAZs

    :param list zones: AZ names as set in the configuration
    :param int count: how many zones to return
    :return: list of str or Fn::Select
    """
    if zones:
        if len(zones) < count:
            raise ValueError(f"At least {count} availability zones are needed. Got", zones)
        return zones[:count]
    return [Select(index, GetAZs("")) for index in range(count)]


def validate_subnets_cidrs(vpc_cidr: str, subnets: list) -> None:
    """
    Checks that the subnets are within the VPC CIDR and do not overlap each other

    :raises: ValueError
    """
    vpc_net = IPv4Network(vpc_cidr, strict=False)
    networks = []
    for subnet_cidr in subnets:
        subnet_net = IPv4Network(subnet_cidr, strict=False)
        if not subnet_net.subnet_of(vpc_net):
            raise ValueError(f"Subnet {subnet_cidr} is not within VPC CIDR {vpc_cidr}")
        for other in networks:
            if subnet_net.overlaps(other):
                raise ValueError(f"Subnet {subnet_cidr} overlaps with {other}")
        networks.append(subnet_net)


def add_vpc(template: Template, config: StackConfig) -> VPC:
    """
    Adds the VPC with DNS resolution settings

    :param troposphere.Template template:
    :param StackConfig config:
    :return: the VPC
    """
    return add_resource(
        template,
        VPC(
            VPC_T,
            CidrBlock=config.network["VpcCidr"],
            EnableDnsSupport=config.network["EnableDnsSupport"],
            EnableDnsHostnames=config.network["EnableDnsHostnames"],
        ),
    )


def add_subnets(template: Template, vpc: VPC, config: StackConfig) -> list:
    """
    Adds one subnet per CIDR and availability zone

    :return: the list of subnets
    :rtype: list[troposphere.ec2.Subnet]
    """
    validate_subnets_cidrs(config.network["VpcCidr"], config.network["Subnets"])
    zones = define_zones(config.zones, len(SUBNETS_T))
    subnets = []
    for title, cidr, zone in zip(SUBNETS_T, config.network["Subnets"], zones):
        subnets.append(
            add_resource(
                template,
                Subnet(
                    title,
                    VpcId=Ref(vpc),
                    CidrBlock=cidr,
                    AvailabilityZone=zone,
                    MapPublicIpOnLaunch=config.network["MapPublicIpOnLaunch"],
                ),
            )
        )
    return subnets


def add_public_routing(template: Template, vpc: VPC, subnets: list) -> RouteTable:
    """
    Adds the Internet Gateway and the route table to make the subnets public.
    RDS cannot create publicly accessible instances in a VPC without an Internet Gateway.
    """
    igw = add_resource(template, InternetGateway(IGW_T))
    attachment = add_resource(
        template,
        VPCGatewayAttachment(
            IGW_ATTACHMENT_T, VpcId=Ref(vpc), InternetGatewayId=Ref(igw)
        ),
    )
    route_table = add_resource(template, RouteTable(PUBLIC_ROUTE_TABLE_T, VpcId=Ref(vpc)))
    add_resource(
        template,
        Route(
            PUBLIC_DEFAULT_ROUTE_T,
            DependsOn=[attachment.title],
            RouteTableId=Ref(route_table),
            DestinationCidrBlock=DEFAULT_ROUTE_CIDR,
            GatewayId=Ref(igw),
        ),
    )
    for subnet in subnets:
        add_resource(
            template,
            SubnetRouteTableAssociation(
                f"{subnet.title}{SUBNET_ROUTE_TABLE_ASSOCIATION_T}",
                RouteTableId=Ref(route_table),
                SubnetId=Ref(subnet),
            ),
        )
    LOG.debug(f"Added public routing for {[subnet.title for subnet in subnets]}")
    return route_table


def add_network(template: Template, config: StackConfig) -> tuple:
    """
    Adds the network for the database: VPC, subnets and public routing when instances are public

    :return: the VPC and the list of subnets
    :rtype: tuple
    """
    vpc = add_vpc(template, config)
    subnets = add_subnets(template, vpc, config)
    if config.publicly_accessible:
        add_public_routing(template, vpc, subnets)
    return vpc, subnets
