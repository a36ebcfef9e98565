# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
RDS Aurora PostgreSQL template generator
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from troposphere import Template
    from troposphere.ec2 import VPC
    from troposphere.secretsmanager import Secret
    from aurora_stack.common.config import StackConfig

from compose_x_common.compose_x_common import keyisset, set_else_none
from troposphere import GetAtt, Ref, Sub
from troposphere.ec2 import SecurityGroup, SecurityGroupRule
from troposphere.rds import DBCluster, DBInstance, DBSubnetGroup

from aurora_stack.common.logging import LOG
from aurora_stack.common.outputs import StackOutputs
from aurora_stack.common.troposphere_tools import add_outputs, add_resource
from aurora_stack.rds.rds_params import (
    CLUSTER_PARAMETER_GROUP,
    DB_CLUSTER_T,
    DB_ENDPOINT_ADDRESS,
    DB_PRIMARY_INSTANCE_T,
    DB_REPLICA_INSTANCE_T,
    DB_RO_ENDPOINT_ADDRESS,
    DB_SECRET_ARN,
    DB_SG_T,
    DBS_SUBNET_GROUP_T,
    PARAMETER_GROUP,
)
from aurora_stack.secrets import define_secret_resolve
from aurora_stack.secrets.secrets_params import PASSWORD_KEY, USERNAME_KEY
from aurora_stack.vpc.vpc_template import define_zones


def create_db_subnet_group(template: Template, subnets: list) -> DBSubnetGroup:
    """
    Create the DB Subnet Group
    """
    group = DBSubnetGroup(
        DBS_SUBNET_GROUP_T,
        DBSubnetGroupDescription=Sub(
            "DB Subnet group for Aurora PostgreSQL in ${AWS::StackName}"
        ),
        SubnetIds=[Ref(subnet) for subnet in subnets],
    )
    return add_resource(template, group)


def add_db_sg(template: Template, vpc: VPC, config: StackConfig) -> SecurityGroup:
    """
    Function to add a Security group for the database, allowing the DB port from the configured CIDR

    :param troposphere.Template template: template to add the sg to
    :param VPC vpc: the VPC the SG belongs to
    :param StackConfig config: the stack configuration
    """
    port = config.ingress["Port"]
    sg = SecurityGroup(
        DB_SG_T,
        GroupDescription=Sub("${AWS::StackName} Aurora PostgreSQL access"),
        VpcId=Ref(vpc),
        SecurityGroupIngress=[
            SecurityGroupRule(
                IpProtocol="tcp",
                FromPort=port,
                ToPort=port,
                CidrIp=config.ingress["CidrIp"],
                Description=config.ingress["Description"],
            )
        ],
    )
    if config.ingress["CidrIp"] == "0.0.0.0/0":
        LOG.warning(f"{DB_SG_T} - Port {port} is open to 0.0.0.0/0")
    return add_resource(template, sg)


def add_db_cluster(
    template: Template,
    config: StackConfig,
    secret: Secret,
    sg: SecurityGroup,
    subnet_group: DBSubnetGroup,
) -> DBCluster:
    """
    Adds the Aurora DB Cluster. Credentials are resolved from the secret by CloudFormation.
    """
    props = {
        "Engine": config.cluster["Engine"],
        "Port": config.ingress["Port"],
        "MasterUsername": define_secret_resolve(secret, USERNAME_KEY),
        "MasterUserPassword": define_secret_resolve(secret, PASSWORD_KEY),
        "DBClusterParameterGroupName": Ref(CLUSTER_PARAMETER_GROUP),
        "VpcSecurityGroupIds": [Ref(sg)],
        "DBSubnetGroupName": Ref(subnet_group),
        "BackupRetentionPeriod": config.cluster["BackupRetentionPeriod"],
        "PreferredBackupWindow": config.cluster["PreferredBackupWindow"],
        "PreferredMaintenanceWindow": config.cluster["PreferredMaintenanceWindow"],
        "StorageEncrypted": keyisset("StorageEncrypted", config.cluster),
        "AvailabilityZones": define_zones(config.zones),
    }
    if keyisset("EngineVersion", config.cluster):
        props["EngineVersion"] = config.cluster["EngineVersion"]
    if keyisset("DatabaseName", config.cluster):
        props["DatabaseName"] = config.cluster["DatabaseName"]
    cluster = DBCluster(DB_CLUSTER_T, **props)
    return add_resource(template, cluster)


def add_db_instance(
    template: Template,
    title: str,
    cluster: DBCluster,
    config: StackConfig,
    availability_zone=None,
    identifier=None,
) -> DBInstance:
    """
    Adds a DB Instance to the Aurora cluster

    :param str title: logical name of the instance
    :param availability_zone: pins the instance to the zone when set
    :param identifier: explicit DBInstanceIdentifier
    """
    props = {
        "DBClusterIdentifier": Ref(cluster),
        "DBInstanceClass": config.instances["DBInstanceClass"],
        "Engine": config.cluster["Engine"],
        "PubliclyAccessible": config.publicly_accessible,
        "DBParameterGroupName": Ref(PARAMETER_GROUP),
    }
    if availability_zone is not None:
        props["AvailabilityZone"] = availability_zone
    if identifier is not None:
        props["DBInstanceIdentifier"] = identifier
    return add_resource(template, DBInstance(title, **props))


def add_db_instances(template: Template, cluster: DBCluster, config: StackConfig) -> tuple:
    """
    Adds the primary (writer) and the replica (reader) instances.
    The replica is pinned to the second availability zone and gets an explicit identifier.

    :return: primary, replica
    :rtype: tuple
    """
    primary = add_db_instance(template, DB_PRIMARY_INSTANCE_T, cluster, config)
    replica_identifier = set_else_none(
        "ReplicaIdentifier",
        config.instances,
        alt_value=Sub("${AWS::StackName}-replica"),
    )
    replica = add_db_instance(
        template,
        DB_REPLICA_INSTANCE_T,
        cluster,
        config,
        availability_zone=define_zones(config.zones)[1],
        identifier=replica_identifier,
    )
    replica.DependsOn = [primary.title]
    return primary, replica


def add_db_outputs(template: Template, cluster: DBCluster, secret: Secret) -> list:
    """
    Adds the write endpoint, read endpoint and secret outputs, exported for the applications to use.
    """
    outputs = StackOutputs(
        [
            (
                DB_ENDPOINT_ADDRESS,
                "Aurora PostgreSQL cluster write endpoint",
                GetAtt(cluster, DB_ENDPOINT_ADDRESS.return_value),
            ),
            (
                DB_RO_ENDPOINT_ADDRESS,
                "Aurora PostgreSQL cluster read endpoint",
                GetAtt(cluster, DB_RO_ENDPOINT_ADDRESS.return_value),
            ),
            (
                DB_SECRET_ARN,
                "ARN of the secret holding the master user credentials",
                Ref(secret),
            ),
        ]
    )
    add_outputs(template, outputs.outputs)
    return outputs.outputs
