# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
aurora_stack.rds parameters and logical names.

You can change the names *values* so you like so long as you keep it Alphanumerical [a-zA-Z0-9]
"""

from aurora_stack.common.cfn_params import Parameter

DB_SG_T = "DbSecurityGroup"
DBS_SUBNET_GROUP_T = "DbSubnetGroup"
DB_CLUSTER_T = "DbCluster"
DB_PRIMARY_INSTANCE_T = "DbPrimaryInstance"
DB_REPLICA_INSTANCE_T = "DbReplicaInstance"

PARAMETERS_GROUP_LABEL = "Database parameter groups"

CLUSTER_PARAMETER_GROUP_T = "DBClusterParameterGroupName"
CLUSTER_PARAMETER_GROUP = Parameter(
    CLUSTER_PARAMETER_GROUP_T,
    group_label=PARAMETERS_GROUP_LABEL,
    label="Cluster parameter group",
    Type="String",
    Description="Name of an existing DB Cluster parameter group for the Aurora PostgreSQL cluster",
)

PARAMETER_GROUP_T = "DBParameterGroupName"
PARAMETER_GROUP = Parameter(
    PARAMETER_GROUP_T,
    group_label=PARAMETERS_GROUP_LABEL,
    label="Instances parameter group",
    Type="String",
    Description="Name of an existing DB parameter group for the Aurora PostgreSQL instances",
)

DB_ENDPOINT_ADDRESS_T = "ClusterEndpoint"
DB_RO_ENDPOINT_ADDRESS_T = "ReaderEndpoint"
DB_SECRET_ARN_T = "DbSecretArn"

DB_ENDPOINT_ADDRESS = Parameter(
    DB_ENDPOINT_ADDRESS_T, return_value="Endpoint.Address", Type="String"
)
DB_RO_ENDPOINT_ADDRESS = Parameter(
    DB_RO_ENDPOINT_ADDRESS_T, return_value="ReadEndpoint.Address", Type="String"
)
DB_SECRET_ARN = Parameter(DB_SECRET_ARN_T, Type="String")
