#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Tests for the Aurora stack template generation
"""

import json

import boto3
import pytest
from troposphere import Template

from aurora_stack.aurora_stack import generate_full_template
from aurora_stack.common.config import StackConfig
from aurora_stack.common.settings import AuroraStackSettings
from aurora_stack.rds.rds_parameter_groups_helper import (
    define_default_parameter_groups,
    get_family_from_engine_version,
)
from aurora_stack.secrets import attach_to_secret_to_resource
from aurora_stack.template.lint import lint_document
from aurora_stack.vpc.vpc_template import define_zones, validate_subnets_cidrs


def create_settings(config=None, **kwargs):
    kwargs.update({AuroraStackSettings.command_arg: "render"})
    return AuroraStackSettings(
        config=config if config else StackConfig(),
        session=boto3.session.Session(region_name="eu-west-1"),
        **kwargs,
    )


@pytest.fixture
def default_document():
    settings = create_settings(**{AuroraStackSettings.name_arg: "test"})
    return generate_full_template(settings).to_dict()


def test_default_resources(default_document):
    resources = default_document["Resources"]
    expected = {
        "Vpc": "AWS::EC2::VPC",
        "SubnetA": "AWS::EC2::Subnet",
        "SubnetB": "AWS::EC2::Subnet",
        "DbSubnetGroup": "AWS::RDS::DBSubnetGroup",
        "DbSecurityGroup": "AWS::EC2::SecurityGroup",
        "DbSecret": "AWS::SecretsManager::Secret",
        "DbCluster": "AWS::RDS::DBCluster",
        "DbPrimaryInstance": "AWS::RDS::DBInstance",
        "DbReplicaInstance": "AWS::RDS::DBInstance",
        "DbClusterSecretAttachment": "AWS::SecretsManager::SecretTargetAttachment",
        "InternetGateway": "AWS::EC2::InternetGateway",
        "PublicRouteTable": "AWS::EC2::RouteTable",
    }
    for name, resource_type in expected.items():
        assert resources[name]["Type"] == resource_type
    assert default_document["AWSTemplateFormatVersion"] == "2010-09-09"
    assert "Description" in default_document


def test_default_literals(default_document):
    resources = default_document["Resources"]
    assert resources["Vpc"]["Properties"]["CidrBlock"] == "10.0.0.0/16"
    assert resources["Vpc"]["Properties"]["EnableDnsSupport"] is True
    assert resources["SubnetA"]["Properties"]["CidrBlock"] == "10.0.1.0/24"
    assert resources["SubnetB"]["Properties"]["CidrBlock"] == "10.0.2.0/24"
    assert resources["SubnetA"]["Properties"]["VpcId"] == {"Ref": "Vpc"}

    rule = resources["DbSecurityGroup"]["Properties"]["SecurityGroupIngress"][0]
    assert rule["IpProtocol"] == "tcp"
    assert rule["FromPort"] == 5432
    assert rule["ToPort"] == 5432
    assert rule["CidrIp"] == "0.0.0.0/0"

    generate = resources["DbSecret"]["Properties"]["GenerateSecretString"]
    assert json.loads(generate["SecretStringTemplate"]) == {"username": "postgres"}
    assert generate["GenerateStringKey"] == "password"
    assert generate["PasswordLength"] == 16
    assert generate["ExcludeCharacters"] == "\"/\\'@"


def test_cluster_properties(default_document):
    resources = default_document["Resources"]
    cluster = resources["DbCluster"]["Properties"]
    assert cluster["Engine"] == "aurora-postgresql"
    assert cluster["EngineVersion"] == "15.4"
    assert cluster["StorageEncrypted"] is True
    assert cluster["BackupRetentionPeriod"] == 7
    assert cluster["PreferredBackupWindow"] == "01:00-02:00"
    assert cluster["PreferredMaintenanceWindow"] == "mon:03:00-mon:04:00"
    assert cluster["DBClusterParameterGroupName"] == {
        "Ref": "DBClusterParameterGroupName"
    }
    assert cluster["VpcSecurityGroupIds"] == [{"Ref": "DbSecurityGroup"}]
    assert cluster["DBSubnetGroupName"] == {"Ref": "DbSubnetGroup"}
    assert cluster["MasterUsername"] == {
        "Fn::Sub": "{{resolve:secretsmanager:${DbSecret}:SecretString:username}}"
    }
    assert cluster["MasterUserPassword"] == {
        "Fn::Sub": "{{resolve:secretsmanager:${DbSecret}:SecretString:password}}"
    }
    assert cluster["AvailabilityZones"][0] == {
        "Fn::Select": [0, {"Fn::GetAZs": ""}]
    }
    assert "DbSecret" in resources["DbCluster"]["DependsOn"]
    assert resources["DbSubnetGroup"]["Properties"]["SubnetIds"] == [
        {"Ref": "SubnetA"},
        {"Ref": "SubnetB"},
    ]


def test_instances(default_document):
    resources = default_document["Resources"]
    primary = resources["DbPrimaryInstance"]["Properties"]
    replica = resources["DbReplicaInstance"]["Properties"]
    for instance in [primary, replica]:
        assert instance["DBClusterIdentifier"] == {"Ref": "DbCluster"}
        assert instance["DBInstanceClass"] == "db.t3.medium"
        assert instance["Engine"] == "aurora-postgresql"
        assert instance["PubliclyAccessible"] is True
        assert instance["DBParameterGroupName"] == {"Ref": "DBParameterGroupName"}
    assert "AvailabilityZone" not in primary
    assert replica["AvailabilityZone"] == {"Fn::Select": [1, {"Fn::GetAZs": ""}]}
    assert replica["DBInstanceIdentifier"] == {"Fn::Sub": "${AWS::StackName}-replica"}
    assert resources["DbReplicaInstance"]["DependsOn"] == ["DbPrimaryInstance"]


def test_parameters_and_outputs(default_document):
    parameters = default_document["Parameters"]
    for name in ["DBClusterParameterGroupName", "DBParameterGroupName"]:
        assert parameters[name]["Type"] == "String"
        assert parameters[name]["Description"]
        assert parameters[name]["Default"] == "default.aurora-postgresql15"
    outputs = default_document["Outputs"]
    assert outputs["ClusterEndpoint"]["Value"] == {
        "Fn::GetAtt": ["DbCluster", "Endpoint.Address"]
    }
    assert outputs["ReaderEndpoint"]["Value"] == {
        "Fn::GetAtt": ["DbCluster", "ReadEndpoint.Address"]
    }
    assert outputs["DbSecretArn"]["Value"] == {"Ref": "DbSecret"}
    for output in outputs.values():
        assert output["Description"]
    assert outputs["DbSecretArn"]["Export"]["Name"] == {
        "Fn::Sub": "${AWS::StackName}::DbSecretArn"
    }


def test_tags(default_document):
    resources = default_document["Resources"]
    vpc_tags = {tag["Key"]: tag["Value"] for tag in resources["Vpc"]["Properties"]["Tags"]}
    assert vpc_tags["Name"] == "test-Vpc"
    assert vpc_tags["CreatedByAuroraStack"] == "true"
    assert "Tags" not in resources["DbClusterSecretAttachment"]["Properties"]


def test_generated_template_lints_clean(default_document):
    report = lint_document(default_document)
    assert report.ok, report.render()


def test_custom_template(use_cases, monkeypatch):
    monkeypatch.setenv("DB_USERNAME", "appadmin")
    config = StackConfig(file_path=f"{use_cases}/custom.yml")
    settings = create_settings(config=config, **{AuroraStackSettings.name_arg: "app-db"})
    template = generate_full_template(settings)
    assert isinstance(template, Template)
    document = template.to_dict()
    resources = document["Resources"]
    assert "InternetGateway" not in resources
    assert "SubnetARouteTableAssociation" not in resources
    assert resources["SubnetA"]["Properties"]["AvailabilityZone"] == "eu-west-1a"
    assert resources["DbReplicaInstance"]["Properties"]["AvailabilityZone"] == "eu-west-1b"
    assert resources["DbReplicaInstance"]["Properties"]["DBInstanceIdentifier"] == "appdb-replica"
    assert resources["DbPrimaryInstance"]["Properties"]["PubliclyAccessible"] is False
    assert resources["DbCluster"]["Properties"]["DatabaseName"] == "appdb"
    assert resources["DbCluster"]["Properties"]["Port"] == 5433
    parameters = document["Parameters"]
    assert parameters["DBClusterParameterGroupName"]["Default"] == "app-cluster-params"
    assert parameters["DBParameterGroupName"]["Default"] == "default.aurora-postgresql14"
    secret = resources["DbSecret"]["Properties"]["GenerateSecretString"]
    assert json.loads(secret["SecretStringTemplate"]) == {"username": "appadmin"}
    tags = {tag["Key"]: tag["Value"] for tag in resources["DbCluster"]["Properties"]["Tags"]}
    assert tags["CostCenter"] == "1234"
    assert tags["Name"] == "app-db-DbCluster"

    report = lint_document(document, config)
    assert report.ok, report.render()
    assert not lint_document(document).ok


def test_parameters_defaults_are_not_shared():
    first = generate_full_template(
        create_settings(
            config=StackConfig(
                content={"ParameterGroups": {"DBParameterGroupName": "custom"}}
            )
        )
    )
    second = generate_full_template(create_settings())
    assert first.parameters["DBParameterGroupName"].Default == "custom"
    assert second.parameters["DBParameterGroupName"].Default == "default.aurora-postgresql15"


def test_overlapping_subnets(use_cases):
    config = StackConfig(file_path=f"{use_cases}/overlapping_subnets.yml")
    with pytest.raises(ValueError):
        generate_full_template(create_settings(config=config))
    with pytest.raises(ValueError):
        validate_subnets_cidrs("10.0.0.0/16", ["10.1.0.0/24", "10.0.2.0/24"])


def test_define_zones():
    assert define_zones(["eu-west-1a", "eu-west-1b", "eu-west-1c"]) == [
        "eu-west-1a",
        "eu-west-1b",
    ]
    assert len(define_zones([])) == 2
    with pytest.raises(ValueError):
        define_zones(["eu-west-1a"])


def test_engine_family():
    assert get_family_from_engine_version("aurora-postgresql", "15.4") == "aurora-postgresql15"
    assert get_family_from_engine_version("aurora-postgresql", "9.6.22") == "aurora-postgresql9.6"
    with pytest.raises(ValueError):
        get_family_from_engine_version("aurora-postgresql", "latest")
    assert define_default_parameter_groups("aurora-postgresql", "13.7") == (
        "default.aurora-postgresql13",
        "default.aurora-postgresql13",
    )


def test_engine_family_lookup(placebo_session):
    session = placebo_session("engine_family")
    assert define_default_parameter_groups(
        "aurora-postgresql", "15.4", session=session
    ) == ("default.aurora-postgresql15", "default.aurora-postgresql15")


def test_attach_secret_wrong_type():
    template = Template()
    with pytest.raises(TypeError):
        attach_to_secret_to_resource(template, template, None)
