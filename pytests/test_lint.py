#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

from copy import deepcopy
from os import path

import pytest

from aurora_stack.common.config import StackConfig
from aurora_stack.template.lint import (
    Finding,
    LintReport,
    check_ingress,
    check_references,
    check_secret_generation,
    check_serialization,
    check_structure,
    find_references,
    lint_document,
)
from aurora_stack.template.loader import load_document

HERE = path.abspath(path.dirname(__file__))


@pytest.fixture
def document():
    return load_document(f"{HERE}/templates/short_form.yml")[0]


@pytest.fixture
def broken_document():
    return load_document(f"{HERE}/templates/broken_references.json")[0]


def test_short_form_template_is_clean(document):
    report = lint_document(document)
    assert report.ok
    assert report.render() == "No findings"
    targets = [reference.target for reference in find_references(document)]
    assert "DbSecret" in targets
    assert "DBParameterGroupName" in targets
    assert "AWS::StackName" in targets


def test_unresolved_references(broken_document):
    findings = check_references(broken_document)
    unresolved = sorted(finding.message.split(" to ")[1].split(" ")[0] for finding in findings)
    assert unresolved == sorted(
        ["Stage", "Gateway", "IsDev", "Missing", "Network", "Other", "DbCluster", "IsQa", "Db"]
    )
    assert (
        Finding(
            "references",
            "Resources.DbSecurityGroup.Properties.VpcId",
            "Ref to Network does not resolve",
        )
        in findings
    )
    assert all(finding.rule == "references" for finding in findings)


def test_sub_attribute_references():
    document = {
        "Parameters": {"Group": {"Type": "String"}},
        "Resources": {
            "Vpc": {"Type": "AWS::EC2::VPC"},
            "Topic": {
                "Type": "AWS::SNS::Topic",
                "Properties": {
                    "TopicName": {
                        "Fn::Sub": "${Group}-${Vpc.CidrBlock}-${Other.Arn}-${Group.Arn}-${AWS::Region}"
                    }
                },
            },
        },
    }
    references = [
        reference for reference in find_references(document) if reference.kind == "Fn::Sub"
    ]
    assert [(reference.target, reference.attribute) for reference in references] == [
        ("Group", None),
        ("Vpc", "CidrBlock"),
        ("Other", "Arn"),
        ("Group", "Arn"),
        ("AWS::Region", None),
    ]
    assert check_references(document) == [
        Finding(
            "references",
            "Resources.Topic.Properties.TopicName.Fn::Sub",
            "Fn::Sub to Other does not resolve",
        ),
        Finding(
            "references",
            "Resources.Topic.Properties.TopicName.Fn::Sub",
            "Fn::Sub to Group does not resolve",
        ),
    ]


def test_ingress_literals(document):
    assert check_ingress(document) == []
    assert check_ingress(document, 5432, "0.0.0.0/0") == []
    findings = check_ingress(document, 3306, "10.0.0.0/8")
    assert len(findings) == 3
    changed = deepcopy(document)
    changed["Resources"]["DbSecurityGroup"]["Properties"]["SecurityGroupIngress"][0][
        "ToPort"
    ] = 5433
    findings = check_ingress(changed)
    assert len(findings) == 1
    assert findings[0].path.endswith("SecurityGroupIngress.0.ToPort")
    del changed["Resources"]["DbSecurityGroup"]
    assert check_ingress(changed)[0].message == "No security group ingress rule found"


def test_standalone_ingress(document):
    changed = deepcopy(document)
    del changed["Resources"]["DbSecurityGroup"]["Properties"]["SecurityGroupIngress"]
    changed["Resources"]["DbIngress"] = {
        "Type": "AWS::EC2::SecurityGroupIngress",
        "Properties": {
            "GroupId": {"Ref": "DbSecurityGroup"},
            "IpProtocol": "tcp",
            "FromPort": 5432,
            "ToPort": 5432,
            "CidrIp": "192.168.0.0/16",
        },
    }
    findings = check_ingress(changed)
    assert len(findings) == 1
    assert findings[0].path == "Resources.DbIngress.Properties.CidrIp"


def test_secret_literals(document):
    assert check_secret_generation(document) == []
    assert check_secret_generation(document, 16, "@'/\\\"") == []
    findings = check_secret_generation(document, 32, "@")
    assert [finding.path.split(".")[-1] for finding in findings] == [
        "PasswordLength",
        "ExcludeCharacters",
    ]
    changed = deepcopy(document)
    del changed["Resources"]["DbSecret"]["Properties"]["GenerateSecretString"][
        "GenerateStringKey"
    ]
    assert check_secret_generation(changed)[0].path.endswith("GenerateStringKey")


def test_structure(document):
    assert check_structure(document) == []
    changed = deepcopy(document)
    del changed["AWSTemplateFormatVersion"]
    del changed["Resources"]["Vpc"]["Type"]
    del changed["Outputs"]["DbSecretArn"]["Value"]
    paths = [finding.path for finding in check_structure(changed)]
    assert paths == [
        "AWSTemplateFormatVersion",
        "Resources.Vpc",
        "Outputs.DbSecretArn",
    ]
    changed["AWSTemplateFormatVersion"] = "2011-01-01"
    assert check_structure(changed)[0].message == "Expected 2010-09-09, got 2011-01-01"


def test_lint_with_config(document):
    config = StackConfig(content={"Ingress": {"Port": 5433}})
    report = lint_document(document, config)
    assert not report.ok
    assert len(report.by_rule("ingress")) == 2
    assert report.by_rule("secret") == []
    assert "ingress" in report.render()


def test_serialization():
    with open(f"{HERE}/templates/short_form.yml") as template_fd:
        assert check_serialization(template_fd.read()) == []


def test_report():
    report = LintReport()
    assert report.ok
    report.extend([Finding("structure", "Resources.Vpc", "Resource has no Type")])
    assert not report.ok
    assert report.by_rule("structure")[0] == Finding(
        "structure", "Resources.Vpc", "Resource has no Type"
    )
