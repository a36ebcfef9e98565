# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Document level checks of a CloudFormation template.

* every reference (Ref, Fn::GetAtt, Fn::Sub variables, DependsOn, Conditions) must resolve to a
  parameter, resource, condition or pseudo parameter declared in the same document.
* the ingress rule and the generated password settings must match the expected values.
* the document has a format version, each resource a Type and each output a Value.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aurora_stack.common.config import StackConfig

from compose_x_common.compose_x_common import keyisset
from tabulate import tabulate

from aurora_stack.common.config import DEFAULT_CONFIG
from aurora_stack.common.logging import LOG
from aurora_stack.template.loader import is_idempotent

TEMPLATE_VERSION = "2010-09-09"
PSEUDO_PARAMETERS = [
    "AWS::AccountId",
    "AWS::NotificationARNs",
    "AWS::NoValue",
    "AWS::Partition",
    "AWS::Region",
    "AWS::StackId",
    "AWS::StackName",
    "AWS::URLSuffix",
]
SECURITY_GROUP_TYPE = "AWS::EC2::SecurityGroup"
SECURITY_GROUP_INGRESS_TYPE = "AWS::EC2::SecurityGroupIngress"
SECRET_TYPE = "AWS::SecretsManager::Secret"

SUB_VARIABLE_RE = re.compile(r"\$\{([^!}][^}]*)\}")

REF_KIND = "Ref"
GETATT_KIND = "Fn::GetAtt"
SUB_KIND = "Fn::Sub"
DEPENDS_ON_KIND = "DependsOn"
CONDITION_KIND = "Condition"


class Finding(object):
    """
    A lint finding

    :ivar str rule: name of the rule that produced it
    :ivar str path: location in the document, i.e. Resources.DbCluster.Properties.DBSubnetGroupName
    :ivar str message: what is wrong
    """

    def __init__(self, rule: str, path: str, message: str):
        self.rule = rule
        self.path = path
        self.message = message

    def __repr__(self):
        return f"{self.rule} - {self.path}: {self.message}"

    def __eq__(self, other):
        return isinstance(other, Finding) and (
            self.rule,
            self.path,
            self.message,
        ) == (other.rule, other.path, other.message)


class Reference(object):
    """
    A reference found in the document, from path to target

    :ivar str kind: Ref, Fn::GetAtt, Fn::Sub, DependsOn or Condition
    :ivar str path: where the reference is
    :ivar str target: the logical name referred to
    :ivar list local_names: names bound locally, i.e. Fn::Sub variables map
    :ivar str attribute: the resource attribute of a ${Name.Attribute} Fn::Sub variable
    """

    def __init__(
        self,
        kind: str,
        path: str,
        target: str,
        local_names: list = None,
        attribute: str = None,
    ):
        self.kind = kind
        self.path = path
        self.target = target
        self.local_names = local_names if local_names else []
        self.attribute = attribute

    def __repr__(self):
        return f"{self.kind} {self.path} -> {self.target}"


class LintReport(object):
    """
    Aggregates the findings of all the rules.
    """

    def __init__(self, findings: list = None):
        self.findings = findings if findings else []

    @property
    def ok(self) -> bool:
        return not self.findings

    def extend(self, findings: list) -> None:
        self.findings += findings

    def by_rule(self, rule: str) -> list:
        return [finding for finding in self.findings if finding.rule == rule]

    def render(self) -> str:
        if self.ok:
            return "No findings"
        return tabulate(
            [[finding.rule, finding.path, finding.message] for finding in self.findings],
            ["Rule", "Path", "Message"],
            tablefmt="rst",
        )


def join_path(*parts) -> str:
    return ".".join(str(part) for part in parts if part != "")


def sub_references(path: str, sub_value) -> list:
    """
    Parses the Fn::Sub string for ${Name} and ${Name.Attribute} variables. ${!Literal} are skipped.

    :param str path:
    :param sub_value: the Fn::Sub string or [string, variables map]
    :return: the references
    :rtype: list[Reference]
    """
    local_names = []
    references = []
    if isinstance(sub_value, list):
        if not sub_value or not isinstance(sub_value[0], str):
            return references
        if len(sub_value) > 1 and isinstance(sub_value[1], dict):
            local_names = list(sub_value[1].keys())
            references += walk(sub_value[1], join_path(path, SUB_KIND, "1"))
        sub_string = sub_value[0]
    elif isinstance(sub_value, str):
        sub_string = sub_value
    else:
        return references
    for variable in SUB_VARIABLE_RE.findall(sub_string):
        target, _, attribute = variable.strip().partition(".")
        references.append(
            Reference(
                SUB_KIND,
                join_path(path, SUB_KIND),
                target,
                local_names,
                attribute if attribute else None,
            )
        )
    return references


def getatt_target(value):
    """
    Returns the resource name of a Fn::GetAtt, list or dotted string form.
    """
    if isinstance(value, list) and value and isinstance(value[0], str):
        return value[0]
    elif isinstance(value, str):
        return value.split(".", 1)[0]
    return None


def walk(node, path: str) -> list:
    """
    Recursively finds the intrinsic functions references in the node.

    :return: references found
    :rtype: list[Reference]
    """
    references = []
    if isinstance(node, dict):
        if len(node) == 1:
            key, value = list(node.items())[0]
            if key == "Ref" and isinstance(value, str):
                return [Reference(REF_KIND, path, value)]
            elif key == GETATT_KIND:
                target = getatt_target(value)
                if target:
                    references.append(Reference(GETATT_KIND, path, target))
                if isinstance(value, list):
                    references += walk(value[1:], join_path(path, GETATT_KIND))
                return references
            elif key == SUB_KIND:
                return sub_references(path, value)
            elif key == "Fn::If" and isinstance(value, list) and value:
                if isinstance(value[0], str):
                    references.append(
                        Reference(CONDITION_KIND, join_path(path, "Fn::If"), value[0])
                    )
                references += walk(value[1:], join_path(path, "Fn::If"))
                return references
            elif key == CONDITION_KIND and isinstance(value, str):
                return [Reference(CONDITION_KIND, path, value)]
        for key, value in node.items():
            references += walk(value, join_path(path, key))
    elif isinstance(node, list):
        for count, value in enumerate(node):
            references += walk(value, join_path(path, count))
    return references


def find_references(document: dict) -> list:
    """
    Finds all the references in the Resources, Outputs and Conditions of the document.

    :param dict document: the loaded template
    :return: list of references
    :rtype: list[Reference]
    """
    references = []
    resources = document.get("Resources", {}) or {}
    for name, resource in resources.items():
        if not isinstance(resource, dict):
            continue
        path = join_path("Resources", name)
        depends_on = resource.get(DEPENDS_ON_KIND)
        if isinstance(depends_on, str):
            depends_on = [depends_on]
        for target in depends_on or []:
            references.append(
                Reference(DEPENDS_ON_KIND, join_path(path, DEPENDS_ON_KIND), target)
            )
        if isinstance(resource.get(CONDITION_KIND), str):
            references.append(
                Reference(
                    CONDITION_KIND,
                    join_path(path, CONDITION_KIND),
                    resource[CONDITION_KIND],
                )
            )
        for key in ["Properties", "Metadata", "UpdatePolicy", "CreationPolicy"]:
            if key in resource:
                references += walk(resource[key], join_path(path, key))
    for section in ["Outputs", "Conditions"]:
        for name, value in (document.get(section, {}) or {}).items():
            path = join_path(section, name)
            if section == "Outputs" and isinstance(value, dict):
                if isinstance(value.get(CONDITION_KIND), str):
                    references.append(
                        Reference(
                            CONDITION_KIND,
                            join_path(path, CONDITION_KIND),
                            value[CONDITION_KIND],
                        )
                    )
                    value = {k: v for k, v in value.items() if k != CONDITION_KIND}
            references += walk(value, path)
    return references


def resolve_reference(reference: Reference, document: dict) -> bool:
    """
    Whether the reference target is declared in the document
    """
    parameters = document.get("Parameters", {}) or {}
    resources = document.get("Resources", {}) or {}
    conditions = document.get("Conditions", {}) or {}
    target = reference.target
    if reference.kind == CONDITION_KIND:
        return target in conditions
    elif reference.kind in [GETATT_KIND, DEPENDS_ON_KIND]:
        return target in resources
    elif reference.kind == SUB_KIND:
        if reference.attribute:
            return target in resources
        if target in reference.local_names or target in PSEUDO_PARAMETERS:
            return True
        return target in parameters or target in resources
    return target in PSEUDO_PARAMETERS or target in parameters or target in resources


def check_references(document: dict) -> list:
    """
    Referential closure: every reference must name something declared in the same document.

    :return: findings for unresolved references
    :rtype: list[Finding]
    """
    findings = []
    for reference in find_references(document):
        if not resolve_reference(reference, document):
            findings.append(
                Finding(
                    "references",
                    reference.path,
                    f"{reference.kind} to {reference.target} does not resolve",
                )
            )
    LOG.debug(f"References check - {len(findings)} unresolved")
    return findings


def get_resources_of_type(document: dict, resource_type: str) -> dict:
    return {
        name: resource
        for name, resource in (document.get("Resources", {}) or {}).items()
        if isinstance(resource, dict) and resource.get("Type") == resource_type
    }


def get_ingress_rules(document: dict) -> list:
    """
    Returns the ingress rules of the security groups, inline or as standalone SecurityGroupIngress.

    :return: list of (path, rule)
    """
    rules = []
    for name, resource in get_resources_of_type(document, SECURITY_GROUP_TYPE).items():
        properties = resource.get("Properties", {}) or {}
        for count, rule in enumerate(properties.get("SecurityGroupIngress", []) or []):
            if isinstance(rule, dict):
                rules.append(
                    (
                        join_path("Resources", name, "Properties", "SecurityGroupIngress", count),
                        rule,
                    )
                )
    for name, resource in get_resources_of_type(
        document, SECURITY_GROUP_INGRESS_TYPE
    ).items():
        rules.append(
            (join_path("Resources", name, "Properties"), resource.get("Properties", {}) or {})
        )
    return rules


def check_ingress(document: dict, port: int = None, cidr: str = None) -> list:
    """
    Checks that the ingress rules allow exactly the expected port range from the expected CIDR.

    :param dict document:
    :param int port: expected FromPort and ToPort
    :param str cidr: expected CidrIp
    :rtype: list[Finding]
    """
    port = port if port is not None else DEFAULT_CONFIG["Ingress"]["Port"]
    cidr = cidr if cidr is not None else DEFAULT_CONFIG["Ingress"]["CidrIp"]
    rules = get_ingress_rules(document)
    if not rules:
        return [Finding("ingress", "Resources", "No security group ingress rule found")]
    findings = []
    for path, rule in rules:
        for key in ["FromPort", "ToPort"]:
            if str(rule.get(key)) != str(port):
                findings.append(
                    Finding("ingress", join_path(path, key), f"Expected {port}, got {rule.get(key)}")
                )
        if rule.get("CidrIp") != cidr:
            findings.append(
                Finding(
                    "ingress",
                    join_path(path, "CidrIp"),
                    f"Expected {cidr}, got {rule.get('CidrIp')}",
                )
            )
    return findings


def check_secret_generation(
    document: dict, length: int = None, exclude_characters: str = None
) -> list:
    """
    Checks the generated password settings of the secrets.

    :param dict document:
    :param int length: expected PasswordLength
    :param str exclude_characters: expected ExcludeCharacters, compared as a set of characters
    :rtype: list[Finding]
    """
    length = length if length is not None else DEFAULT_CONFIG["Secret"]["PasswordLength"]
    exclude_characters = (
        exclude_characters
        if exclude_characters is not None
        else DEFAULT_CONFIG["Secret"]["ExcludeCharacters"]
    )
    secrets = get_resources_of_type(document, SECRET_TYPE)
    if not secrets:
        return [Finding("secret", "Resources", "No secret resource found")]
    findings = []
    for name, resource in secrets.items():
        path = join_path("Resources", name, "Properties", "GenerateSecretString")
        generate = (resource.get("Properties", {}) or {}).get("GenerateSecretString")
        if not isinstance(generate, dict):
            findings.append(Finding("secret", path, "No GenerateSecretString set"))
            continue
        if str(generate.get("PasswordLength")) != str(length):
            findings.append(
                Finding(
                    "secret",
                    join_path(path, "PasswordLength"),
                    f"Expected {length}, got {generate.get('PasswordLength')}",
                )
            )
        excluded = generate.get("ExcludeCharacters")
        if not isinstance(excluded, str) or set(excluded) != set(exclude_characters):
            findings.append(
                Finding(
                    "secret",
                    join_path(path, "ExcludeCharacters"),
                    f"Expected {exclude_characters}, got {excluded}",
                )
            )
        if not keyisset("GenerateStringKey", generate):
            findings.append(
                Finding("secret", join_path(path, "GenerateStringKey"), "Not set")
            )
    return findings


def check_structure(document: dict) -> list:
    """
    Checks the format version marker, the resources types and the outputs values.

    :rtype: list[Finding]
    """
    findings = []
    version = document.get("AWSTemplateFormatVersion")
    if version is None:
        findings.append(
            Finding("structure", "AWSTemplateFormatVersion", "Format version marker not set")
        )
    elif str(version) != TEMPLATE_VERSION:
        findings.append(
            Finding(
                "structure",
                "AWSTemplateFormatVersion",
                f"Expected {TEMPLATE_VERSION}, got {version}",
            )
        )
    for name, resource in (document.get("Resources", {}) or {}).items():
        if not isinstance(resource, dict) or not keyisset("Type", resource):
            findings.append(
                Finding("structure", join_path("Resources", name), "Resource has no Type")
            )
    for name, output in (document.get("Outputs", {}) or {}).items():
        if not isinstance(output, dict) or "Value" not in output:
            findings.append(
                Finding("structure", join_path("Outputs", name), "Output has no Value")
            )
    for name, parameter in (document.get("Parameters", {}) or {}).items():
        if not isinstance(parameter, dict) or not keyisset("Type", parameter):
            findings.append(
                Finding("structure", join_path("Parameters", name), "Parameter has no Type")
            )
    return findings


def check_serialization(content: str, file_format: str = None) -> list:
    """
    Checks that the template text is stable through a load and dump cycle.

    :param str content: the template body
    :param str file_format: output format, defaults to the input format
    :rtype: list[Finding]
    """
    if is_idempotent(content, file_format):
        return []
    return [
        Finding(
            "serialization",
            "Template",
            "Re-reading and re-serializing the template changes it",
        )
    ]


def lint_document(document: dict, config: StackConfig = None) -> LintReport:
    """
    Runs all the rules against the document.
    The expected ingress and secret values come from the stack configuration, or the defaults.

    :param dict document: the loaded template
    :param StackConfig config: the stack configuration the template is expected to match
    :rtype: LintReport
    """
    ingress = config.ingress if config else DEFAULT_CONFIG["Ingress"]
    secret = config.secret if config else DEFAULT_CONFIG["Secret"]
    report = LintReport()
    report.extend(check_structure(document))
    report.extend(check_references(document))
    report.extend(check_ingress(document, ingress["Port"], ingress["CidrIp"]))
    report.extend(
        check_secret_generation(
            document, secret["PasswordLength"], secret["ExcludeCharacters"]
        )
    )
    if report.ok:
        LOG.info("Template lint - no findings")
    else:
        LOG.warning(f"Template lint - {len(report.findings)} finding(s)")
    return report
