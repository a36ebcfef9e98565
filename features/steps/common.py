#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

from os import path

import boto3
from behave import given, then

from aurora_stack.aurora_stack import generate_full_template
from aurora_stack.common.config import StackConfig
from aurora_stack.common.files import FileArtifact
from aurora_stack.common.settings import AuroraStackSettings
from aurora_stack.template.lint import (
    check_ingress,
    check_secret_generation,
    lint_document,
)
from aurora_stack.template.loader import is_idempotent, load_document


def here():
    return path.abspath(path.dirname(__file__))


def create_settings(context, config):
    context.settings = AuroraStackSettings(
        config=config,
        session=boto3.session.Session(region_name="eu-west-1"),
        **{
            AuroraStackSettings.command_arg: AuroraStackSettings.render_arg,
            AuroraStackSettings.name_arg: "test",
            AuroraStackSettings.output_dir_arg: f"{here()}/../../outputs",
        },
    )


@given("I use {file_path} as my stack configuration file")
def step_impl(context, file_path):
    """
    Function to import the stack configuration from use-cases.

    :param context:
    :param str file_path:
    :return:
    """
    cases_path = path.abspath(f"{here()}/../../{file_path}")
    create_settings(context, StackConfig(file_path=cases_path))


@given("I use the default stack configuration")
def step_impl(context):
    create_settings(context, StackConfig())


@given("I want the template in {file_format} format")
def step_impl(context, file_format):
    context.settings.format = file_format


@then("I render the template to verify execution")
def step_impl(context):
    template = generate_full_template(context.settings)
    template_file = FileArtifact(
        context.settings.name, context.settings, template=template
    )
    template_file.write(context.settings)
    context.stack_config = context.settings.config
    context.template_path = template_file.file_path
    context.document = load_document(template_file.file_path)[0]


@given("I use {file_path} as my template file")
def step_impl(context, file_path):
    context.stack_config = None
    context.template_path = path.abspath(f"{here()}/../../{file_path}")
    context.document = load_document(context.template_path)[0]


@then("the template has no lint findings")
def step_impl(context):
    report = lint_document(context.document, context.stack_config)
    assert report.ok, report.render()


@then("the template has {count:d} {rule} findings")
def step_impl(context, count, rule):
    report = lint_document(context.document, context.stack_config)
    assert len(report.by_rule(rule)) == count, report.render()


@then("re-reading and re-serializing the template is idempotent")
def step_impl(context):
    with open(context.template_path, "r") as template_fd:
        assert is_idempotent(template_fd.read())


@then("the ingress rule allows port {port:d} from {cidr}")
def step_impl(context, port, cidr):
    assert check_ingress(context.document, port, cidr) == []


@then('the generated password is {length:d} characters long without {characters} characters')
def step_impl(context, length, characters):
    assert check_secret_generation(context.document, length, characters) == []


@then("the template has the outputs {first}, {second} and {third}")
def step_impl(context, first, second, third):
    for output in [first, second, third]:
        assert output in context.document["Outputs"]


@then("the template has no {resource_name} resource")
def step_impl(context, resource_name):
    assert resource_name not in context.document["Resources"]
