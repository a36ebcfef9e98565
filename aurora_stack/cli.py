# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Console script for aurora_stack.
"""

import argparse
import sys

from aurora_stack import __version__
from aurora_stack.aurora_stack import generate_full_template
from aurora_stack.common.aws import delete, deploy, plan, print_stack_outputs
from aurora_stack.common.files import FileArtifact
from aurora_stack.common.logging import LOG, set_log_level
from aurora_stack.common.settings import AuroraStackSettings
from aurora_stack.exceptions import AuroraStackException
from aurora_stack.template.lint import check_serialization, lint_document


class ArgparseHelper(argparse._HelpAction):
    """
    Used to help print top level '--help' arguments from argparse
    when used with subparsers
    """

    def __call__(self, parser, namespace, values, option_string=None):
        parser.print_help()
        print()
        subparsers_actions = [
            action
            for action in parser._actions
            if isinstance(action, argparse._SubParsersAction)
        ]
        for subparsers_action in subparsers_actions:
            for choice, subparser in list(subparsers_action.choices.items()):
                if choice in [cmd["name"] for cmd in AuroraStackSettings.all_commands]:
                    print(f"Command '{choice}'")
                    print(subparser.format_usage())
        parser.exit()


def main_parser():
    """
    Console script for aurora_stack.
    """
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument(
        "-h",
        "--help",
        action=ArgparseHelper,
        help="show this help message and exit",
    )

    cmd_parsers = parser.add_subparsers(
        dest=AuroraStackSettings.command_arg, help="Command to execute."
    )
    base_command_parser = argparse.ArgumentParser(add_help=False)
    aws_parser = argparse.ArgumentParser(add_help=False)
    config_parser = argparse.ArgumentParser(add_help=False)
    template_parser = argparse.ArgumentParser(add_help=False)
    deploy_parser = argparse.ArgumentParser(add_help=False)

    base_command_parser.add_argument(
        "--loglevel", type=str, help="Log level. Defaults to INFO", required=False
    )
    aws_parser.add_argument(
        "-n",
        "--name",
        "--stack-name",
        help="Name of your stack",
        required=True,
        type=str,
        dest=AuroraStackSettings.name_arg,
    )
    aws_parser.add_argument(
        "--region",
        required=False,
        dest=AuroraStackSettings.region_arg,
        help="Specify the region you want to build for"
        "default use default region from config or environment vars",
    )
    aws_parser.add_argument(
        "--role-arn",
        dest=AuroraStackSettings.arn_arg,
        help="Allow you to run API calls using a specific IAM role, within same or for cross-account",
        required=False,
    )
    aws_parser.add_argument(
        "--no-wait",
        dest=AuroraStackSettings.no_wait_arg,
        action="store_true",
        help="Do not wait for the stack operation to complete",
    )
    config_parser.add_argument(
        "-c",
        "--config-file",
        dest=AuroraStackSettings.config_file_arg,
        required=False,
        help="Path to the stack configuration file",
    )
    config_parser.add_argument(
        "--azs",
        dest=AuroraStackSettings.zones_arg,
        default=[],
        action="append",
        required=False,
        help="List the two AZs you want to deploy to specifically within the region",
    )
    config_parser.add_argument(
        "--format",
        help="Defines the format you want to use.",
        type=str,
        dest=AuroraStackSettings.format_arg,
        choices=AuroraStackSettings.allowed_formats,
        default=AuroraStackSettings.default_format,
    )
    config_parser.add_argument(
        "-d",
        "--output-dir",
        required=False,
        help="Output directory to write the template to.",
        type=str,
        dest=AuroraStackSettings.output_dir_arg,
        default=AuroraStackSettings.default_output_dir,
    )
    config_parser.add_argument(
        "--lookup-engine-family",
        dest=AuroraStackSettings.lookup_family_arg,
        action="store_true",
        help="Looks up the parameter group family of the engine version with the RDS API",
    )
    template_parser.add_argument(
        "-t",
        "--template-file",
        dest=AuroraStackSettings.template_file_arg,
        required=False,
        help="Path to an existing template file to use instead of generating one",
    )
    deploy_parser.add_argument(
        "--parameter-overrides",
        dest=AuroraStackSettings.overrides_arg,
        nargs="+",
        default=[],
        help="Parameters values for the stack, as key=value",
    )
    deploy_parser.add_argument(
        "-b",
        "--bucket-name",
        type=str,
        required=False,
        help="Bucket name to upload the template to",
        dest=AuroraStackSettings.bucket_arg,
    )
    deploy_parser.add_argument(
        "--disable-rollback",
        dest=AuroraStackSettings.disable_rollback_arg,
        help="On create/plan, disable stack automatic rollback.",
        required=False,
        action="store_true",
    )

    render = cmd_parsers.add_parser(
        name=AuroraStackSettings.render_arg,
        help=AuroraStackSettings.active_commands[2]["help"],
        parents=[base_command_parser, config_parser],
    )
    render.add_argument(
        "-n",
        "--name",
        help="Name of your stack. Used as file name",
        required=False,
        default="aurora-postgres",
        type=str,
        dest=AuroraStackSettings.name_arg,
    )
    render.add_argument(
        "--validate",
        dest=AuroraStackSettings.validate_arg,
        action="store_true",
        help="Validates the template with the CloudFormation API",
    )
    for command in [AuroraStackSettings.deploy_arg, AuroraStackSettings.plan_arg]:
        cmd_parsers.add_parser(
            name=command,
            help=[
                cmd["help"]
                for cmd in AuroraStackSettings.active_commands
                if cmd["name"] == command
            ][0],
            parents=[
                base_command_parser,
                aws_parser,
                config_parser,
                template_parser,
                deploy_parser,
            ],
        )
    lint = cmd_parsers.add_parser(
        name=AuroraStackSettings.lint_arg,
        help=AuroraStackSettings.validation_commands[0]["help"],
        parents=[base_command_parser],
    )
    lint.add_argument(
        "-t",
        "--template-file",
        dest=AuroraStackSettings.template_file_arg,
        required=True,
        help="Path to the template file to check",
    )
    lint.add_argument(
        "-c",
        "--config-file",
        dest=AuroraStackSettings.config_file_arg,
        required=False,
        help="Path to the stack configuration file with the expected settings",
    )
    for command in AuroraStackSettings.stack_commands:
        cmd_parsers.add_parser(
            name=command["name"],
            help=command["help"],
            parents=[base_command_parser, aws_parser],
        )
    for command in AuroraStackSettings.neutral_commands:
        cmd_parsers.add_parser(name=command["name"], help=command["help"])
    return parser


def define_template_file(settings: AuroraStackSettings) -> FileArtifact:
    """
    Returns the template to use: the existing template file if set, otherwise generated from the settings.
    """
    if settings.template_file:
        LOG.info(f"Using template file {settings.template_file}")
        return FileArtifact.from_file(settings.template_file, settings)
    template = generate_full_template(settings)
    template_file = FileArtifact(settings.name, settings, template=template)
    template_file.write(settings)
    return template_file


def run_command(settings: AuroraStackSettings) -> int:
    """
    Executes the command from the settings

    :return: status code
    """
    if settings.command == settings.lint_arg:
        template_file = FileArtifact.from_file(settings.template_file, settings)
        report = lint_document(template_file.document, settings.config)
        with open(template_file.file_path, "r") as template_fd:
            report.extend(check_serialization(template_fd.read()))
        print(report.render())
        return 0 if report.ok else 1
    elif settings.command == settings.outputs_arg:
        print_stack_outputs(settings.session, settings.name)
        return 0
    elif settings.command == settings.delete_arg:
        delete(settings)
        return 0

    template_file = define_template_file(settings)
    if settings.command == settings.render_arg:
        if settings.validate:
            template_file.validate(settings)
        return 0
    if settings.upload:
        template_file.upload(settings)
    if settings.deploy:
        deploy(settings, template_file)
        if settings.wait:
            print_stack_outputs(settings.session, settings.name)
    elif settings.plan:
        plan(settings, template_file)
    return 0


def main(args=None):
    """
    Main entry point for CLI
    :return: status code
    """
    parser = main_parser()
    if args is None:
        args = sys.argv[1:]
    if not args:
        parser.print_help()
        return 0
    args = parser.parse_args(args)
    if getattr(args, "loglevel", None):
        set_log_level(args.loglevel)
    LOG.debug(args)
    if args.command == "version":
        print("Aurora Stack", __version__)
        return 0
    try:
        settings = AuroraStackSettings(**vars(args))
        LOG.debug(settings)
        return run_command(settings)
    except (AuroraStackException, LookupError, ValueError) as error:
        LOG.error(error)
        return 1


if __name__ == "__main__":
    sys.exit(main())  # pragma: no cover
