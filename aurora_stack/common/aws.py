# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Functions to deploy, plan, read and delete the stack with AWS CloudFormation.
"""

from __future__ import annotations

import secrets
from string import ascii_lowercase
from time import sleep
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from boto3.session import Session
    from aurora_stack.common.files import FileArtifact
    from aurora_stack.common.settings import AuroraStackSettings

from botocore.exceptions import ClientError, WaiterError
from compose_x_common.aws import get_assume_role_session
from compose_x_common.compose_x_common import keyisset
from tabulate import tabulate

from aurora_stack.common.logging import LOG
from aurora_stack.exceptions import InvalidParameterOverride, StackOperationError

CAN_UPDATE_STATUSES = [
    "CREATE_COMPLETE",
    "UPDATE_COMPLETE",
    "UPDATE_ROLLBACK_COMPLETE",
    "IMPORT_COMPLETE",
    "IMPORT_ROLLBACK_COMPLETE",
]
NO_CHANGES_MESSAGES = [
    "No updates are to be performed",
    "The submitted information didn't contain changes",
]
WAITER_CONFIG = {"Delay": 15, "MaxAttempts": 240}


def get_cross_role_session(session, arn, region_name=None, session_name=None):
    """
    Function to override the settings session to use the given IAM role

    :param boto3.session.Session session: The original session fetching the credentials for X-Role
    :param str arn:
    :param str region_name: Name of region for session
    :param str session_name: Override name of the session
    :return: boto3 session from lookup settings
    :rtype: boto3.session.Session
    """
    if not session_name:
        session_name = "AuroraStack@Cli"
    try:
        return get_assume_role_session(
            session, arn, session_name=session_name, region=region_name
        )
    except ClientError:
        LOG.error(f"Failed to use the Role ARN {arn}")
        raise


def get_stack(client, name: str):
    """
    Returns the stack description, None if the stack does not exist
    """
    try:
        stack_r = client.describe_stacks(StackName=name)
    except ClientError as error:
        if (
            error.response["Error"]["Code"] == "ValidationError"
            and error.response["Error"]["Message"].find("does not exist") > 0
        ):
            return None
        raise
    if not keyisset("Stacks", stack_r):
        return None
    stacks = stack_r["Stacks"]
    if len(stacks) != 1:
        raise LookupError("Too many stacks found with machine name", name)
    return stacks[0]


def assert_can_create_stack(client, name):
    """
    Checks whether a stack already exists or not.
    A stack in REVIEW_IN_PROGRESS only has a change set and can be created.
    """
    stack = get_stack(client, name)
    if stack is None:
        return True
    if stack["StackStatus"] == "REVIEW_IN_PROGRESS":
        return stack
    return False


def assert_can_update_stack(client, name):
    """
    Checks whether the stack is in a status that allows for update
    """
    stack = get_stack(client, name)
    if not stack:
        return False
    LOG.info(f"{name} - {stack['StackStatus']}")
    if stack["StackStatus"] in CAN_UPDATE_STATUSES:
        return True
    return False


def define_stack_parameters(document: dict, overrides: dict, update: bool = False) -> list:
    """
    Renders the Parameters list for the CFN API from the template parameters and the key=value overrides.
    Parameters without override keep their Default on create, and their previous value on update.

    :param dict document: the template document
    :param dict overrides: the parameters values
    :param bool update: whether the stack already exists
    :return: list of ParameterKey/ParameterValue
    :raises: InvalidParameterOverride
    """
    template_parameters = document.get("Parameters", {}) or {}
    unknown = [key for key in overrides.keys() if key not in template_parameters]
    if unknown:
        raise InvalidParameterOverride(
            "Parameter overrides not declared in the template",
            unknown,
            list(template_parameters.keys()),
        )
    parameters = []
    for name, definition in template_parameters.items():
        if name in overrides:
            parameters.append(
                {"ParameterKey": name, "ParameterValue": str(overrides[name])}
            )
        elif update:
            parameters.append({"ParameterKey": name, "UsePreviousValue": True})
        elif "Default" not in definition:
            raise InvalidParameterOverride(
                f"Parameter {name} has no default value. Set it with {name}=<value>"
            )
    return parameters


def wait_for_stack(client, name: str, waiter_name: str) -> None:
    """
    Waits for the stack operation to complete

    :raises: StackOperationError if the stack reaches a failed state
    """
    LOG.info(f"{name} - Waiting for {waiter_name}")
    try:
        client.get_waiter(waiter_name).wait(StackName=name, WaiterConfig=WAITER_CONFIG)
    except WaiterError as error:
        status = None
        if error.last_response and keyisset("Stacks", error.last_response):
            status = error.last_response["Stacks"][0].get("StackStatus")
        raise StackOperationError(f"{name} - {waiter_name} failed", status, str(error))
    LOG.info(f"{name} - {waiter_name.replace('_', ' ')}")


def deploy(settings: AuroraStackSettings, template_file: FileArtifact):
    """
    Function to deploy (create or update) the stack to CFN.

    :param AuroraStackSettings settings:
    :param FileArtifact template_file:
    :return: the stack ID
    """
    client = settings.session.client("cloudformation")
    source = template_file.template_source()
    if assert_can_create_stack(client, settings.name):
        res = client.create_stack(
            StackName=settings.name,
            Parameters=define_stack_parameters(
                template_file.document, settings.parameter_overrides
            ),
            DisableRollback=settings.disable_rollback,
            **source,
        )
        LOG.info(f"Stack {settings.name} creation started.")
        LOG.info(res["StackId"])
        if settings.wait:
            wait_for_stack(client, settings.name, "stack_create_complete")
        return res["StackId"]
    elif assert_can_update_stack(client, settings.name):
        LOG.warning(f"Stack {settings.name} already exists. Updating.")
        try:
            res = client.update_stack(
                StackName=settings.name,
                Parameters=define_stack_parameters(
                    template_file.document, settings.parameter_overrides, update=True
                ),
                DisableRollback=settings.disable_rollback,
                **source,
            )
        except ClientError as error:
            if any(
                error.response["Error"]["Message"].startswith(message)
                for message in NO_CHANGES_MESSAGES
            ):
                LOG.info(f"Stack {settings.name} - No updates are to be performed.")
                return get_stack(client, settings.name)["StackId"]
            raise
        LOG.info(f"Stack {settings.name} update started.")
        LOG.info(res["StackId"])
        if settings.wait:
            wait_for_stack(client, settings.name, "stack_update_complete")
        return res["StackId"]
    raise StackOperationError(
        f"Stack {settings.name} is in a status that does not allow create or update",
        get_stack(client, settings.name)["StackStatus"],
    )


def get_change_set_status(client, change_set_name, settings):
    pending_statuses = [
        "CREATE_PENDING",
        "CREATE_IN_PROGRESS",
        "DELETE_PENDING",
        "DELETE_IN_PROGRESS",
        "REVIEW_IN_PROGRESS",
    ]
    success_statuses = ["CREATE_COMPLETE", "DELETE_COMPLETE"]
    failed_statuses = ["DELETE_FAILED", "FAILED"]
    ready = False
    status = None
    while not ready:
        status = client.describe_change_set(
            ChangeSetName=change_set_name, StackName=settings.name
        )
        if status["Status"] in failed_statuses:
            reason = status.get("StatusReason", "")
            if any(reason.startswith(message) for message in NO_CHANGES_MESSAGES):
                LOG.info(f"{settings.name} - No changes to apply.")
                return None
            raise StackOperationError(
                "Change set is unsuccessful", status["Status"], reason
            )
        if status["Status"] in pending_statuses:
            print(
                "ChangeSet creation in progress. Waiting 10 seconds",
                end="\r",
                flush=True,
            )
            sleep(10)
        elif status["Status"] in success_statuses:
            ready = True

    print(
        tabulate(
            [
                [
                    change["ResourceChange"]["LogicalResourceId"],
                    change["ResourceChange"]["ResourceType"],
                    change["ResourceChange"]["Action"],
                    change["ResourceChange"].get("Replacement", ""),
                ]
                for change in status["Changes"]
            ],
            ["LogicalResourceId", "ResourceType", "Action", "Replacement"],
            tablefmt="rst",
        )
    )
    return status


def plan(settings: AuroraStackSettings, template_file: FileArtifact):
    """
    Function to create a change-set and show the changes, then offer to apply it.

    :param AuroraStackSettings settings:
    :param FileArtifact template_file:
    :return: the change set status, None if there are no changes
    """
    client = settings.session.client("cloudformation")
    change_set_name = f"{settings.name}-" + "".join(
        secrets.choice(ascii_lowercase) for _ in range(10)
    )
    creating = bool(assert_can_create_stack(client, settings.name))
    if not creating and not assert_can_update_stack(client, settings.name):
        raise StackOperationError(
            f"Stack {settings.name} is in a status that does not allow a change set"
        )
    client.create_change_set(
        StackName=settings.name,
        Parameters=define_stack_parameters(
            template_file.document, settings.parameter_overrides, update=not creating
        ),
        UsePreviousTemplate=False,
        ChangeSetType="CREATE" if creating else "UPDATE",
        ChangeSetName=change_set_name,
        **template_file.template_source(),
    )
    status = get_change_set_status(client, change_set_name, settings)
    if status:
        apply_q = input("Want to apply? [yN]: ")
        if apply_q in ["y", "Y", "YES", "Yes", "yes"]:
            client.execute_change_set(
                ChangeSetName=change_set_name,
                StackName=settings.name,
                DisableRollback=settings.disable_rollback,
            )
            if settings.wait:
                wait_for_stack(
                    client,
                    settings.name,
                    "stack_create_complete" if creating else "stack_update_complete",
                )
            return status
    delete_q = input("Cleanup ChangeSet ? [yN]: ")
    if delete_q in ["y", "Y", "YES", "Yes", "yes"]:
        if creating:
            client.delete_stack(StackName=settings.name)
        else:
            client.delete_change_set(
                ChangeSetName=change_set_name, StackName=settings.name
            )
    return status


def get_stack_outputs(session: Session, stack_name: str) -> dict:
    """
    Returns the outputs of the stack, i.e. the cluster endpoints and the secret ARN

    :param boto3.session.Session session:
    :param str stack_name:
    :return: OutputKey to OutputValue mapping
    :rtype: dict
    """
    client = session.client("cloudformation")
    stack = get_stack(client, stack_name)
    if stack is None:
        raise LookupError(f"Stack {stack_name} does not exist")
    return {
        output["OutputKey"]: output["OutputValue"]
        for output in stack.get("Outputs", [])
    }


def print_stack_outputs(session: Session, stack_name: str) -> dict:
    outputs = get_stack_outputs(session, stack_name)
    print(
        tabulate(
            [[key, value] for key, value in outputs.items()],
            ["Output", "Value"],
            tablefmt="rst",
        )
    )
    return outputs


def delete(settings: AuroraStackSettings):
    """
    Deletes the stack and all its resources

    :return: the stack ID, None if the stack does not exist
    """
    client = settings.session.client("cloudformation")
    stack = get_stack(client, settings.name)
    if stack is None:
        LOG.warning(f"Stack {settings.name} does not exist. Nothing to delete")
        return None
    client.delete_stack(StackName=settings.name)
    LOG.info(f"Stack {settings.name} deletion started.")
    if settings.wait:
        wait_for_stack(client, settings.name, "stack_delete_complete")
    return stack["StackId"]
