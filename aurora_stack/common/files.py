#  -*- coding: utf-8 -*-
# SPDX-License-Identifier: MPL-2.0
# Copyright 2020-2021 John Mille <john@compose-x.io>

"""
Functions to manage a template and whether it should be stored in S3
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aurora_stack.common.settings import AuroraStackSettings

from os import makedirs, path

from botocore.exceptions import ClientError
from troposphere import Template

from aurora_stack.common import FILE_PREFIX
from aurora_stack.common.logging import LOG
from aurora_stack.template.loader import JSON_FORMAT, dumps_document, load_document

JSON_MIME = "application/json"
YAML_MIME = "application/x-yaml"
TEMPLATE_BODY_MAX_SIZE = 51200


def upload_file(
    body,
    bucket_name,
    file_name,
    settings,
    prefix=None,
    mime=None,
):
    """Upload body to a file in s3 with given prefix and bucket_name

    :param body: Template body, would come from troposphere template to_json() or to_yaml()
    :type body: str
    :param bucket_name: name of the bucket to upload the file to
    :type bucket_name: str
    :param file_name: Name of the file
    :type file_name: str
    :param prefix: override default prefix for the file in S3
    :type prefix: str, optional
    :returns: url_path, the https://s3.amazonaws.com/ URL to the file
    :rtype: str
    """
    if mime is None:
        mime = JSON_MIME
    if prefix is None:
        prefix = FILE_PREFIX

    key = f"{prefix}/{file_name}"
    client = settings.session.client("s3")
    client.put_object(
        Body=body,
        Key=key,
        Bucket=bucket_name,
        ContentEncoding="utf-8",
        ContentType=mime,
        ServerSideEncryption="AES256",
    )
    return f"https://s3.amazonaws.com/{bucket_name}/{key}"


class FileArtifact(object):
    """
    Class to handle the template file.
    It will allow to upload the content to S3 or write to local filesystem.
    It also handles CloudFormation templates validation.

    :cvar str url: The URL in S3 where the file will be uploaded to or available from.
    :cvar str body: The content of the FileArtifact
    :cvar dict document: the template document
    :cvar str file_name: the base name of the file
    :cvar str mime: MIME-type of the file
    :cvar str file_path: Output file path for the FileArtifact
    """

    mime = YAML_MIME
    file_path = None

    def __init__(
        self,
        file_name: str,
        settings: AuroraStackSettings,
        file_format: str = None,
        template: Template = None,
        document: dict = None,
    ):
        """
        Init method for FileArtifact

        :param file_name: Name of the file, without extension. Mandatory
        :param template: the troposphere template to render
        :param document: the template document, i.e. loaded from an existing file
        """
        if template is None and document is None:
            raise ValueError("One of template or document must be set")
        if template is not None and not isinstance(template, Template):
            raise TypeError("template must be of type", Template, "got", type(template))
        if document is not None and not isinstance(document, dict):
            raise TypeError("document must be of type", dict, "got", type(document))
        self.file_format = file_format if file_format else settings.format
        if self.file_format not in settings.allowed_formats:
            raise ValueError(
                f"Format {self.file_format} is not one of", settings.allowed_formats
            )
        self.document = template.to_dict() if template is not None else document
        self.file_name = f"{file_name}.{self.file_format}"
        self.mime = JSON_MIME if self.file_format == JSON_FORMAT else YAML_MIME
        self.body = dumps_document(self.document, self.file_format)
        self.url = None
        self.file_path = path.join(settings.output_dir, self.file_name)

    def __repr__(self):
        return self.file_path

    @classmethod
    def from_file(cls, file_path: str, settings: AuroraStackSettings) -> FileArtifact:
        """
        Creates the FileArtifact from an existing template file, keeping its format and location.
        """
        document, file_format = load_document(file_path)
        name = path.splitext(path.basename(file_path))[0]
        artifact = cls(name, settings, file_format=file_format, document=document)
        artifact.file_path = path.abspath(file_path)
        return artifact

    @property
    def too_big_for_body(self) -> bool:
        return len(self.body.encode("utf-8")) > TEMPLATE_BODY_MAX_SIZE

    def upload(self, settings: AuroraStackSettings) -> str:
        """
        Method to handle uploading the files to S3.
        """
        self.url = upload_file(
            body=self.body,
            settings=settings,
            bucket_name=settings.bucket_name,
            file_name=self.file_name,
            mime=self.mime,
        )
        LOG.info(f"{self.file_name} uploaded successfully to {self.url}")
        return self.url

    def write(self, settings: AuroraStackSettings) -> str:
        """
        Method to write the files to local filesystem based on parameters (directory name etc.)
        """
        output_dir = path.dirname(self.file_path)
        makedirs(output_dir, exist_ok=True)
        with open(self.file_path, "w") as template_fd:
            template_fd.write(self.body)
        LOG.info(
            f"Template {self.file_name} written successfully at {path.abspath(self.file_path)}"
        )
        return self.file_path

    def template_source(self) -> dict:
        """
        Returns the TemplateURL or TemplateBody argument for the CloudFormation API calls

        :raises: ValueError when the body is too big and the file was not uploaded
        """
        if self.url:
            return {"TemplateURL": self.url}
        if self.too_big_for_body:
            raise ValueError(
                f"Template body for {self.file_name} is over {TEMPLATE_BODY_MAX_SIZE} bytes."
                " Set a bucket name to upload it to S3."
            )
        return {"TemplateBody": self.body}

    def validate(self, settings: AuroraStackSettings) -> dict:
        """
        Method to validate the CloudFormation template, either via URL once uploaded to S3 or via TemplateBody
        """
        try:
            response = settings.session.client("cloudformation").validate_template(
                **self.template_source()
            )
            LOG.info(f"Template {self.file_name} was validated successfully by CFN")
            return response
        except ClientError as error:
            LOG.error(error)
            failed_path = f"/tmp/{settings.name}.failed.{self.file_format}"
            with open(failed_path, "w") as failed_file_fd:
                failed_file_fd.write(self.body)
            LOG.error(f"Failed validation template written at {failed_path}")
            raise
