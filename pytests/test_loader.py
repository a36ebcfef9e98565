#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

from os import path

import pytest

from aurora_stack.exceptions import TemplateLoadError
from aurora_stack.template.loader import (
    dumps_document,
    is_idempotent,
    load_document,
    loads_document,
    round_trip,
)

HERE = path.abspath(path.dirname(__file__))


@pytest.fixture
def short_form_path():
    return f"{HERE}/templates/short_form.yml"


def test_load_short_form_yaml(short_form_path):
    document, file_format = load_document(short_form_path)
    assert file_format == "yaml"
    resources = document["Resources"]
    assert resources["SubnetA"]["Properties"]["VpcId"] == {"Ref": "Vpc"}
    assert resources["DbCluster"]["Properties"]["MasterUsername"] == {
        "Fn::Sub": "{{resolve:secretsmanager:${DbSecret}:SecretString:username}}"
    }
    assert document["Outputs"]["ClusterEndpoint"]["Value"]["Fn::GetAtt"][0] == "DbCluster"
    assert (
        resources["DbSecret"]["Properties"]["GenerateSecretString"]["ExcludeCharacters"]
        == "\"/\\'@"
    )
    assert isinstance(document, dict)
    assert type(document["Resources"]) is dict


def test_json_and_yaml_give_the_same_document(short_form_path):
    document, _ = load_document(short_form_path)
    json_body = dumps_document(document, "json")
    from_json, file_format = loads_document(json_body)
    assert file_format == "json"
    assert from_json == document
    yaml_body = dumps_document(from_json, "yaml")
    assert "!Ref" in yaml_body
    from_yaml, _ = loads_document(yaml_body)
    assert from_yaml == document


def test_yaml_keeps_order_and_short_form():
    document = {
        "Parameters": {"Group": {"Type": "String"}},
        "Resources": {
            "B": {
                "Type": "X",
                "Properties": {"V": {"Ref": "A"}, "W": {"Fn::GetAtt": ["A", "Arn"]}},
            },
            "A": {"Type": "Y"},
        },
    }
    body = dumps_document(document, "yaml")
    assert "!Ref A" in body
    assert "!GetAtt A.Arn" in body
    assert "Ref:" not in body
    assert body.index("Parameters:") < body.index("Resources:")
    assert body.index("  B:") < body.index("  A:")
    assert body.index("Type: X") < body.index("Properties:")
    reloaded, file_format = loads_document(body)
    assert file_format == "yaml"
    assert reloaded == document
    assert list(reloaded["Resources"].keys()) == ["B", "A"]


def test_idempotence(short_form_path):
    with open(short_form_path) as template_fd:
        content = template_fd.read()
    assert is_idempotent(content)
    assert is_idempotent(content, "json")
    first = round_trip(content)
    assert round_trip(first) == first
    json_body = round_trip(content, "json")
    assert round_trip(json_body) == json_body


def test_invalid_documents(tmp_path):
    with pytest.raises(TemplateLoadError):
        loads_document("{not: valid: [")
    with pytest.raises(TemplateLoadError):
        loads_document("just a string")
    with pytest.raises(TemplateLoadError):
        loads_document('{"Parameters": {}}')
    with pytest.raises(TemplateLoadError):
        loads_document('{"Resources": []}')
    with pytest.raises(TemplateLoadError):
        load_document(f"{tmp_path}/missing.yml")
    with pytest.raises(TypeError):
        loads_document({"Resources": {}})
    with pytest.raises(ValueError):
        dumps_document({"Resources": {}}, "toml")
