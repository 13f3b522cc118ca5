# tests/test_clean_serverless_stack.py
import json

import aws_cdk as cdk
import pytest
from aws_cdk.assertions import Match, Template

from cdk_app import STACK_ID, build_app
from infra_cdk.clean_serverless_stack import CleanServerlessStack
from infra_cdk.config import StackConfig
from infra_cdk.routes import ROUTES

ENV_NAMES = {"DYNAMO_TABLE_NAME", "DYNAMO_PK_NAME", "DYNAMO_SK_NAME"}


def synth(config: StackConfig):
    app = build_app(config)
    stack = app.node.find_child(STACK_ID)
    return stack, Template.from_stack(stack)


@pytest.fixture(scope="module")
def named():
    """Stack synthesized with DYNAMO_TABLE_NAME=Orders."""
    return synth(StackConfig.from_env({"DYNAMO_TABLE_NAME": "Orders"}))


@pytest.fixture(scope="module")
def unnamed():
    """Stack synthesized with no table name configured."""
    return synth(StackConfig.from_env({}))


def logical_id(stack, construct) -> str:
    return stack.get_logical_id(construct.node.default_child)


def image_functions(template: Template) -> dict:
    return template.find_resources("AWS::Lambda::Function", {"Properties": {"PackageType": "Image"}})


def resource_path(resources: dict, resource_id: str) -> str:
    """Rebuilds an API Gateway resource path by walking ParentId references."""
    parts = []
    while resource_id is not None:
        properties = resources[resource_id]["Properties"]
        parts.append(properties["PathPart"])
        resource_id = properties["ParentId"].get("Ref")
    return "/" + "/".join(reversed(parts))


# === Table ===

def test_table_key_schema_and_billing(named):
    _, template = named
    template.resource_count_is("AWS::DynamoDB::Table", 1)
    template.has_resource_properties("AWS::DynamoDB::Table", {
        "KeySchema": [
            {"AttributeName": "PK", "KeyType": "HASH"},
            {"AttributeName": "SK", "KeyType": "RANGE"},
        ],
        "AttributeDefinitions": [
            {"AttributeName": "PK", "AttributeType": "S"},
            {"AttributeName": "SK", "AttributeType": "S"},
        ],
        "BillingMode": "PAY_PER_REQUEST",
    })
    template.has_resource("AWS::DynamoDB::Table", {
        "DeletionPolicy": "Delete",
        "UpdateReplacePolicy": "Delete",
    })


def test_table_has_no_secondary_indexes(named):
    _, template = named
    template.has_resource_properties("AWS::DynamoDB::Table", {
        "GlobalSecondaryIndexes": Match.absent(),
        "LocalSecondaryIndexes": Match.absent(),
    })


def test_configured_table_name_is_used(named):
    _, template = named
    template.has_resource_properties("AWS::DynamoDB::Table", {"TableName": "Orders"})


def test_table_name_left_to_cloudformation_when_unset(unnamed):
    _, template = unnamed
    template.has_resource_properties("AWS::DynamoDB::Table", {"TableName": Match.absent()})


# === Functions ===

def test_one_image_function_per_route_plus_triggers(named):
    stack, template = named
    functions = image_functions(template)

    assert len(functions) == len(ROUTES) + 2
    assert len(stack.api_functions) == len(ROUTES)
    assert len({logical_id(stack, fn) for fn in stack.api_functions.values()}) == len(ROUTES)


def test_function_configuration(named):
    _, template = named
    for properties in (f["Properties"] for f in image_functions(template).values()):
        assert properties["Architectures"] == ["arm64"]
        assert properties["Timeout"] == 30
        assert properties["MemorySize"] == 1280
        assert properties["FunctionName"].startswith("clean-serverless-")


def test_function_names_follow_logical_names(named):
    _, template = named
    names = {f["Properties"]["FunctionName"] for f in image_functions(template).values()}
    expected = {f"clean-serverless-{route.name}" for route in ROUTES}
    expected |= {"clean-serverless-s3Handler", "clean-serverless-scheduleHandler"}

    assert names == expected


def test_environment_with_configured_table_name(named):
    _, template = named
    for function in image_functions(template).values():
        variables = function["Properties"]["Environment"]["Variables"]
        assert set(variables) == ENV_NAMES
        assert variables == {"DYNAMO_TABLE_NAME": "Orders", "DYNAMO_PK_NAME": "PK", "DYNAMO_SK_NAME": "SK"}


def test_environment_references_generated_table_name(unnamed):
    stack, template = unnamed
    table_id = logical_id(stack, stack.table)
    for function in image_functions(template).values():
        variables = function["Properties"]["Environment"]["Variables"]
        assert set(variables) == ENV_NAMES
        assert variables["DYNAMO_TABLE_NAME"] == {"Ref": table_id}


def test_create_function_rejects_unknown_target(unnamed):
    stack, _ = unnamed
    with pytest.raises(ValueError):
        stack.create_function("worker", "extraFunction")


# === API ===

def test_rest_api_and_stage(named):
    _, template = named
    template.resource_count_is("AWS::ApiGateway::RestApi", 1)
    template.has_resource_properties("AWS::ApiGateway::RestApi", {"Name": "CleanServerlessBookSampleAPI"})
    template.has_resource_properties("AWS::ApiGateway::Stage", {"StageName": "dev"})


def test_each_route_binds_its_own_function(named):
    stack, template = named
    methods = template.find_resources("AWS::ApiGateway::Method")
    resources = template.find_resources("AWS::ApiGateway::Resource")

    assert len(methods) == len(ROUTES)

    for route in ROUTES:
        fn_id = logical_id(stack, stack.api_functions[route.name])
        bound = [m for m in methods.values() if f'"{fn_id}"' in json.dumps(m["Properties"]["Integration"]["Uri"])]

        assert len(bound) == 1, route.name
        properties = bound[0]["Properties"]
        assert properties["HttpMethod"] == route.method
        assert properties["AuthorizationType"] == "NONE"
        assert properties["Integration"]["Type"] == "AWS_PROXY"
        assert resource_path(resources, properties["ResourceId"]["Ref"]) == route.path


def test_api_functions_get_table_and_log_access(named):
    stack, template = named
    for fn in stack.api_functions.values():
        template.has_resource_properties("AWS::IAM::Policy", {
            "PolicyDocument": {
                "Statement": Match.array_with([
                    Match.object_like({"Action": ["dynamodb:*", "logs:*"], "Effect": "Allow", "Resource": "*"}),
                ]),
            },
            "Roles": [{"Ref": logical_id(stack, fn.role)}],
        })


# === S3 trigger ===

def test_bucket_notifies_one_handler_for_create_and_remove(named):
    stack, template = named
    template.has_resource_properties("AWS::S3::Bucket", {"BucketName": "clean-serverless-book-sample-bucket"})

    notifications = template.find_resources("Custom::S3BucketNotifications")
    assert len(notifications) == 1
    configurations = next(iter(notifications.values()))["Properties"]["NotificationConfiguration"][
        "LambdaFunctionConfigurations"]

    assert len(configurations) == 2
    assert sorted(c["Events"][0] for c in configurations) == ["s3:ObjectCreated:*", "s3:ObjectRemoved:*"]
    handler_arn = {"Fn::GetAtt": [logical_id(stack, stack.s3_handler), "Arn"]}
    assert all(c["LambdaFunctionArn"] == handler_arn for c in configurations)


def test_s3_handler_can_use_bucket_and_table(named):
    stack, template = named
    policies = template.find_resources("AWS::IAM::Policy", {
        "Properties": {"Roles": [{"Ref": logical_id(stack, stack.s3_handler.role)}]},
    })
    document = json.dumps(policies)

    assert "s3:PutObject" in document
    assert "s3:GetObject*" in document
    assert "dynamodb:*" in document


# === Schedule trigger ===

def test_schedule_rule_targets_one_handler_every_five_minutes(named):
    stack, template = named
    template.resource_count_is("AWS::Events::Rule", 1)
    rule = next(iter(template.find_resources("AWS::Events::Rule").values()))["Properties"]

    assert rule["ScheduleExpression"] == "rate(5 minutes)"
    assert len(rule["Targets"]) == 1
    assert rule["Targets"][0]["Arn"] == {"Fn::GetAtt": [logical_id(stack, stack.schedule_handler), "Arn"]}


def test_schedule_handler_has_no_table_access(named):
    stack, template = named
    policies = template.find_resources("AWS::IAM::Policy", {
        "Properties": {"Roles": [{"Ref": logical_id(stack, stack.schedule_handler.role)}]},
    })
    document = json.dumps(policies)

    assert "logs:PutLogEvents" in document
    assert "dynamodb" not in document


# === Whole stack ===

def test_synthesis_is_deterministic():
    config = StackConfig.from_env({"DYNAMO_TABLE_NAME": "Orders"})
    _, first = synth(config)
    _, second = synth(config)

    assert json.dumps(first.to_json(), sort_keys=True) == json.dumps(second.to_json(), sort_keys=True)


def test_custom_key_names_flow_to_table_and_environment():
    stack, template = synth(StackConfig.from_env({"DYNAMO_PK_NAME": "pk", "DYNAMO_SK_NAME": "sk"}))

    template.has_resource_properties("AWS::DynamoDB::Table", {
        "KeySchema": [
            {"AttributeName": "pk", "KeyType": "HASH"},
            {"AttributeName": "sk", "KeyType": "RANGE"},
        ],
    })
    for function in image_functions(template).values():
        variables = function["Properties"]["Environment"]["Variables"]
        assert (variables["DYNAMO_PK_NAME"], variables["DYNAMO_SK_NAME"]) == ("pk", "sk")


def test_nag_suppressions_are_recorded_when_enabled():
    app = cdk.App()
    stack = CleanServerlessStack(app, "NagStack", config=StackConfig(enable_nag=True))
    metadata = Template.from_stack(stack).to_json()["Metadata"]["cdk_nag"]["rules_to_suppress"]

    assert {"AwsSolutions-APIG4", "AwsSolutions-IAM5"} <= {rule["id"] for rule in metadata}
