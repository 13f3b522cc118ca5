# infra_cdk/clean_serverless_stack.py
from typing import Dict

from aws_cdk import (
    Aspects,
    CfnOutput,
    Duration,
    RemovalPolicy,
    Stack,
    aws_apigateway as apigw,
    aws_dynamodb as dynamodb,
    aws_events as events,
    aws_events_targets as targets,
    aws_iam as iam,
    aws_lambda as _lambda,
    aws_lambda_event_sources as lambda_event_sources,
    aws_s3 as s3,
)
from cdk_nag import AwsSolutionsChecks, NagPackSuppression, NagSuppressions
from constructs import Construct

from infra_cdk.config import StackConfig
from infra_cdk.routes import ROUTES, RouteDescriptor

# Build targets defined in lambdas/Dockerfile
API_TARGET = "api"
S3_EVENT_TARGET = "s3event"
SCHEDULE_TARGET = "schedule"
IMAGE_TARGETS = frozenset({API_TARGET, S3_EVENT_TARGET, SCHEDULE_TARGET})

FUNCTION_TIMEOUT = Duration.seconds(30)
FUNCTION_MEMORY_MB = 1280
SCHEDULE_RATE = Duration.minutes(5)


class CleanServerlessStack(Stack):
    '''
    CDK stack for the clean serverless sample.
    One DynamoDB table keyed by (PK, SK) backs a REST API with one container-image
    Lambda per route. An S3 bucket notifies a dedicated Lambda on object creation and
    removal, and an EventBridge rule invokes another Lambda every five minutes.
    All functions are built from the same image, selecting their behavior by build target.
    '''

    def __init__(self, scope: Construct, construct_id: str, *, config: StackConfig, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.stack_config = config
        self.api_functions: Dict[str, _lambda.DockerImageFunction] = {}

        # === Storage ===
        self.table = self._create_table()

        # === HTTP API ===
        self.api = apigw.RestApi(self, "CleanServerlessBookSampleApi",
            rest_api_name="CleanServerlessBookSampleAPI",
            deploy_options=apigw.StageOptions(stage_name=config.stage_name),
        )
        for route in ROUTES:
            self._add_route(route)

        # === S3 trigger ===
        self.bucket, self.s3_handler = self._create_bucket_trigger()

        # === Schedule trigger ===
        self.schedule_rule, self.schedule_handler = self._create_schedule_trigger()

        # === Outputs ===
        CfnOutput(self, "ApiUrl", value=self.api.url, description="Base URL of the deployed REST API stage.")
        CfnOutput(self, "TableName", value=self.table.table_name)
        CfnOutput(self, "BucketName", value=self.bucket.bucket_name)

        if config.enable_nag:
            self._apply_nag_checks()

    def _create_table(self) -> dynamodb.Table:
        # Left unnamed when DYNAMO_TABLE_NAME is unset so CloudFormation generates one
        return dynamodb.Table(self, "ResourceTable",
            partition_key=dynamodb.Attribute(name=self.stack_config.pk_name, type=dynamodb.AttributeType.STRING),
            sort_key=dynamodb.Attribute(name=self.stack_config.sk_name, type=dynamodb.AttributeType.STRING),
            table_name=self.stack_config.table_name,
            billing_mode=dynamodb.BillingMode.PAY_PER_REQUEST,
            removal_policy=RemovalPolicy.DESTROY,
        )

    def create_function(self, target: str, name: str) -> _lambda.DockerImageFunction:
        """
        Creates one container-image Lambda from the shared image build context.

        Args:
            target: Dockerfile build target selecting the handler (api, s3event or schedule).
            name: Logical name, used as construct id and function name suffix.

        Returns:
            The new DockerImageFunction.
        """
        if target not in IMAGE_TARGETS:
            raise ValueError(f"Unknown image target {target!r}, expected one of {sorted(IMAGE_TARGETS)}")

        return _lambda.DockerImageFunction(self, name,
            function_name=f"{self.stack_config.function_name_prefix}-{name}",
            code=_lambda.DockerImageCode.from_image_asset(
                str(self.stack_config.image_directory),
                target=target,
            ),
            architecture=_lambda.Architecture.ARM_64,
            timeout=FUNCTION_TIMEOUT,
            memory_size=FUNCTION_MEMORY_MB,
            environment={
                "DYNAMO_TABLE_NAME": self.stack_config.table_name or self.table.table_name,
                "DYNAMO_PK_NAME": self.stack_config.pk_name,
                "DYNAMO_SK_NAME": self.stack_config.sk_name,
            },
        )

    def _add_route(self, route: RouteDescriptor) -> _lambda.DockerImageFunction:
        fn = self.create_function(API_TARGET, route.name)
        self.table.grant_full_access(fn)
        fn.add_to_role_policy(iam.PolicyStatement(
            actions=["dynamodb:*", "logs:*"],
            effect=iam.Effect.ALLOW,
            resources=["*"],
        ))

        # resource_for_path reuses path segments already added by earlier routes
        resource = self.api.root.resource_for_path(route.path)
        resource.add_method(route.method, apigw.LambdaIntegration(fn))

        self.api_functions[route.name] = fn
        return fn

    def _create_bucket_trigger(self):
        bucket = s3.Bucket(self, "ResourceBucket",
            bucket_name=self.stack_config.bucket_name,
            removal_policy=RemovalPolicy.DESTROY,
        )

        fn = self.create_function(S3_EVENT_TARGET, "s3Handler")
        bucket.grant_read_write(fn)
        self.table.grant_full_access(fn)

        # One handler receives both kinds of notification and branches on the event name
        fn.add_event_source(lambda_event_sources.S3EventSource(
            bucket,
            events=[s3.EventType.OBJECT_CREATED, s3.EventType.OBJECT_REMOVED],
        ))
        return bucket, fn

    def _create_schedule_trigger(self):
        rule = events.Rule(self, "ScheduleRule",
            schedule=events.Schedule.rate(SCHEDULE_RATE),
        )

        fn = self.create_function(SCHEDULE_TARGET, "scheduleHandler")
        fn.add_to_role_policy(iam.PolicyStatement(
            actions=["logs:CreateLogGroup", "logs:CreateLogStream", "logs:PutLogEvents"],
            effect=iam.Effect.ALLOW,
            resources=["*"],
        ))

        rule.add_target(targets.LambdaFunction(fn))
        return rule, fn

    def _apply_nag_checks(self) -> None:
        Aspects.of(self).add(AwsSolutionsChecks())
        NagSuppressions.add_stack_suppressions(self, [
            NagPackSuppression(id="AwsSolutions-APIG1", reason="Sample API, access logging is not configured."),
            NagPackSuppression(id="AwsSolutions-APIG2", reason="Request bodies are validated inside the api handler."),
            NagPackSuppression(id="AwsSolutions-APIG4", reason="Routes are intentionally open in this sample."),
            NagPackSuppression(id="AwsSolutions-APIG6", reason="Sample API, stage logging is not configured."),
            NagPackSuppression(id="AwsSolutions-COG4", reason="Routes are intentionally open in this sample."),
            NagPackSuppression(id="AwsSolutions-IAM4", reason="Functions use the AWS managed basic execution role."),
            NagPackSuppression(id="AwsSolutions-IAM5", reason="Handlers are granted dynamodb:* and logs:* on all resources."),
            NagPackSuppression(id="AwsSolutions-S1", reason="Sample bucket, server access logs are not required."),
            NagPackSuppression(id="AwsSolutions-S10", reason="Bucket is only written by Lambda over the AWS SDK."),
        ])
