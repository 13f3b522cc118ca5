#!/usr/bin/env python3
"""CDK entry point for the clean serverless sample stack."""
import os
import sys
from typing import Optional

import aws_cdk as cdk
from dotenv import load_dotenv

from infra_cdk.clean_serverless_stack import CleanServerlessStack
from infra_cdk.config import ConfigError, StackConfig, get_config

STACK_ID = "CdkStack"


def build_app(config: StackConfig, outdir: Optional[str] = None) -> cdk.App:
    """Creates the CDK app holding one CleanServerlessStack for the given config."""
    app = cdk.App(outdir=outdir)
    CleanServerlessStack(
        app,
        STACK_ID,
        config=config,
        env=cdk.Environment(
            account=os.getenv("CDK_DEFAULT_ACCOUNT"),
            region=os.getenv("CDK_DEFAULT_REGION"),
        ),
    )
    return app


def main() -> None:
    # Values in .env do not override variables already set in the shell
    load_dotenv()
    try:
        config = get_config()
    except ConfigError as e:
        print(f"❌ Invalid deployment configuration: {e}", file=sys.stderr)
        sys.exit(1)

    build_app(config).synth()


if __name__ == "__main__":
    main()
