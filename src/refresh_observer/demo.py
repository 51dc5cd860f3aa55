#!/usr/bin/env python3
"""
Credential Refresh Observer - DynamoDB demo

Runs DynamoDB calls against a local endpoint (LocalStack by default) with
credentials flowing through:

    static source -> RefreshObservingProvider -> botocore credential cache -> client

Refresh events and periodic TTL checks are logged under [CREDENTIALS].

Usage:
    refresh-observer-demo --endpoint http://localhost:4566 --iterations 1
"""
import argparse
import logging
import time
from datetime import datetime

from botocore.exceptions import ClientError

from .config import configure_logging, load_settings
from .context import Context
from .hooks import BotocoreSigningHook
from .provider import RefreshObservingProvider
from .session import observed_session
from .sources import StaticSource

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Log credential refreshes while calling DynamoDB')
    parser.add_argument('--endpoint', default='http://localhost:4566', help='DynamoDB endpoint URL')
    parser.add_argument('--region', default=None, help='AWS region (default: AWS_REGION or us-west-2)')
    parser.add_argument('--interval', type=float, default=None, help='TTL log interval in seconds')
    parser.add_argument('--pause', type=float, default=120.0, help='Seconds to wait between iterations')
    parser.add_argument('--iterations', type=int, default=0, help='Number of iterations (0 = forever)')
    return parser.parse_args(argv)


def run_iteration(client, hook, provider):
    table_name = 'MyTable' + datetime.now().strftime('%H%M%S')
    client.create_table(
        TableName=table_name,
        KeySchema=[{'AttributeName': 'ID', 'KeyType': 'HASH'}],
        AttributeDefinitions=[{'AttributeName': 'ID', 'AttributeType': 'S'}],
        BillingMode='PAY_PER_REQUEST',
    )
    logger.info(f"Table created: {table_name}")

    client.put_item(
        TableName=table_name,
        Item={'ID': {'S': '123'}, 'Name': {'S': 'LocalUser'}},
    )
    logger.info("Inserted item into table")

    response = client.get_item(TableName=table_name, Key={'ID': {'S': '123'}})
    logger.info(f"Fetched item: ID=123, Name={response['Item']['Name']['S']}")

    signed = hook.last_signed()
    if signed is not None:
        logger.info(
            f"Last request signed with AccessKey={signed.access_key_id}, "
            f"matches observed credentials: {signed.matches(provider.last_seen)}"
        )
    return table_name


def main(argv=None):
    args = parse_args(argv)
    settings = load_settings()
    configure_logging(settings.log_level)

    region = args.region or settings.aws_region
    interval = args.interval or settings.ttl_log_interval

    provider = RefreshObservingProvider(
        StaticSource('test', 'test'),
        refresh_on_expiry_change=settings.refresh_on_expiry_change,
    )
    ctx = Context.background()
    session = observed_session(provider, region_name=region, ctx=ctx)
    client = session.client('dynamodb', endpoint_url=args.endpoint)
    hook = BotocoreSigningHook().attach(client)

    iteration = 0
    try:
        with provider.start_ttl_logger(ctx, interval):
            while args.iterations == 0 or iteration < args.iterations:
                iteration += 1
                run_iteration(client, hook, provider)
                if args.iterations == 0 or iteration < args.iterations:
                    # keep the process alive to see TTL logs
                    time.sleep(args.pause)
    except ClientError as e:
        logger.error(f"DynamoDB call failed: {str(e)}")
        return 1
    finally:
        ctx.cancel()
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
