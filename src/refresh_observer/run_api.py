import argparse
import logging

import boto3
import uvicorn

from .api import create_app
from .config import configure_logging, load_settings
from .context import Context
from .observations import FanOutSink, LoggingSink, MemorySink
from .provider import RefreshObservingProvider
from .sources import AssumeRoleSource, SecretsManagerSource

logger = logging.getLogger(__name__)


def build_source(settings):
    client_args = {'region_name': settings.aws_region, 'endpoint_url': settings.aws_endpoint_url}
    if settings.role_arn:
        return AssumeRoleSource(settings.role_arn, client=boto3.client('sts', **client_args))
    if settings.secret_name:
        return SecretsManagerSource(settings.secret_name, client=boto3.client('secretsmanager', **client_args))
    return None


def main(argv=None):
    parser = argparse.ArgumentParser(description='Serve the credential refresh observer status API')
    parser.add_argument('--host', default='0.0.0.0', help='Bind address')
    parser.add_argument('--port', type=int, default=8000, help='Bind port')
    args = parser.parse_args(argv)

    settings = load_settings()
    configure_logging(settings.log_level)

    if not settings.api_key:
        logger.error("API_KEY environment variable not set")
        logger.error("Please set it in your .env file or environment")
        return 1

    source = build_source(settings)
    if source is None:
        logger.error("Set ROLE_ARN or SECRET_NAME to choose a credential source")
        return 1

    memory_sink = MemorySink(maxlen=1000)
    provider = RefreshObservingProvider(
        source,
        sink=FanOutSink(LoggingSink(), memory_sink),
        refresh_on_expiry_change=settings.refresh_on_expiry_change,
    )

    ctx = Context.background()
    # first retrieval, so /credentials/status has something to report
    provider.retrieve(ctx)

    with provider.start_ttl_logger(ctx, settings.ttl_log_interval):
        uvicorn.run(
            create_app(provider, memory_sink, settings.api_key),
            host=args.host,
            port=args.port,
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
