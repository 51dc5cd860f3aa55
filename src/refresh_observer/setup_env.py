import argparse
import secrets
from pathlib import Path


def generate_api_key():
    """Generate a secure API key."""
    return secrets.token_urlsafe(32)


def render_env(api_key, region, interval, log_level='INFO', secret_name=None, role_arn=None):
    lines = [
        "# Status API",
        f"API_KEY={api_key}",
        "",
        "# AWS Configuration",
        f"AWS_REGION={region}",
    ]
    if role_arn:
        lines.append(f"ROLE_ARN={role_arn}")
    if secret_name:
        lines.append(f"SECRET_NAME={secret_name}")
    lines += [
        "",
        "# Credential observer",
        f"TTL_LOG_INTERVAL={interval}",
        "REFRESH_ON_EXPIRY_CHANGE=false",
        f"LOG_LEVEL={log_level}",
    ]
    return "\n".join(lines) + "\n"


def setup_environment(argv=None):
    """Write a .env file for the status API and the demo."""
    parser = argparse.ArgumentParser(description='Set up environment for the credential refresh observer')
    parser.add_argument('--region', default='us-west-2', help='AWS region')
    parser.add_argument('--interval', type=float, default=30, help='TTL log interval in seconds')
    parser.add_argument('--secret-name', help='Secrets Manager secret holding the credentials')
    parser.add_argument('--role-arn', help='Role to assume for credentials')
    parser.add_argument('--output', default='.env', help='File to write')
    args = parser.parse_args(argv)

    api_key = generate_api_key()
    Path(args.output).write_text(render_env(
        api_key, args.region, args.interval,
        secret_name=args.secret_name, role_arn=args.role_arn,
    ))

    print("Environment setup complete!")
    print(f"API Key: {api_key}")
    print("Please keep this API key secure and do not share it.")
    print("You can now run the API using: refresh-observer-api")
    return api_key


if __name__ == "__main__":
    setup_environment()
