"""Entry point for running the signed API Gateway invocation from a checkout."""
import sys

from apigw_client.cli import main

if __name__ == "__main__":
    sys.exit(main())
