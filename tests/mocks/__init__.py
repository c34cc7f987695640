"""
Test mocks for the apigw-sigv4-client test suite.

Available Mocks:
- ApiGatewayMock: IAM-authorized API Gateway stage that verifies SigV4
  signatures and echoes the JSON payload
- ApiGatewayMockConfig: Configuration for the API Gateway mock

Usage:
    from tests.mocks import ApiGatewayMock

    mock = ApiGatewayMock()
    mock.register_credentials(credentials)
    client = mock.client()
"""

from .api_gateway_mock import ApiGatewayMock, ApiGatewayMockConfig

__all__ = [
    "ApiGatewayMock",
    "ApiGatewayMockConfig",
]
