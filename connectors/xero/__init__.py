"""Xero Connector Package.

Implements the AccountingConnector interface for the Xero Accounting API.
"""

from connectors.xero.xero_connector import XeroConnector
from connectors.xero.xero_client import (
    XeroApiClient,
    XeroApiConfig,
    XeroApiError,
    XeroAuthenticationError,
    XeroNotFoundError,
    XeroRateLimitError,
    XeroValidationError,
    RetryConfig,
)
from connectors.xero.xero_oauth import (
    CONNECTOR_TYPE,
    XeroOAuthProvider,
    XeroOAuthConfig,
    OAuthTokens,
    OAuthFlowSession,
    PKCEChallenge,
)

__all__ = [
    # Connector
    "XeroConnector",
    # HTTP client
    "XeroApiClient",
    "XeroApiConfig",
    "XeroApiError",
    "XeroAuthenticationError",
    "XeroNotFoundError",
    "XeroRateLimitError",
    "XeroValidationError",
    "RetryConfig",
    # OAuth
    "CONNECTOR_TYPE",
    "XeroOAuthProvider",
    "XeroOAuthConfig",
    "OAuthTokens",
    "OAuthFlowSession",
    "PKCEChallenge",
]
