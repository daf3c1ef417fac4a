"""OAuth2 authorization-code client core with regional endpoint discovery."""

from __future__ import annotations

from oauthflow.claims import Claim, ClaimRule, ClaimsMapper, ClaimSet, ClaimTypes
from oauthflow.config.provider import ClientAuthMethod, ProviderConfig
from oauthflow.discovery import DiscoveryCache, EndpointResolver, ResolvedEndpoints
from oauthflow.exceptions import (
    CallbackError,
    ClaimMappingError,
    DeadlineExceededError,
    HttpError,
    LocatorNotFoundError,
    MissingLocatorError,
    OAuthFlowError,
    ParseError,
    ResolutionError,
    TokenError,
    TransportError,
)
from oauthflow.flow import (
    AuthenticationAttempt,
    AuthProperties,
    AuthTicket,
    CallbackRequest,
    FlowState,
    OAuthFlow,
)
from oauthflow.http import HttpExchanger
from oauthflow.tokens import TokenExchangeClient, TokenResponse

__all__ = [
    "AuthProperties",
    "AuthTicket",
    "AuthenticationAttempt",
    "CallbackError",
    "CallbackRequest",
    "Claim",
    "ClaimMappingError",
    "ClaimRule",
    "ClaimSet",
    "ClaimTypes",
    "ClaimsMapper",
    "ClientAuthMethod",
    "DeadlineExceededError",
    "DiscoveryCache",
    "EndpointResolver",
    "FlowState",
    "HttpError",
    "HttpExchanger",
    "LocatorNotFoundError",
    "MissingLocatorError",
    "OAuthFlow",
    "OAuthFlowError",
    "ParseError",
    "ProviderConfig",
    "ResolutionError",
    "ResolvedEndpoints",
    "TokenError",
    "TokenExchangeClient",
    "TokenResponse",
    "TransportError",
]
__version__ = "0.1.0"
