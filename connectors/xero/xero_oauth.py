"""OAuth 2.0 Authorization Code Flow for Xero.

Implements user-delegated authentication for a single connected
organisation:
- CSRF state validation on callback
- PKCE when no client secret is configured (public client)
- Refresh token management
- Optional encrypted token storage

The provider also acts as the session: it remembers which tenant
(organisation) is current and resolves it for every accounting call.
"""

import base64
import hashlib
import secrets
import urllib.parse
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from core.errors import AuthenticationError, ExternalServiceError
from core.security.token_store import StoredToken
from core.observability.logging import get_logger

logger = get_logger(__name__)

CONNECTOR_TYPE = "xero"


class OAuthState(str, Enum):
    """OAuth flow states."""
    PENDING = "pending"      # Flow started, waiting for callback
    COMPLETED = "completed"  # Tokens obtained
    FAILED = "failed"        # Flow failed
    EXPIRED = "expired"      # Flow timed out


@dataclass
class PKCEChallenge:
    """PKCE code verifier and challenge."""
    verifier: str       # Random string, kept secret
    challenge: str      # SHA256 hash of verifier
    method: str = "S256"
    
    @classmethod
    def generate(cls) -> "PKCEChallenge":
        verifier_bytes = secrets.token_bytes(64)
        verifier = base64.urlsafe_b64encode(verifier_bytes).decode('utf-8').rstrip('=')
        
        challenge_hash = hashlib.sha256(verifier.encode('utf-8')).digest()
        challenge = base64.urlsafe_b64encode(challenge_hash).decode('utf-8').rstrip('=')
        
        return cls(verifier=verifier, challenge=challenge)


@dataclass
class OAuthFlowSession:
    """Tracks an in-progress OAuth flow, keyed by its state parameter."""
    state: str
    redirect_uri: str
    scopes: List[str]
    pkce: Optional[PKCEChallenge] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    status: OAuthState = OAuthState.PENDING
    error: Optional[str] = None
    
    @property
    def is_expired(self) -> bool:
        """Flow expires after 10 minutes."""
        return datetime.utcnow() > (self.created_at + timedelta(minutes=10))


@dataclass
class XeroOAuthConfig:
    """Configuration for the Xero authorization code flow."""
    client_id: str
    redirect_uri: str
    client_secret: Optional[str] = None
    scopes: List[str] = field(default_factory=lambda: [
        "offline_access",
        "accounting.settings",
        "accounting.transactions",
        "accounting.contacts",
    ])
    authorize_endpoint: str = "https://login.xero.com/identity/connect/authorize"
    token_endpoint: str = "https://identity.xero.com/connect/token"
    connections_endpoint: str = "https://api.xero.com/connections"


@dataclass
class OAuthTokens:
    """OAuth tokens with expiration tracking."""
    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 1800
    refresh_token: Optional[str] = None
    scope: str = ""
    obtained_at: datetime = field(default_factory=datetime.utcnow)
    
    @property
    def expires_at(self) -> datetime:
        return self.obtained_at + timedelta(seconds=self.expires_in)
    
    @property
    def is_expired(self) -> bool:
        """Check if access token expired (2 min buffer)."""
        return datetime.utcnow() >= (self.expires_at - timedelta(minutes=2))
    
    @property
    def authorization_header(self) -> str:
        return f"{self.token_type} {self.access_token}"
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
            "refresh_token": self.refresh_token,
            "scope": self.scope,
            "obtained_at": self.obtained_at.isoformat(),
        }
    
    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OAuthTokens":
        return cls(
            access_token=data["access_token"],
            token_type=data.get("token_type", "Bearer"),
            expires_in=data.get("expires_in", 1800),
            refresh_token=data.get("refresh_token"),
            scope=data.get("scope", ""),
            obtained_at=datetime.fromisoformat(data["obtained_at"]) if "obtained_at" in data else datetime.utcnow(),
        )
    
    @classmethod
    def from_token_response(cls, token_data: Dict[str, Any], previous: Optional["OAuthTokens"] = None) -> "OAuthTokens":
        return cls(
            access_token=token_data["access_token"],
            token_type=token_data.get("token_type", "Bearer"),
            expires_in=int(token_data.get("expires_in", 1800)),
            # Keep the old refresh token if the server did not rotate it
            refresh_token=token_data.get("refresh_token", previous.refresh_token if previous else None),
            scope=token_data.get("scope", previous.scope if previous else ""),
        )


class XeroOAuthProvider:
    """OAuth 2.0 Authorization Code flow for Xero.
    
    Flow:
    1. Admin opens GET /connect
    2. start_auth_flow() returns the consent URL
    3. Admin approves access in Xero
    4. Xero redirects to /callback with code and state
    5. complete_auth_flow() exchanges the code and reads the connected tenants
    6. resolve_tenant() returns the current tenant for accounting calls
    
    Usage:
        provider = XeroOAuthProvider(XeroOAuthConfig(client_id=..., redirect_uri=...))
        auth_url, session = provider.start_auth_flow()
        await provider.complete_auth_flow(state, code)
        tenant_id = await provider.resolve_tenant()
    """
    
    def __init__(
        self,
        config: XeroOAuthConfig,
        token_encryption=None,
        token_store=None,
    ):
        """Initialize OAuth provider.
        
        Args:
            config: OAuth configuration
            token_encryption: TokenEncryption for tokens at rest
            token_store: TokenStore backend; used only with token_encryption
        """
        self.config = config
        self._encryption = token_encryption
        self._store = token_store
        
        self._pending_flows: Dict[str, OAuthFlowSession] = {}
        self._tokens: Optional[OAuthTokens] = None
        self._tenant_id: Optional[str] = None
        self._tenant_name: Optional[str] = None
    
    # =========================================================================
    # Authorization flow
    # =========================================================================
    
    def start_auth_flow(self) -> Tuple[str, OAuthFlowSession]:
        """Start an OAuth authorization flow.
        
        Returns:
            Tuple of (authorization_url, session)
        """
        state = secrets.token_urlsafe(32)
        pkce = None if self.config.client_secret else PKCEChallenge.generate()
        
        session = OAuthFlowSession(
            state=state,
            redirect_uri=self.config.redirect_uri,
            scopes=list(self.config.scopes),
            pkce=pkce,
        )
        self._pending_flows[state] = session
        
        params = {
            "response_type": "code",
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "scope": " ".join(session.scopes),
            "state": state,
        }
        if pkce:
            params["code_challenge"] = pkce.challenge
            params["code_challenge_method"] = pkce.method
        
        auth_url = f"{self.config.authorize_endpoint}?{urllib.parse.urlencode(params)}"
        return auth_url, session
    
    def validate_callback(
        self,
        state: Optional[str],
        code: Optional[str],
        error: Optional[str] = None,
        error_description: Optional[str] = None,
    ) -> OAuthFlowSession:
        """Validate callback parameters.
        
        Raises:
            AuthenticationError: Unknown/expired state, provider error, or no code
        """
        session = self._pending_flows.pop(state, None) if state else None
        
        if not session:
            raise AuthenticationError("Invalid or expired OAuth state")
        
        if session.is_expired:
            session.status = OAuthState.EXPIRED
            raise AuthenticationError("OAuth flow expired; start again at /connect")
        
        if error:
            session.status = OAuthState.FAILED
            session.error = f"{error}: {error_description or 'Unknown error'}"
            raise AuthenticationError(f"Xero authorization failed: {session.error}")
        
        if not code:
            session.status = OAuthState.FAILED
            session.error = "No authorization code received"
            raise AuthenticationError(session.error)
        
        return session
    
    async def complete_auth_flow(
        self,
        state: Optional[str],
        code: Optional[str],
        error: Optional[str] = None,
        error_description: Optional[str] = None,
    ) -> OAuthTokens:
        """Exchange the authorization code for tokens and pick the tenant.
        
        Raises:
            AuthenticationError: Callback did not validate
            ExternalServiceError: Token exchange or connections lookup failed
        """
        session = self.validate_callback(state, code, error, error_description)
        
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": session.redirect_uri,
        }
        if session.pkce:
            data["client_id"] = self.config.client_id
            data["code_verifier"] = session.pkce.verifier
        
        token_data = await self._token_request(data)
        tokens = OAuthTokens.from_token_response(token_data)
        self._tokens = tokens
        session.status = OAuthState.COMPLETED
        
        await self.refresh_tenant()
        if self._tenant_id:
            await self._store_tokens(self._tenant_id, tokens)
        
        logger.info(f"Connected to Xero organisation {self._tenant_name or self._tenant_id}")
        return tokens
    
    async def _token_request(self, data: Dict[str, str]) -> Dict[str, Any]:
        auth = None
        if self.config.client_secret:
            auth = aiohttp.BasicAuth(self.config.client_id, self.config.client_secret)
        
        try:
            async with aiohttp.ClientSession() as http:
                async with http.post(
                    self.config.token_endpoint,
                    data=data,
                    auth=auth,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                ) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise ExternalServiceError(
                            f"Token request failed: {response.status} - {error_text}",
                            response.status,
                            error_text,
                        )
                    return await response.json()
        except aiohttp.ClientError as e:
            raise ExternalServiceError(f"Token request failed: {e}")
    
    # =========================================================================
    # Tokens
    # =========================================================================
    
    async def refresh_tokens(self) -> OAuthTokens:
        """Refresh the access token using the refresh token.
        
        Raises:
            AuthenticationError: No refresh token is held
            ExternalServiceError: Xero refused the refresh
        """
        if not self._tokens or not self._tokens.refresh_token:
            raise AuthenticationError("Connect to Xero first at /connect")
        
        data = {
            "grant_type": "refresh_token",
            "refresh_token": self._tokens.refresh_token,
        }
        if not self.config.client_secret:
            data["client_id"] = self.config.client_id
        
        token_data = await self._token_request(data)
        self._tokens = OAuthTokens.from_token_response(token_data, previous=self._tokens)
        
        if self._tenant_id:
            await self._store_tokens(self._tenant_id, self._tokens)
        
        logger.info("Refreshed Xero access token")
        return self._tokens
    
    async def get_authorization_header(self) -> Optional[str]:
        """Bearer header for API calls, refreshing an expired token first.
        
        Returns:
            "Bearer <token>" or None if not connected
        """
        if not self._tokens:
            return None
        if self._tokens.is_expired:
            await self.refresh_tokens()
        return self._tokens.authorization_header
    
    # =========================================================================
    # Tenant (session) resolution
    # =========================================================================
    
    @property
    def is_connected(self) -> bool:
        return self._tokens is not None
    
    @property
    def tenant_id(self) -> Optional[str]:
        return self._tenant_id
    
    async def fetch_connections(self) -> List[Dict[str, Any]]:
        """Organisations the current token may act on."""
        header = await self.get_authorization_header()
        if not header:
            raise AuthenticationError("Connect to Xero first at /connect")
        
        try:
            async with aiohttp.ClientSession() as http:
                async with http.get(
                    self.config.connections_endpoint,
                    headers={"Authorization": header, "Accept": "application/json"},
                ) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise ExternalServiceError(
                            f"Failed to list Xero connections: {response.status} - {error_text}",
                            response.status,
                            error_text,
                        )
                    return await response.json()
        except aiohttp.ClientError as e:
            raise ExternalServiceError(f"Failed to list Xero connections: {e}")
    
    async def refresh_tenant(self) -> Optional[str]:
        """Re-read connections and take the first organisation as current."""
        connections = await self.fetch_connections()
        first = connections[0] if connections else {}
        self._tenant_id = first.get("tenantId") or None
        self._tenant_name = first.get("tenantName")
        return self._tenant_id
    
    async def resolve_tenant(self) -> str:
        """Current tenant ID.
        
        Raises:
            AuthenticationError: Never connected, or no organisation is connected
        """
        if not self.is_connected:
            raise AuthenticationError("Connect to Xero first at /connect")
        if not self._tenant_id:
            await self.refresh_tenant()
        if not self._tenant_id:
            raise AuthenticationError("No tenant connected")
        return self._tenant_id
    
    def status(self) -> Dict[str, Any]:
        return {
            "connected": self.is_connected and bool(self._tenant_id),
            "tenant_id": self._tenant_id,
            "tenant_name": self._tenant_name,
            "expires_at": self._tokens.expires_at.isoformat() if self._tokens else None,
            "scopes": self._tokens.scope.split() if self._tokens and self._tokens.scope else [],
        }
    
    async def disconnect(self) -> bool:
        """Forget the tokens and tenant.
        
        Returns:
            True if a connection was dropped
        """
        was_connected = self.is_connected
        if self._store:
            await self._store.clear(CONNECTOR_TYPE)
        self._tokens = None
        self._tenant_id = None
        self._tenant_name = None
        return was_connected
    
    # =========================================================================
    # Token Storage (encrypted)
    # =========================================================================
    
    async def _store_tokens(self, tenant_id: str, tokens: OAuthTokens) -> None:
        if not (self._store and self._encryption):
            return
        
        stored = StoredToken(
            connector_type=CONNECTOR_TYPE,
            encrypted_token=self._encryption.encrypt(tokens.to_dict(), tenant_id=tenant_id),
            scopes=tokens.scope.split() if tokens.scope else [],
            expires_at=tokens.expires_at,
        )
        await self._store.save(stored)
    
    async def restore(self) -> bool:
        """Reload the stored connection, if any.
        
        Returns:
            True if tokens were restored
        """
        if not (self._store and self._encryption):
            return False
        
        stored = await self._store.load(CONNECTOR_TYPE)
        if not stored:
            return False
        try:
            self._tokens = OAuthTokens.from_dict(self._encryption.decrypt(stored.encrypted_token))
        except ValueError as e:
            logger.error(f"Failed to decrypt stored Xero tokens: {e}")
            return False
        self._tenant_id = stored.tenant_id
        logger.info(f"Restored Xero connection for tenant {stored.tenant_id}")
        return True
