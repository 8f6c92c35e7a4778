"""Xero HTTP Client.

Low-level HTTP client for Xero Accounting API calls.
Handles authentication and tenant headers, error mapping, and optional
retries (off by default).
"""

from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass, field
import json
import asyncio

import aiohttp

from core.errors import ExternalServiceError
from core.observability.logging import get_logger

logger = get_logger(__name__)


class XeroApiError(ExternalServiceError):
    """Base exception for Xero API errors."""
    pass


class XeroAuthenticationError(XeroApiError):
    """Authentication failed (401/403)."""
    pass


class XeroNotFoundError(XeroApiError):
    """Resource not found (404)."""
    pass


class XeroRateLimitError(XeroApiError):
    """Rate limit exceeded (429)."""
    def __init__(self, message: str, retry_after: int = 60):
        super().__init__(message, 429)
        self.retry_after = retry_after


class XeroValidationError(XeroApiError):
    """Validation error from Xero (400)."""
    pass


def extract_validation_messages(response_text: str) -> List[str]:
    """Pull ValidationErrors messages out of a Xero 400 body."""
    try:
        body = json.loads(response_text)
    except (TypeError, ValueError):
        return []
    
    messages = []
    for element in body.get("Elements", []) or []:
        for error in element.get("ValidationErrors", []) or []:
            if error.get("Message"):
                messages.append(error["Message"])
    if not messages and body.get("Message"):
        messages.append(body["Message"])
    return messages


@dataclass
class RetryConfig:
    """Configuration for retry behavior.
    
    max_retries defaults to 0: a failed call surfaces immediately.
    """
    max_retries: int = 0
    base_delay: float = 1.0  # seconds
    max_delay: float = 60.0  # seconds
    exponential_base: float = 2.0
    retry_on_status: Tuple[int, ...] = (429, 500, 502, 503, 504)
    
    def get_delay(self, attempt: int) -> float:
        """Calculate delay for retry attempt (exponential backoff)."""
        delay = self.base_delay * (self.exponential_base ** attempt)
        return min(delay, self.max_delay)


@dataclass
class XeroApiConfig:
    """Configuration for Xero API client."""
    base_url: str = "https://api.xero.com/api.xro/2.0"
    retry_config: RetryConfig = field(default_factory=RetryConfig)
    timeout_seconds: int = 30


class XeroApiClient:
    """HTTP client for the Xero Accounting API.
    
    Provides:
    - Authenticated, tenant-scoped API calls
    - Error mapping to XeroApiError subclasses
    
    Usage:
        client = XeroApiClient(oauth_provider, api_config)
        invoices = await client.get(tenant_id, "Invoices/abc")
        await client.close()
    """
    
    def __init__(self, auth_provider, api_config: Optional[XeroApiConfig] = None):
        """Initialize API client.
        
        Args:
            auth_provider: XeroOAuthProvider supplying the bearer token
            api_config: API configuration
        """
        self.auth_provider = auth_provider
        self.api_config = api_config or XeroApiConfig()
        self._session: Optional[aiohttp.ClientSession] = None
    
    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session
    
    async def close(self) -> None:
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
    
    async def _get_headers(self, tenant_id: str) -> Dict[str, str]:
        auth_header = await self.auth_provider.get_authorization_header()
        if not auth_header:
            raise XeroAuthenticationError("Not authenticated with Xero", 401)
        
        return {
            "Authorization": auth_header,
            "Xero-tenant-id": tenant_id,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
    
    def _build_url(self, endpoint: str) -> str:
        return f"{self.api_config.base_url}/{endpoint.lstrip('/')}"
    
    async def request(
        self,
        method: str,
        tenant_id: str,
        endpoint: str,
        params: Optional[Dict[str, str]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make an authenticated API request.
        
        Args:
            method: HTTP method
            tenant_id: Xero tenant the call acts on
            endpoint: API endpoint relative to the base URL (e.g. "Invoices")
            params: Query parameters
            data: Request body
            
        Returns:
            Response JSON
            
        Raises:
            XeroAuthenticationError: Authentication failed
            XeroNotFoundError: Resource not found
            XeroRateLimitError: Rate limit exceeded
            XeroValidationError: Validation error
            XeroApiError: Other API errors
        """
        url = self._build_url(endpoint)
        retry_config = self.api_config.retry_config
        timeout = aiohttp.ClientTimeout(total=self.api_config.timeout_seconds)
        session = self._get_session()
        
        for attempt in range(retry_config.max_retries + 1):
            headers = await self._get_headers(tenant_id)
            
            try:
                async with session.request(
                    method,
                    url,
                    headers=headers,
                    params=params,
                    json=data,
                    timeout=timeout,
                ) as response:
                    response_text = await response.text()
                    status = response.status
                    retry_after = response.headers.get("Retry-After")
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if attempt < retry_config.max_retries:
                    delay = retry_config.get_delay(attempt)
                    logger.warning(
                        f"{method} {endpoint} failed with {type(e).__name__}: {e}, "
                        f"retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise XeroApiError(f"Xero request failed: {type(e).__name__}: {e}")
            
            if status < 400:
                if status == 204 or not response_text:
                    return {}
                try:
                    return json.loads(response_text)
                except ValueError:
                    raise XeroApiError(
                        f"Xero returned a malformed body for {method} {endpoint}",
                        status,
                        response_text,
                    )
            
            if status in (401, 403):
                raise XeroAuthenticationError(
                    f"Xero authentication failed: {response_text}",
                    status,
                    response_text,
                )
            
            if status == 404:
                raise XeroNotFoundError(
                    f"Xero resource not found: {endpoint}",
                    status,
                    response_text,
                )
            
            if status == 400:
                messages = extract_validation_messages(response_text)
                detail = "; ".join(messages) if messages else response_text
                raise XeroValidationError(
                    f"Xero validation error: {detail}",
                    status,
                    response_text,
                )
            
            if status in retry_config.retry_on_status and attempt < retry_config.max_retries:
                delay = float(retry_after) if status == 429 and retry_after else retry_config.get_delay(attempt)
                logger.warning(
                    f"{method} {endpoint} failed with {status}, "
                    f"retrying in {delay:.1f}s (attempt {attempt + 1}/{retry_config.max_retries})"
                )
                await asyncio.sleep(delay)
                continue
            
            if status == 429:
                raise XeroRateLimitError(
                    "Xero rate limit exceeded",
                    int(retry_after) if retry_after else 60,
                )
            
            raise XeroApiError(
                f"Xero API error {status}: {response_text}",
                status,
                response_text,
            )
        
        raise XeroApiError(f"Xero request failed: {method} {endpoint}")
    
    async def get(
        self,
        tenant_id: str,
        endpoint: str,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        return await self.request("GET", tenant_id, endpoint, params=params)
    
    async def put(self, tenant_id: str, endpoint: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create entities (Xero uses PUT for create)."""
        return await self.request("PUT", tenant_id, endpoint, data=data)
    
    async def post(self, tenant_id: str, endpoint: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Update entities (Xero uses POST for update)."""
        return await self.request("POST", tenant_id, endpoint, data=data)
