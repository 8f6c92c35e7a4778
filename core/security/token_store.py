"""Where the encrypted Xero connection lives between restarts.

The service holds one connection at a time, so a store keeps at most one
record per connector type.
"""

import json
import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.security.encryption import EncryptedToken
from core.observability.logging import get_logger

logger = get_logger(__name__)


@dataclass
class StoredToken:
    connector_type: str
    encrypted_token: EncryptedToken
    scopes: List[str] = field(default_factory=list)
    expires_at: Optional[datetime] = None

    @property
    def tenant_id(self) -> str:
        return self.encrypted_token.tenant_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "connector_type": self.connector_type,
            "encrypted_token": self.encrypted_token.to_dict(),
            "scopes": self.scopes,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredToken":
        expires_at = data.get("expires_at")
        return cls(
            connector_type=data["connector_type"],
            encrypted_token=EncryptedToken.from_dict(data["encrypted_token"]),
            scopes=data.get("scopes") or [],
            expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
        )


class TokenStore(ABC):

    @abstractmethod
    async def save(self, token: StoredToken) -> None:
        """Replace whatever connection was stored for the connector type."""

    @abstractmethod
    async def load(self, connector_type: str) -> Optional[StoredToken]:
        pass

    @abstractmethod
    async def clear(self, connector_type: str) -> bool:
        """Forget the stored connection; False when there was none."""


class FileTokenStore(TokenStore):
    """One owner-only JSON file per connector type: {base_path}/{type}.json"""

    def __init__(self, base_path: str = ".tokens"):
        self._base_path = Path(base_path)
        self._base_path.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        try:
            os.chmod(self._base_path, 0o700)
        except OSError:
            logger.warning(f"Could not restrict permissions on {self._base_path}")

    def _path(self, connector_type: str) -> Path:
        return self._base_path / f"{connector_type}.json"

    async def save(self, token: StoredToken) -> None:
        path = self._path(token.connector_type)
        with self._lock:
            path.write_text(json.dumps(token.to_dict(), indent=2), encoding="utf-8")
            try:
                os.chmod(path, 0o600)
            except OSError:
                logger.warning(f"Could not restrict permissions on {path}")
        logger.info(f"Saved {token.connector_type} connection for tenant {token.tenant_id}")

    async def load(self, connector_type: str) -> Optional[StoredToken]:
        path = self._path(connector_type)
        if not path.exists():
            return None
        with self._lock:
            try:
                return StoredToken.from_dict(json.loads(path.read_text(encoding="utf-8")))
            except (json.JSONDecodeError, KeyError, ValueError) as e:
                logger.error(f"Ignoring unreadable token file {path.name}: {e}")
                return None

    async def clear(self, connector_type: str) -> bool:
        path = self._path(connector_type)
        with self._lock:
            if not path.exists():
                return False
            path.unlink()
            return True
