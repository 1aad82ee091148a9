"""
Key-value store adapters.

Sessions, the clipboard and share records all live in one flat namespace.
Per-key TTL is an expiry hint honoured lazily on read and list.
"""

import json
import logging
import os
import threading
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from cryptography.fernet import Fernet, InvalidToken

from errors import StoreError

logger = logging.getLogger("cliplink")


class KVStore(ABC):
    """Contract the share lifecycle needs from a storage backend"""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value for key, or None if missing or expired"""

    @abstractmethod
    def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        """Store value under key; ttl_seconds=None keeps it until deleted"""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key; missing keys are ignored"""

    @abstractmethod
    def list_keys(self, prefix: Optional[str] = None) -> List[str]:
        """Return live keys, optionally restricted to a prefix"""

    def exists(self, key: str) -> bool:
        return self.get(key) is not None


class MemoryStore(KVStore):
    """In-process store, used when persistence is disabled and in tests"""

    def __init__(self, clock=time.time):
        self._clock = clock
        self._lock = threading.Lock()
        # key -> {"value": str, "expires_at": float | None}
        self._data: Dict[str, dict] = {}

    def _is_live(self, entry: dict) -> bool:
        expires_at = entry.get("expires_at")
        return expires_at is None or self._clock() < expires_at

    def _purge_expired_unlocked(self) -> None:
        for key in [k for k, e in self._data.items() if not self._is_live(e)]:
            del self._data[key]

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            if not self._is_live(entry):
                # Dropped from disk on the next write
                del self._data[key]
                return None
            return entry["value"]

    def put(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        expires_at = self._clock() + ttl_seconds if ttl_seconds else None
        with self._lock:
            previous = self._data.get(key)
            self._data[key] = {"value": value, "expires_at": expires_at}
            try:
                self._changed_unlocked()
            except StoreError:
                self._restore_unlocked(key, previous)
                raise

    def delete(self, key: str) -> None:
        with self._lock:
            previous = self._data.pop(key, None)
            if previous is None:
                return
            try:
                self._changed_unlocked()
            except StoreError:
                self._restore_unlocked(key, previous)
                raise

    def _restore_unlocked(self, key: str, entry: Optional[dict]) -> None:
        if entry is None:
            self._data.pop(key, None)
        else:
            self._data[key] = entry

    def list_keys(self, prefix: Optional[str] = None) -> List[str]:
        with self._lock:
            self._purge_expired_unlocked()
            keys = sorted(self._data)
        if prefix:
            keys = [k for k in keys if k.startswith(prefix)]
        return keys

    def _changed_unlocked(self) -> None:
        """Hook for persistent subclasses. Caller holds self._lock."""


class EncryptedFile:
    """Handles encryption/decryption of the store document at rest"""

    def __init__(self, key_file: Path):
        self.key_file = key_file
        self.cipher = self._load_or_create_key()

    def _load_or_create_key(self) -> Fernet:
        """Load existing encryption key or create new one"""
        if self.key_file.exists():
            with open(self.key_file, 'rb') as f:
                key = f.read()
        else:
            key = Fernet.generate_key()
            self.key_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.key_file, 'wb') as f:
                f.write(key)
            os.chmod(self.key_file, 0o600)

        return Fernet(key)

    def encrypt(self, data: str) -> str:
        return self.cipher.encrypt(data.encode()).decode()

    def decrypt(self, encrypted_data: str) -> str:
        return self.cipher.decrypt(encrypted_data.encode()).decode()


class FileStore(MemoryStore):
    """MemoryStore persisted to a single Fernet-encrypted JSON file"""

    def __init__(self, store_file: Path, key_file: Path, clock=time.time):
        super().__init__(clock=clock)
        self.store_file = Path(store_file)
        self.encryption = EncryptedFile(Path(key_file))
        self._data = self._load()

    def _load(self) -> Dict[str, dict]:
        if not self.store_file.exists():
            return {}
        try:
            with open(self.store_file, 'r') as f:
                encrypted_data = f.read()
            data = json.loads(self.encryption.decrypt(encrypted_data))
        except (OSError, InvalidToken, ValueError) as e:
            logger.error(f"Failed to load store file {self.store_file}: {e}")
            raise StoreError() from e
        if not isinstance(data, dict):
            logger.error(f"Store file {self.store_file} has unexpected shape")
            raise StoreError()
        logger.info(f"Loaded {len(data)} keys from {self.store_file}")
        return data

    def _changed_unlocked(self) -> None:
        try:
            self.store_file.parent.mkdir(parents=True, exist_ok=True)
            encrypted_data = self.encryption.encrypt(json.dumps(self._data))
            tmp_file = self.store_file.with_suffix(".tmp")
            with open(tmp_file, 'w') as f:
                f.write(encrypted_data)
            os.chmod(tmp_file, 0o600)
            os.replace(tmp_file, self.store_file)
        except OSError as e:
            logger.error(f"Failed to save store file {self.store_file}: {e}")
            raise StoreError() from e
