"""
Content hashing and deduplicated blob storage.

A response body is identified by its sha2-256 multihash, rendered as hex
(``1220<sha256 hex>``). Blobs are stored under the bare sha256 hex, so any
number of URLs serving identical bytes share one stored object.
"""

from multiformats import multihash
import structlog

from .errors import BlobStoreError

logger = structlog.get_logger(__name__)

HASH_FUNCTION = "sha2-256"


def content_hash(data: bytes) -> str:
    """Self-describing digest of ``data`` as a hex string."""
    return bytes(multihash.digest(data, HASH_FUNCTION)).hex()


def blob_key(hash_hex: str) -> str:
    """Storage key for a content hash: the digest without its algorithm prefix."""
    try:
        raw = multihash.unwrap(bytes.fromhex(hash_hex))
    except (ValueError, KeyError) as e:
        raise ValueError(f"not a multihash: {hash_hex!r}") from e
    return bytes(raw).hex()


def verify(hash_hex: str, data: bytes) -> bool:
    """Check ``data`` against a stored content hash."""
    return content_hash(data) == hash_hex


class Archiver:
    def __init__(self, store):
        self.store = store

    def store_content(self, data: bytes) -> str:
        """Hash ``data`` and write it to the blob store unless already present.

        Returns the content hash; the blob key is derived from it.
        """
        hash_hex = content_hash(data)
        key = blob_key(hash_hex)
        if self.store.exists(key):
            logger.debug("blob_exists", key=key, size=len(data))
            return hash_hex
        self.store.put(key, data)
        logger.info("blob_stored", key=key, size=len(data))
        return hash_hex

    def load(self, hash_hex: str) -> bytes:
        data = self.store.get(blob_key(hash_hex))
        if not verify(hash_hex, data):
            logger.error("blob_corrupt", hash=hash_hex, size=len(data))
            raise BlobStoreError(f"blob {hash_hex} does not match its hash")
        return data

    def has(self, hash_hex: str) -> bool:
        return self.store.exists(blob_key(hash_hex))

    def delete(self, hash_hex: str) -> None:
        """Remove a blob. Store failures propagate to the caller."""
        self.store.delete(blob_key(hash_hex))
        logger.info("blob_deleted", hash=hash_hex)
