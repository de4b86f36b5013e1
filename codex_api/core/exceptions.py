"""
Codex Exception Hierarchy

All exceptions include code, message, and details for structured logging.
Store adapters are the only code that interprets backend error payloads;
they translate them into the typed errors below so jobs can branch on type.

Exception Hierarchy:
    CodexBaseError
    ├── StoreError
    │   ├── CollectionNotFoundError
    │   ├── FieldNotFoundError
    │   └── StoreNotConnectedError
    ├── UpstreamError
    │   └── GraphQLError
    ├── SeedFileError
    └── AssetError
"""
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class CodexBaseError(Exception):
    """
    Base exception for all codex errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging
    """

    default_code: str = "CODEX_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


# =============================================================================
# STORE ERRORS
# =============================================================================

class StoreError(CodexBaseError):
    """Base exception for item/file/folder store failures."""
    default_code = "STORE_ERROR"


class CollectionNotFoundError(StoreError):
    """The schema does not contain the requested collection (not provisioned yet)."""
    default_code = "COLLECTION_NOT_FOUND"

    def __init__(self, collection: str, message: Optional[str] = None, **kwargs):
        self.collection = collection
        super().__init__(
            message or f"Collection '{collection}' not found in schema",
            details={"collection": collection},
            **kwargs,
        )


class FieldNotFoundError(StoreError):
    """A write or query referenced a field the schema does not have."""
    default_code = "FIELD_NOT_FOUND"

    def __init__(self, field: Optional[str], message: Optional[str] = None, **kwargs):
        self.field = field
        super().__init__(
            message or f"Field '{field}' not found in schema",
            details={"field": field},
            **kwargs,
        )


class StoreNotConnectedError(StoreError):
    """The store could not be reached."""
    default_code = "STORE_NOT_CONNECTED"


# =============================================================================
# UPSTREAM ERRORS
# =============================================================================

class UpstreamError(CodexBaseError):
    """A producer API (The Graph, MOCA, IPFS gateway) returned an unusable response."""
    default_code = "UPSTREAM_ERROR"

    def __init__(
        self,
        message: str,
        source: str = "unknown",
        status_code: Optional[int] = None,
        **kwargs,
    ):
        self.source = source
        self.status_code = status_code
        details = kwargs.pop("details", None) or {}
        details.update({"source": source, "status_code": status_code})
        super().__init__(message, details=details, **kwargs)


class GraphQLError(UpstreamError):
    """A GraphQL response carried an `errors` array."""
    default_code = "GRAPHQL_ERROR"

    def __init__(self, errors: List[Any], source: str = "the_graph"):
        self.errors = errors
        super().__init__(
            f"GraphQL errors: {errors}",
            source=source,
            details={"errors": errors},
        )


# =============================================================================
# PIPELINE ERRORS
# =============================================================================

class SeedFileError(CodexBaseError):
    """A seed file could not be processed. Fatal for the seed run."""
    default_code = "SEED_FILE_ERROR"

    def __init__(self, path: str, message: str, **kwargs):
        self.path = path
        super().__init__(message, details={"path": path}, **kwargs)


class AssetError(CodexBaseError):
    """Decoding, fetching or uploading an asset failed. Never fatal to the item."""
    default_code = "ASSET_ERROR"
