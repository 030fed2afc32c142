"""
Token metadata retrieval for ERC721 and ERC1155 token URIs.
"""
import base64
import binascii
import json
import logging
import urllib.parse
from typing import Any, Dict, Optional

import requests
from pydantic import ValidationError as PydanticValidationError
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import ServiceConfig
from ..exceptions import TokenError, TokenErrorCode
from ..models import TokenMetadata

logger = logging.getLogger(__name__)


def substitute_id(uri: str, token_id: int) -> str:
    """Replace the ERC1155 ``{id}`` placeholder with the 64-digit lowercase hex id"""
    return uri.replace("{id}", format(token_id, "064x"))


class MetadataFetcher:
    """
    Resolves token URIs and loads metadata documents.

    Supports ``ipfs://`` (through the configured HTTP gateway), inline
    ``data:application/json`` documents and plain http(s) URLs.

    Args:
        config: Supplies the IPFS gateway and the request timeout
        retry_count: Number of retries for HTTP requests
        session: Optional pre-built requests session
    """

    def __init__(
        self,
        config: ServiceConfig,
        retry_count: int = 3,
        session: Optional[requests.Session] = None,
    ):
        self.config = config
        if session is None:
            session = requests.Session()
            retries = Retry(
                total=retry_count,
                backoff_factor=0.5,
                status_forcelist=[429, 500, 502, 503, 504],
                allowed_methods=["GET"],
                raise_on_status=False,
            )
            session.mount("http://", HTTPAdapter(max_retries=retries))
            session.mount("https://", HTTPAdapter(max_retries=retries))
        self.session = session

    def gateway_url(self, uri: str) -> str:
        """Rewrite ipfs:// and ipfs/ paths onto the HTTP gateway; leave other URIs alone"""
        if uri.startswith("ipfs://"):
            path = uri[len("ipfs://"):]
            if path.startswith("ipfs/"):
                path = path[len("ipfs/"):]
            return self.config.ipfs_gateway.rstrip("/") + "/" + path
        return uri

    def fetch(self, uri: str, token_address: Optional[str] = None) -> TokenMetadata:
        """
        Load and parse the metadata document at ``uri``.

        Raises:
            TokenError: METADATA_ERROR if the URI is empty or unsupported, the
                request fails or the document is not a JSON object
        """
        if not uri:
            raise TokenError(
                "Token has no metadata URI", TokenErrorCode.METADATA_ERROR, token_address=token_address
            )

        if uri.startswith("data:"):
            document = self._decode_data_uri(uri, token_address)
        else:
            url = self.gateway_url(uri)
            if urllib.parse.urlparse(url).scheme not in ("http", "https"):
                raise TokenError(
                    f"Unsupported metadata URI scheme: {uri}",
                    TokenErrorCode.METADATA_ERROR,
                    token_address=token_address,
                )
            document = self._get_json(url, token_address)

        if not isinstance(document, dict):
            raise TokenError(
                "Token metadata is not a JSON object", TokenErrorCode.METADATA_ERROR, token_address=token_address
            )
        try:
            metadata = TokenMetadata.model_validate(document)
        except PydanticValidationError as e:
            raise TokenError(
                f"Malformed token metadata: {e.errors()[0]['msg']}",
                TokenErrorCode.METADATA_ERROR,
                token_address=token_address,
            ) from e
        if metadata.image:
            metadata.image = self.gateway_url(metadata.image)
        return metadata

    def _get_json(self, url: str, token_address: Optional[str]) -> Any:
        logger.debug(f"Fetching token metadata from {url}")
        try:
            response = self.session.get(url, timeout=self.config.metadata_timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            logger.warning(f"Metadata request failed: {e}")
            raise TokenError(
                f"Failed to fetch token metadata: {e}",
                TokenErrorCode.METADATA_ERROR,
                token_address=token_address,
            ) from e
        except ValueError as e:
            raise TokenError(
                f"Invalid JSON in token metadata: {e}",
                TokenErrorCode.METADATA_ERROR,
                token_address=token_address,
            ) from e

    @staticmethod
    def _decode_data_uri(uri: str, token_address: Optional[str]) -> Dict[str, Any]:
        header, _, payload = uri.partition(",")
        if not header.startswith("data:application/json"):
            raise TokenError(
                f"Unsupported metadata data URI: {header}",
                TokenErrorCode.METADATA_ERROR,
                token_address=token_address,
            )
        try:
            if header.endswith(";base64"):
                text = base64.b64decode(payload).decode("utf-8")
            else:
                text = urllib.parse.unquote(payload)
            return json.loads(text)
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            raise TokenError(
                f"Invalid inline token metadata: {e}",
                TokenErrorCode.METADATA_ERROR,
                token_address=token_address,
            ) from e
