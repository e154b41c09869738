"""Requester parameters attached to a request order.

The canonical serialisation produced here is hashed as the ``params``
string of the request order. Any change to key order, key presence,
whitespace or trailing-slash handling yields a different order hash.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Literal, Mapping, Optional, Sequence, Tuple, Union

from pydantic import AnyUrl, TypeAdapter, ValidationError

from .errors import InvalidRequestParams

logger = logging.getLogger(__name__)

StorageProvider = Literal["ipfs", "dropbox"]
STORAGE_PROVIDERS: Tuple[str, ...] = ("ipfs", "dropbox")

_URL_ADAPTER: TypeAdapter[AnyUrl] = TypeAdapter(AnyUrl)

KEY_ARGS = "iexec_args"
KEY_INPUT_FILES = "iexec_input_files"
KEY_SECRETS = "iexec_secrets"
KEY_STORAGE_PROVIDER = "iexec_result_storage_provider"
KEY_STORAGE_PROXY = "iexec_result_storage_proxy"


def normalize_url(value: Any, what: str) -> str:
    """Return the WHATWG serialisation of ``value`` (``https://host`` -> ``https://host/``)."""

    if not isinstance(value, str) or not value.strip():
        raise InvalidRequestParams(f"Invalid request params. Missing '{what}'.")
    try:
        return str(_URL_ADAPTER.validate_python(value))
    except ValidationError as exc:
        raise InvalidRequestParams(f"Invalid request params. Invalid '{what}'.") from exc


def _basename(url: str) -> str:
    cut = max(url.rfind("/"), url.rfind("\\"))
    return url[cut + 1:]


def _normalize_secrets(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, Mapping):
        try:
            indexed = {int(key): item for key, item in value.items()}
        except (TypeError, ValueError) as exc:
            raise InvalidRequestParams(f"Invalid '{KEY_SECRETS}' index") from exc
        if sorted(indexed) != list(range(1, len(indexed) + 1)):
            raise InvalidRequestParams(f"'{KEY_SECRETS}' indices must be 1..{len(indexed)}")
        items = [indexed[i] for i in range(1, len(indexed) + 1)]
    elif isinstance(value, (list, tuple)):
        items = list(value)
    else:
        raise InvalidRequestParams(f"Invalid '{KEY_SECRETS}' value")
    for item in items:
        if not isinstance(item, str) or not item:
            raise InvalidRequestParams(f"'{KEY_SECRETS}' values must be non-empty strings")
    return tuple(items)


def _normalize_input_files(value: Any) -> Tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise InvalidRequestParams(f"Invalid '{KEY_INPUT_FILES}' value")
    files = []
    for index, item in enumerate(value):
        if not isinstance(item, str) or not item.strip():
            raise InvalidRequestParams(
                f"inputFile[{index}] parameter is invalid. Expecting a non empty string"
            )
        url = normalize_url(item, KEY_INPUT_FILES)
        if not _basename(url).strip():
            raise InvalidRequestParams(f"inputFile[{index}] parameter is invalid. Basename is empty")
        files.append(url)
    return tuple(files)


@dataclass(frozen=True)
class RequestParams:
    """Immutable, validated requester parameters."""

    storage_provider: str
    storage_proxy: str
    args: Optional[str] = None
    input_files: Tuple[str, ...] = ()
    secrets: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.storage_provider:
            raise InvalidRequestParams(f"Invalid request params. Missing '{KEY_STORAGE_PROVIDER}'.")
        if self.storage_provider not in STORAGE_PROVIDERS:
            raise InvalidRequestParams(f"Invalid request params. Invalid '{KEY_STORAGE_PROVIDER}'.")
        object.__setattr__(self, "storage_proxy", normalize_url(self.storage_proxy, KEY_STORAGE_PROXY))
        if self.args is not None and not isinstance(self.args, str):
            raise InvalidRequestParams(f"Invalid '{KEY_ARGS}' value")
        object.__setattr__(self, "args", self.args or None)
        object.__setattr__(self, "input_files", _normalize_input_files(self.input_files))
        object.__setattr__(self, "secrets", _normalize_secrets(self.secrets))

    # Parsing ----------------------------------------------------------------
    @classmethod
    def parse(cls, value: Union["RequestParams", str, Mapping[str, Any]]) -> "RequestParams":
        """Build parameters from a JSON string or a mapping.

        Raises:
            InvalidRequestParams: when the storage provider is not ``ipfs`` or
                ``dropbox``, when the storage proxy is missing or not a URL, or
                when an optional field is malformed.
        """

        if isinstance(value, RequestParams):
            return value
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as exc:
                raise InvalidRequestParams("Invalid request params. Not a JSON document.") from exc
        if not isinstance(value, Mapping):
            raise InvalidRequestParams("Invalid request params. Expecting a JSON object.")

        input_files = value.get(KEY_INPUT_FILES)
        if isinstance(input_files, (list, tuple)) and not input_files:
            input_files = None
        secrets = value.get(KEY_SECRETS) or None
        params = cls(
            storage_provider=value.get(KEY_STORAGE_PROVIDER) or "",
            storage_proxy=value.get(KEY_STORAGE_PROXY) or "",
            args=value.get(KEY_ARGS) or None,
            input_files=input_files or (),
            secrets=secrets or (),
        )
        logger.debug(
            "Parsed request params",
            extra={"event": "request_params_parsed", "data": {"provider": params.storage_provider}},
        )
        return params

    # Accessors --------------------------------------------------------------
    def get_input_file(self, index: int) -> Optional[str]:
        if 0 <= index < len(self.input_files):
            return self.input_files[index]
        return None

    def get_secret(self, index: int) -> Optional[str]:
        """Return the secret registered under the 1-based ``index``."""

        if 1 <= index <= len(self.secrets):
            return self.secrets[index - 1]
        return None

    # Serialisation ----------------------------------------------------------
    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.args:
            data[KEY_ARGS] = self.args
        if self.input_files:
            data[KEY_INPUT_FILES] = list(self.input_files)
        if self.secrets:
            data[KEY_SECRETS] = {str(i): secret for i, secret in enumerate(self.secrets, start=1)}
        data[KEY_STORAGE_PROVIDER] = self.storage_provider
        # Only one trailing slash is removed.
        data[KEY_STORAGE_PROXY] = self.storage_proxy.removesuffix("/")
        return data

    def canonical_serialize(self) -> str:
        """Compact JSON in the fixed key order hashed inside request orders."""

        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)


def parse_request_params(value: Union[RequestParams, str, Mapping[str, Any]]) -> RequestParams:
    return RequestParams.parse(value)


__all__ = [
    "RequestParams",
    "StorageProvider",
    "STORAGE_PROVIDERS",
    "normalize_url",
    "parse_request_params",
]
