"""Catalog response messages: errors, tokens, config and load results."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from tablewire._json import (
    JsonObject,
    get_int,
    get_int_or_none,
    get_object,
    get_string,
    get_string_list_or_none,
    get_string_map_or_empty,
    get_string_or_none,
    malformed_on_value_error,
    put_if_present,
    require_object,
)
from tablewire.metadata import TableMetadata, table_metadata_from_json, table_metadata_to_json
from tablewire.views import ViewMetadata, view_metadata_from_json, view_metadata_to_json


@dataclass(frozen=True)
class ErrorResponse:
    """Error payload returned with any non-2xx status.

    Examples
    --------
    >>> ErrorResponse("Table does not exist: db.t", "NoSuchTableException", 404).code
    404
    """

    message: str
    type: str
    code: int
    stack: tuple[str, ...] = ()


_TOKEN_TYPES = frozenset({"bearer", "mac", "n_a"})


@dataclass(frozen=True)
class OAuthTokenResponse:
    """OAuth2 token endpoint response (RFC 6749 section 5.1).

    Unlike every other message, token responses use snake_case keys.
    """

    access_token: str
    token_type: str
    issued_token_type: str | None = None
    expires_in: int | None = None
    refresh_token: str | None = None
    scopes: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.access_token:
            msg = "Invalid access token: must not be empty"
            raise ValueError(msg)
        if self.token_type.lower() not in _TOKEN_TYPES:
            msg = f"Unsupported token type: {self.token_type} (must be bearer or N_A)"
            raise ValueError(msg)


_ENDPOINT = re.compile(r"(GET|HEAD|POST|PUT|DELETE) (/\S*)")


@dataclass(frozen=True)
class ConfigResponse:
    """Catalog configuration handed to a client at startup.

    ``overrides`` win over client config, which wins over ``defaults``.
    """

    defaults: dict[str, str] = field(default_factory=dict)
    overrides: dict[str, str] = field(default_factory=dict)
    endpoints: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        for endpoint in self.endpoints or ():
            if _ENDPOINT.fullmatch(endpoint) is None:
                msg = f"Invalid endpoint (must be '<METHOD> <path>'): {endpoint}"
                raise ValueError(msg)

    def merge(self, client_config: dict[str, str]) -> dict[str, str]:
        return {**self.defaults, **client_config, **self.overrides}


@dataclass(frozen=True)
class LoadTableResponse:
    metadata: TableMetadata
    metadata_location: str | None = None
    config: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class LoadViewResponse:
    metadata_location: str
    metadata: ViewMetadata
    config: dict[str, str] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Codecs
# ---------------------------------------------------------------------------


def error_model_to_json(error: ErrorResponse) -> JsonObject:
    """Encode the bare error model, as embedded in a failed plan result."""
    node: JsonObject = {"message": error.message, "type": error.type, "code": error.code}
    if error.stack:
        node["stack"] = list(error.stack)
    return node


def error_model_from_json(node: Any) -> ErrorResponse:
    obj = require_object(node, "error model")
    return ErrorResponse(
        message=get_string(obj, "message"),
        type=get_string(obj, "type"),
        code=get_int(obj, "code"),
        stack=get_string_list_or_none(obj, "stack") or (),
    )


def error_response_to_json(error: ErrorResponse) -> JsonObject:
    return {"error": error_model_to_json(error)}


def error_response_from_json(node: Any) -> ErrorResponse:
    obj = require_object(node, "error response")
    return error_model_from_json(get_object(obj, "error"))


def oauth_token_response_to_json(response: OAuthTokenResponse) -> JsonObject:
    node: JsonObject = {
        "access_token": response.access_token,
        "token_type": response.token_type,
    }
    put_if_present(node, "issued_token_type", response.issued_token_type)
    put_if_present(node, "expires_in", response.expires_in)
    put_if_present(node, "refresh_token", response.refresh_token)
    if response.scopes:
        node["scope"] = " ".join(response.scopes)
    return node


def oauth_token_response_from_json(node: Any) -> OAuthTokenResponse:
    obj = require_object(node, "token response")
    scope = get_string_or_none(obj, "scope")
    with malformed_on_value_error("token response"):
        return OAuthTokenResponse(
            access_token=get_string(obj, "access_token"),
            token_type=get_string(obj, "token_type"),
            issued_token_type=get_string_or_none(obj, "issued_token_type"),
            expires_in=get_int_or_none(obj, "expires_in"),
            refresh_token=get_string_or_none(obj, "refresh_token"),
            scopes=tuple(scope.split()) if scope else (),
        )


def config_response_to_json(response: ConfigResponse) -> JsonObject:
    node: JsonObject = {
        "defaults": dict(response.defaults),
        "overrides": dict(response.overrides),
    }
    if response.endpoints is not None:
        node["endpoints"] = list(response.endpoints)
    return node


def config_response_from_json(node: Any) -> ConfigResponse:
    obj = require_object(node, "config response")
    with malformed_on_value_error("config response"):
        return ConfigResponse(
            defaults=get_string_map_or_empty(obj, "defaults"),
            overrides=get_string_map_or_empty(obj, "overrides"),
            endpoints=get_string_list_or_none(obj, "endpoints"),
        )


def load_table_response_to_json(response: LoadTableResponse) -> JsonObject:
    node: JsonObject = {}
    put_if_present(node, "metadata-location", response.metadata_location)
    node["metadata"] = table_metadata_to_json(response.metadata)
    if response.config:
        node["config"] = dict(response.config)
    return node


def load_table_response_from_json(node: Any) -> LoadTableResponse:
    obj = require_object(node, "load table response")
    return LoadTableResponse(
        metadata_location=get_string_or_none(obj, "metadata-location"),
        metadata=table_metadata_from_json(get_object(obj, "metadata")),
        config=get_string_map_or_empty(obj, "config"),
    )


def load_view_response_to_json(response: LoadViewResponse) -> JsonObject:
    node: JsonObject = {
        "metadata-location": response.metadata_location,
        "metadata": view_metadata_to_json(response.metadata),
    }
    if response.config:
        node["config"] = dict(response.config)
    return node


def load_view_response_from_json(node: Any) -> LoadViewResponse:
    obj = require_object(node, "load view response")
    return LoadViewResponse(
        metadata_location=get_string(obj, "metadata-location"),
        metadata=view_metadata_from_json(get_object(obj, "metadata")),
        config=get_string_map_or_empty(obj, "config"),
    )
