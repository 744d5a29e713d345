"""The default codec table covering every catalog message type."""

from __future__ import annotations

import functools

from tablewire.catalog import (
    Namespace,
    TableIdentifier,
    namespace_from_json,
    namespace_to_json,
    table_identifier_from_json,
    table_identifier_to_json,
)
from tablewire.config import WireConfig
from tablewire.metadata import TableMetadata, table_metadata_from_json, table_metadata_to_json
from tablewire.partitioning import (
    UnboundPartitionSpec,
    UnboundSortOrder,
    partition_spec_from_json,
    partition_spec_to_json,
    sort_order_from_json,
    sort_order_to_json,
)
from tablewire.registry import CodecRegistry, MessageType, RegistryBuilder
from tablewire.requests import (
    CommitTransactionRequest,
    CreateViewRequest,
    RegisterTableRequest,
    ReportMetricsRequest,
    UpdateTableRequest,
    commit_transaction_request_from_json,
    commit_transaction_request_to_json,
    create_view_request_from_json,
    create_view_request_to_json,
    register_table_request_from_json,
    register_table_request_to_json,
    report_metrics_request_from_json,
    report_metrics_request_to_json,
    update_table_request_from_json,
    update_table_request_to_json,
)
from tablewire.responses import (
    ConfigResponse,
    ErrorResponse,
    LoadTableResponse,
    LoadViewResponse,
    OAuthTokenResponse,
    config_response_from_json,
    config_response_to_json,
    error_response_from_json,
    error_response_to_json,
    load_table_response_from_json,
    load_table_response_to_json,
    load_view_response_from_json,
    load_view_response_to_json,
    oauth_token_response_from_json,
    oauth_token_response_to_json,
)
from tablewire.scan import (
    CreateScanRequest,
    FetchPlanningResultResponse,
    FetchScanTasksRequest,
    FetchScanTasksResponse,
    PlanTableScanRequest,
    PlanTableScanResponse,
    create_scan_request_from_json,
    create_scan_request_to_json,
    fetch_planning_result_response_from_json,
    fetch_planning_result_response_to_json,
    fetch_scan_tasks_request_from_json,
    fetch_scan_tasks_request_to_json,
    fetch_scan_tasks_response_from_json,
    fetch_scan_tasks_response_to_json,
    plan_table_scan_request_from_json,
    plan_table_scan_request_to_json,
    plan_table_scan_response_from_json,
    plan_table_scan_response_to_json,
)
from tablewire.schema import Schema, schema_from_json, schema_to_json
from tablewire.updates import (
    MetadataUpdate,
    UpdateRequirement,
    metadata_update_from_json,
    metadata_update_to_json,
    update_requirement_from_json,
    update_requirement_to_json,
)
from tablewire.wire import BodyFormat


def register_all(builder: RegistryBuilder) -> RegistryBuilder:
    """Register the codec of every ``MessageType`` on ``builder``."""
    return (
        builder
        .register(MessageType.error_response, ErrorResponse,
                  error_response_to_json, error_response_from_json)
        .register(MessageType.table_identifier, TableIdentifier,
                  table_identifier_to_json, table_identifier_from_json)
        .register(MessageType.namespace, Namespace,
                  namespace_to_json, namespace_from_json)
        .register(MessageType.schema, Schema,
                  schema_to_json, schema_from_json)
        .register(MessageType.partition_spec, UnboundPartitionSpec,
                  partition_spec_to_json, partition_spec_from_json)
        .register(MessageType.sort_order, UnboundSortOrder,
                  sort_order_to_json, sort_order_from_json)
        .register(MessageType.metadata_update, MetadataUpdate,
                  metadata_update_to_json, metadata_update_from_json)
        .register(MessageType.update_requirement, UpdateRequirement,
                  update_requirement_to_json, update_requirement_from_json)
        .register(MessageType.table_metadata, TableMetadata,
                  table_metadata_to_json, table_metadata_from_json)
        .register(MessageType.oauth_token_response, OAuthTokenResponse,
                  oauth_token_response_to_json, oauth_token_response_from_json)
        .register(MessageType.report_metrics_request, ReportMetricsRequest,
                  report_metrics_request_to_json, report_metrics_request_from_json)
        .register(MessageType.commit_transaction_request, CommitTransactionRequest,
                  commit_transaction_request_to_json, commit_transaction_request_from_json)
        .register(MessageType.update_table_request, UpdateTableRequest,
                  update_table_request_to_json, update_table_request_from_json)
        .register(MessageType.register_table_request, RegisterTableRequest,
                  register_table_request_to_json, register_table_request_from_json)
        .register(MessageType.create_view_request, CreateViewRequest,
                  create_view_request_to_json, create_view_request_from_json)
        .register(MessageType.load_view_response, LoadViewResponse,
                  load_view_response_to_json, load_view_response_from_json)
        .register(MessageType.config_response, ConfigResponse,
                  config_response_to_json, config_response_from_json)
        .register(MessageType.load_table_response, LoadTableResponse,
                  load_table_response_to_json, load_table_response_from_json)
        .register(MessageType.create_scan_request, CreateScanRequest,
                  create_scan_request_to_json, create_scan_request_from_json)
        .register(MessageType.plan_table_scan_request, PlanTableScanRequest,
                  plan_table_scan_request_to_json, plan_table_scan_request_from_json)
        .register(MessageType.fetch_scan_tasks_request, FetchScanTasksRequest,
                  fetch_scan_tasks_request_to_json, fetch_scan_tasks_request_from_json)
        .register(MessageType.plan_table_scan_response, PlanTableScanResponse,
                  plan_table_scan_response_to_json, plan_table_scan_response_from_json)
        .register(MessageType.fetch_planning_result_response, FetchPlanningResultResponse,
                  fetch_planning_result_response_to_json,
                  fetch_planning_result_response_from_json)
        .register(MessageType.fetch_scan_tasks_response, FetchScanTasksResponse,
                  fetch_scan_tasks_response_to_json, fetch_scan_tasks_response_from_json)
    )


def build_default_registry(body_format: BodyFormat = "json") -> CodecRegistry:
    """Build a registry with a codec for every ``MessageType``.

    Raises
    ------
    ConfigurationError
        If any message type is left without a codec.
    """
    return register_all(RegistryBuilder()).build(require=MessageType, body_format=body_format)


def registry_from_config(config: WireConfig) -> CodecRegistry:
    return build_default_registry(config.codec.body_format)


@functools.cache
def default_registry() -> CodecRegistry:
    """Process-wide JSON registry, built on first use."""
    return build_default_registry()
