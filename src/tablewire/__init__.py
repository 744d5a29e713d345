from tablewire.catalog import Namespace, TableIdentifier
from tablewire.codecs import build_default_registry, default_registry, registry_from_config
from tablewire.config import (
    CodecConfig,
    PlanningConfig,
    WireConfig,
    discover_config,
    load_config,
)
from tablewire.errors import (
    ConfigurationError,
    InvalidRequestError,
    InvalidResponseError,
    MalformedMessageError,
    NoSuchPlanError,
    NoSuchPlanTaskError,
    UnsupportedTypeError,
    WireError,
)
from tablewire.metadata import Snapshot, SnapshotRef, SnapshotRefType, TableMetadata
from tablewire.partitioning import (
    NullOrder,
    SortDirection,
    SortField,
    UnboundPartitionField,
    UnboundPartitionSpec,
    UnboundSortOrder,
)
from tablewire.planning import Planner, ScanPlanService, TaskResolver
from tablewire.registry import Codec, CodecRegistry, MessageType, RegistryBuilder
from tablewire.requests import (
    CommitReport,
    CommitTransactionRequest,
    CreateViewRequest,
    RegisterTableRequest,
    ReportMetricsRequest,
    ScanReport,
    UpdateTableRequest,
)
from tablewire.responses import (
    ConfigResponse,
    ErrorResponse,
    LoadTableResponse,
    LoadViewResponse,
    OAuthTokenResponse,
)
from tablewire.scan import (
    ContentFile,
    CreateScanRequest,
    FetchPlanningResultResponse,
    FetchScanTasksRequest,
    FetchScanTasksResponse,
    FileContent,
    FileScanTask,
    PlanResult,
    PlanStatus,
    PlanTableScanRequest,
    PlanTableScanResponse,
)
from tablewire.schema import (
    ListType,
    MapType,
    NestedField,
    PrimitiveType,
    Schema,
    StructType,
)
from tablewire.updates import MetadataUpdate, UpdateRequirement
from tablewire.views import SQLViewRepresentation, ViewMetadata, ViewVersion
from tablewire.wire import BodyFormat

__all__ = [
    # Registry
    "Codec",
    "CodecRegistry",
    "MessageType",
    "RegistryBuilder",
    "build_default_registry",
    "default_registry",
    "registry_from_config",
    "BodyFormat",
    # Config
    "CodecConfig",
    "PlanningConfig",
    "WireConfig",
    "discover_config",
    "load_config",
    # Errors
    "WireError",
    "ConfigurationError",
    "UnsupportedTypeError",
    "MalformedMessageError",
    "InvalidRequestError",
    "InvalidResponseError",
    "NoSuchPlanError",
    "NoSuchPlanTaskError",
    # Catalog model
    "Namespace",
    "TableIdentifier",
    "PrimitiveType",
    "NestedField",
    "StructType",
    "ListType",
    "MapType",
    "Schema",
    "UnboundPartitionField",
    "UnboundPartitionSpec",
    "SortDirection",
    "NullOrder",
    "SortField",
    "UnboundSortOrder",
    "Snapshot",
    "SnapshotRef",
    "SnapshotRefType",
    "TableMetadata",
    "SQLViewRepresentation",
    "ViewVersion",
    "ViewMetadata",
    "MetadataUpdate",
    "UpdateRequirement",
    # Requests and responses
    "UpdateTableRequest",
    "CommitTransactionRequest",
    "RegisterTableRequest",
    "CreateViewRequest",
    "ScanReport",
    "CommitReport",
    "ReportMetricsRequest",
    "ErrorResponse",
    "OAuthTokenResponse",
    "ConfigResponse",
    "LoadTableResponse",
    "LoadViewResponse",
    # Scan planning
    "PlanStatus",
    "FileContent",
    "ContentFile",
    "FileScanTask",
    "CreateScanRequest",
    "PlanTableScanRequest",
    "FetchScanTasksRequest",
    "PlanTableScanResponse",
    "FetchPlanningResultResponse",
    "FetchScanTasksResponse",
    "PlanResult",
    "ScanPlanService",
    "Planner",
    "TaskResolver",
]
