"""
Typed models for the solar verification application.

Detection results are immutable; config models mirror the YAML layout and
convert to and from plain dictionaries.
"""

from .detection import (
    QcStatus,
    PanelBox,
    ImageMetadata,
    DetectionRequest,
    PresenceEstimate,
    DetectionResult,
    StoredResult,
)
from .config import (
    Config,
    DetectionConfig,
    RemoteBackendConfig,
    PhysicsConfig,
    GeometryConfig,
    WorkflowConfig,
    StorageConfig,
    WebConfig,
)

__all__ = [
    # Detection
    "QcStatus",
    "PanelBox",
    "ImageMetadata",
    "DetectionRequest",
    "PresenceEstimate",
    "DetectionResult",
    "StoredResult",
    # Config
    "Config",
    "DetectionConfig",
    "RemoteBackendConfig",
    "PhysicsConfig",
    "GeometryConfig",
    "WorkflowConfig",
    "StorageConfig",
    "WebConfig",
]
