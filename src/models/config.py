"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class PhysicsConfig:
    """Domain assumptions used to turn a panel count into area and capacity."""
    avg_panel_area_sqm: float = 1.7
    watt_per_sqm: float = 180.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PhysicsConfig":
        return cls(
            avg_panel_area_sqm=d.get("avg_panel_area_sqm", 1.7),
            watt_per_sqm=d.get("watt_per_sqm", 180.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "avg_panel_area_sqm": self.avg_panel_area_sqm,
            "watt_per_sqm": self.watt_per_sqm,
        }


@dataclass
class GeometryConfig:
    """Reference frame for synthesized bounding boxes."""
    frame_size: int = 640

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GeometryConfig":
        return cls(frame_size=d.get("frame_size", 640))

    def to_dict(self) -> Dict[str, Any]:
        return {"frame_size": self.frame_size}


@dataclass
class RemoteBackendConfig:
    """HTTP inference backend configuration."""
    url: str = ""
    timeout_s: float = 10.0
    api_key: Optional[str] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "RemoteBackendConfig":
        return cls(
            url=d.get("url", ""),
            timeout_s=d.get("timeout_s", 10.0),
            api_key=d.get("api_key"),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "url": self.url,
            "timeout_s": self.timeout_s,
        }
        if self.api_key is not None:
            d["api_key"] = self.api_key
        return d


@dataclass
class DetectionConfig:
    """Detection engine configuration."""
    backend: str = "simulated"
    seed: Optional[int] = None
    presence_threshold: float = 0.3
    timeout_s: float = 30.0
    image_source: str = "Satellite/Manual Upload"
    remote: Optional[RemoteBackendConfig] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectionConfig":
        remote_dict = d.get("remote")
        remote = RemoteBackendConfig.from_dict(remote_dict) if remote_dict else None
        return cls(
            backend=d.get("backend", "simulated"),
            seed=d.get("seed"),
            presence_threshold=d.get("presence_threshold", 0.3),
            timeout_s=d.get("timeout_s", 30.0),
            image_source=d.get("image_source", "Satellite/Manual Upload"),
            remote=remote,
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "backend": self.backend,
            "seed": self.seed,
            "presence_threshold": self.presence_threshold,
            "timeout_s": self.timeout_s,
            "image_source": self.image_source,
        }
        if self.remote:
            d["remote"] = self.remote.to_dict()
        return d


@dataclass
class WorkflowConfig:
    """Retry policy of the verification workflow around the engine."""
    max_attempts: int = 3
    backoff_s: float = 0.5
    backoff_factor: float = 2.0

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WorkflowConfig":
        return cls(
            max_attempts=d.get("max_attempts", 3),
            backoff_s=d.get("backoff_s", 0.5),
            backoff_factor=d.get("backoff_factor", 2.0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "max_attempts": self.max_attempts,
            "backoff_s": self.backoff_s,
            "backoff_factor": self.backoff_factor,
        }


@dataclass
class StorageConfig:
    """Storage configuration."""
    local_database_path: str = "data/results.sqlite"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StorageConfig":
        return cls(
            local_database_path=d.get("local_database_path", "data/results.sqlite"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"local_database_path": self.local_database_path}


@dataclass
class WebConfig:
    """HTTP API configuration."""
    host: str = "0.0.0.0"
    port: int = 5000

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WebConfig":
        return cls(host=d.get("host", "0.0.0.0"), port=d.get("port", 5000))

    def to_dict(self) -> Dict[str, Any]:
        return {"host": self.host, "port": self.port}


@dataclass
class Config:
    """
    Complete application configuration.

    This is a typed representation of the YAML config structure.
    """
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    physics: PhysicsConfig = field(default_factory=PhysicsConfig)
    geometry: GeometryConfig = field(default_factory=GeometryConfig)
    workflow: WorkflowConfig = field(default_factory=WorkflowConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    web: WebConfig = field(default_factory=WebConfig)
    log_path: str = "logs/solar_verify.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Config":
        """Adapter: Create Config from raw dictionary (e.g., from load_config)."""
        return cls(
            detection=DetectionConfig.from_dict(d.get("detection", {}) or {}),
            physics=PhysicsConfig.from_dict(d.get("physics", {}) or {}),
            geometry=GeometryConfig.from_dict(d.get("geometry", {}) or {}),
            workflow=WorkflowConfig.from_dict(d.get("workflow", {}) or {}),
            storage=StorageConfig.from_dict(d.get("storage", {}) or {}),
            web=WebConfig.from_dict(d.get("web", {}) or {}),
            log_path=d.get("log_path", "logs/solar_verify.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or logging the effective config)."""
        return {
            "detection": self.detection.to_dict(),
            "physics": self.physics.to_dict(),
            "geometry": self.geometry.to_dict(),
            "workflow": self.workflow.to_dict(),
            "storage": self.storage.to_dict(),
            "web": self.web.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
