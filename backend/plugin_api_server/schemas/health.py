from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class SystemHealthSnapshot(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    status: HealthStatus = Field(..., description="Overall health derived from plugin health checks")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="UTC timestamp when snapshot was generated",
    )
    version: Optional[str] = Field(
        default=None,
        description="Server package version string",
    )
    uptime_seconds: float = Field(..., description="Seconds since the application started")
    hot_reload: bool = Field(..., description="Whether the plugin directory watcher is active")
    plugins: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict,
        description="Per plugin file health check result",
    )
