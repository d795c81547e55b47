from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field

from plugin_api_server.schemas.endpoint import RegistryStats


class ProcessMemory(BaseModel):
    rss: int = Field(..., description="Resident set size in bytes")
    vms: int = Field(..., description="Virtual memory size in bytes")


class ProcessCpu(BaseModel):
    user: float = Field(..., description="User CPU seconds consumed by the process")
    system: float = Field(..., description="System CPU seconds consumed by the process")


class SystemMetrics(BaseModel):
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="UTC timestamp when metrics were sampled",
    )
    uptime_seconds: float = Field(..., description="Seconds since the application started")
    memory: ProcessMemory
    cpu: ProcessCpu
    plugins: RegistryStats
    endpoints: int = Field(..., description="Number of registered plugin endpoints")
