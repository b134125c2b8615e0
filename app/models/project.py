"""Energy project model — owned by a user, scoped to an organization."""

import uuid
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import field_validator
from sqlmodel import Field, SQLModel

from app.models.base import TimestampMixin, json_text_column, new_uuid


class ProjectStatus(StrEnum):
    PLANNING = "PLANNING"
    DESIGN = "DESIGN"
    PERMITTING = "PERMITTING"
    FINANCING = "FINANCING"
    PROCUREMENT = "PROCUREMENT"
    CONSTRUCTION = "CONSTRUCTION"
    COMMISSIONING = "COMMISSIONING"
    OPERATIONAL = "OPERATIONAL"
    MAINTENANCE = "MAINTENANCE"
    DECOMMISSIONING = "DECOMMISSIONING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    ON_HOLD = "ON_HOLD"


class ProjectType(StrEnum):
    RESIDENTIAL = "RESIDENTIAL"
    COMMERCIAL = "COMMERCIAL"
    INDUSTRIAL = "INDUSTRIAL"
    UTILITY_SCALE = "UTILITY_SCALE"
    COMMUNITY = "COMMUNITY"
    RESEARCH = "RESEARCH"


class EnergySource(StrEnum):
    SOLAR_PV = "SOLAR_PV"
    SOLAR_THERMAL = "SOLAR_THERMAL"
    BIPV = "BIPV"
    WIND_ONSHORE = "WIND_ONSHORE"
    WIND_OFFSHORE = "WIND_OFFSHORE"
    HYDROELECTRIC = "HYDROELECTRIC"
    MICRO_HYDRO = "MICRO_HYDRO"
    PUMPED_STORAGE_HYDRO = "PUMPED_STORAGE_HYDRO"
    GEOTHERMAL = "GEOTHERMAL"
    ENHANCED_GEOTHERMAL = "ENHANCED_GEOTHERMAL"
    BIOMASS = "BIOMASS"
    BIOGAS = "BIOGAS"
    BIOFUEL = "BIOFUEL"
    OCEAN_WAVE = "OCEAN_WAVE"
    OCEAN_TIDAL = "OCEAN_TIDAL"
    OCEAN_THERMAL = "OCEAN_THERMAL"
    HYBRID = "HYBRID"


class Project(TimestampMixin, SQLModel, table=True):
    __tablename__ = "projects"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    organization_id: uuid.UUID = Field(foreign_key="organizations.id", nullable=False, index=True)
    owner_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)

    name: str = Field(max_length=255, nullable=False)
    description: str = Field(default="", max_length=2000)
    project_type: ProjectType = Field(nullable=False)
    energy_source: EnergySource = Field(nullable=False)
    status: ProjectStatus = Field(default=ProjectStatus.PLANNING, index=True)

    system_capacity: float | None = Field(default=None)  # kW
    estimated_cost: float | None = Field(default=None)
    currency: str = Field(default="USD", max_length=3)
    progress_percent: int = Field(default=0)

    # {"lat": .., "lng": .., "address": .., "country": .., "region": ..}
    location: str = Field(default="{}", sa_column=json_text_column())


# ── Pydantic schemas ─────────────────────────────────────────

class ProjectCreate(SQLModel):
    organization_id: uuid.UUID
    name: str = Field(min_length=1, max_length=255)
    description: str = Field(default="", max_length=2000)
    project_type: ProjectType
    energy_source: EnergySource
    system_capacity: float | None = Field(default=None, ge=0)
    estimated_cost: float | None = Field(default=None, ge=0)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    location: dict = Field(default_factory=dict)


class ProjectUpdate(SQLModel):
    """Fields a client may change, over HTTP or the real-time channel.

    Omitted fields stay as they are. Only the nullable columns
    (capacity, cost, location) accept an explicit null.
    """

    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    status: ProjectStatus | None = None
    system_capacity: float | None = Field(default=None, ge=0)
    estimated_cost: float | None = Field(default=None, ge=0)
    progress_percent: int | None = Field(default=None, ge=0, le=100)
    location: dict | None = None

    @field_validator("name", "description", "status", "progress_percent", mode="before")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class ProjectRead(SQLModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    owner_id: uuid.UUID
    name: str
    description: str
    project_type: ProjectType
    energy_source: EnergySource
    status: ProjectStatus
    system_capacity: float | None
    estimated_cost: float | None
    currency: str
    progress_percent: int
    location: dict
    created_at: datetime
    updated_at: datetime
