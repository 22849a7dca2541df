"""Configuration loading and validation using Pydantic."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from .layouts import TRACKED_GROUPS


LOGGER = logging.getLogger("laserdesk.config")

DEFAULT_CONFIG_PATH = Path("config.yaml")


class PathsConfig(BaseModel):
    logs_dir: str = Field("logs", description="Directory for system.log and import_log.txt")
    reports_dir: str = Field("reports", description="Default directory for exported workbooks")


class StoreConfig(BaseModel):
    url: str = Field("sqlite:///laserdesk.db", description="SQLAlchemy database URL")
    page_size: int = Field(1000, ge=1, description="Rows per range read")


class IngestionConfig(BaseModel):
    allowed_extensions: List[str] = Field(
        [".xlsx", ".xlsm", ".csv"],
        description="File extensions accepted by the importer",
    )
    tracked_groups: List[str] = Field(
        list(TRACKED_GROUPS),
        min_length=1,
        description="Assignment groups whose open tickets take part in ghost detection",
    )

    @field_validator("allowed_extensions")
    @classmethod
    def normalize_extensions(cls, v):
        """Lower-case the extensions and make sure each carries its dot."""
        cleaned = []
        for ext in v:
            ext = str(ext).strip().lower()
            if not ext:
                continue
            cleaned.append(ext if ext.startswith(".") else f".{ext}")
        if not cleaned:
            raise ValueError("allowed_extensions must list at least one extension")
        return cleaned


class GhostConfig(BaseModel):
    action: Literal["report", "resolve-all", "ignore"] = Field(
        "report",
        description="What the CLI does with ghost incidents after a batch",
    )


class MetricsConfig(BaseModel):
    controllo_threshold_minutes: float = Field(
        2640,
        gt=0,
        description="Intervention duration above which a closed ticket violates the control SLA",
    )
    geo_threshold_pct: float = Field(80, ge=0, le=100, description="Per-region met share required to pass")
    cohorts: Dict[str, str] = Field(
        default_factory=lambda: {"Filiali": "TECNOFIL", "Presidi": "TECNODIR"},
        description="Cohort label -> servizio_hd value",
    )

    @field_validator("cohorts")
    @classmethod
    def validate_cohorts(cls, v):
        if not v:
            raise ValueError("at least one SLA cohort is required")
        return {str(label): str(service).strip().upper() for label, service in v.items()}


class ReportFormatting(BaseModel):
    header_fill: str = Field("1F4E78", description="Header background colour (hex RGB)")
    header_font_color: str = Field("FFFFFF", description="Header font colour (hex RGB)")
    max_column_width: int = Field(50, ge=8)

    @field_validator("header_fill", "header_font_color")
    @classmethod
    def validate_colour(cls, v):
        v = str(v).lstrip("#").upper()
        if len(v) != 6 or any(ch not in "0123456789ABCDEF" for ch in v):
            raise ValueError(f"'{v}' is not a hex RGB colour")
        return v


class ReportConfig(BaseModel):
    formatting: ReportFormatting = Field(default_factory=ReportFormatting)


class LaserdeskConfig(BaseModel):
    """Complete application configuration."""

    paths: PathsConfig = Field(default_factory=PathsConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    ghosts: GhostConfig = Field(default_factory=GhostConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)


def load_config(path: Optional[str | Path] = None) -> LaserdeskConfig:
    """Load and validate a YAML configuration file.

    A missing file yields the defaults; an invalid one raises
    ``pydantic.ValidationError``.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if not config_path.exists():
        LOGGER.debug("No config file at %s; using defaults", config_path)
        return LaserdeskConfig()
    with open(config_path, "r", encoding="utf-8") as stream:
        raw = yaml.safe_load(stream) or {}
    return LaserdeskConfig(**raw)
