"""
SQLAlchemy ORM models for the farm database.

One table per domain record. Enumerated fields are stored as plain text so
PostgreSQL and SQLite share a schema; prediction factors and system health
sensor states are JSON columns.

CHANGELOG:
- 2026-09-17: Initial creation (STORY-005)

TODO:
- None
"""

import datetime

from sqlalchemy import JSON, Boolean, DateTime, Double, Index, Integer, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all farm ORM models."""

    pass


class PanelRow(Base):
    """A solar panel. ``panel_number`` is unique across the farm."""

    __tablename__ = "panels"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    panel_number: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    location: Mapped[str] = mapped_column(Text, nullable=False)
    install_date: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    health_score: Mapped[float] = mapped_column(Double, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active")
    last_maintenance: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        """Return string representation of the PanelRow."""
        return (
            f"PanelRow(id={self.id!r}, panel_number={self.panel_number!r}, "
            f"health_score={self.health_score!r})"
        )


class SensorReadingRow(Base):
    """One timestamped observation for a panel.

    Attributes:
        id: Reading identifier.
        panel_id: Owning panel.
        timestamp: Observation time in UTC.
        energy_output: Output power in watts.
        sunlight_intensity: Irradiance in W/m^2.
        temperature: Panel temperature in Celsius.
        dust_level: Dust (0-10 scale or 0-4095 ADC counts, producer dependent).
        tilt_angle: Tilt in degrees.
        efficiency_percent: Efficiency, clamped 0-100.
        dust_status: Hardware dust classification label.
        current_level_ma: Panel current in mA.
        power_output_mw: Output power in mW.
        overload: Current above the hardware limit.
        sweep_enable: Cleaning sweep requested.
        auto_mode: Controller in automatic mode.
        cleaning_done: Cleaning completed flag.
    """

    __tablename__ = "sensor_readings"
    __table_args__ = (
        Index("ix_sensor_readings_panel_ts", "panel_id", "timestamp"),
        Index("ix_sensor_readings_ts", "timestamp"),
    )

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    panel_id: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    energy_output: Mapped[float] = mapped_column(Double, nullable=False)
    sunlight_intensity: Mapped[float] = mapped_column(Double, nullable=False)
    temperature: Mapped[float] = mapped_column(Double, nullable=False)
    dust_level: Mapped[float] = mapped_column(Double, nullable=False)
    tilt_angle: Mapped[float] = mapped_column(Double, nullable=False)
    efficiency_percent: Mapped[float] = mapped_column(Double, nullable=False)
    dust_status: Mapped[str] = mapped_column(Text, nullable=False, default="UNKNOWN")
    current_level_ma: Mapped[float] = mapped_column(Double, nullable=False, default=0.0)
    power_output_mw: Mapped[float] = mapped_column(Double, nullable=False, default=0.0)
    overload: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sweep_enable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    auto_mode: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    cleaning_done: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        """Return string representation of the SensorReadingRow."""
        return (
            f"SensorReadingRow(panel_id={self.panel_id!r}, "
            f"timestamp={self.timestamp!r}, energy_output={self.energy_output!r})"
        )


class PredictionRow(Base):
    __tablename__ = "predictions"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    panel_id: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    timestamp: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    predicted_date: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    predicted_efficiency: Mapped[float] = mapped_column(Double, nullable=False)
    degradation_risk: Mapped[str] = mapped_column(Text, nullable=False)
    confidence_score: Mapped[float] = mapped_column(Double, nullable=False)
    factors: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)


class RecommendationRow(Base):
    __tablename__ = "recommendations"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    panel_id: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    timestamp: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    urgency: Mapped[str] = mapped_column(Text, nullable=False)
    impact_score: Mapped[float] = mapped_column(Double, nullable=False)
    ai_explanation: Mapped[str] = mapped_column(Text, nullable=False)
    implemented: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class AlertRow(Base):
    __tablename__ = "alerts"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    panel_id: Mapped[str | None] = mapped_column(Text, nullable=True, index=True)
    level: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    dismissed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class SystemHealthRow(Base):
    __tablename__ = "system_health"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    timestamp: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    sensors: Mapped[dict] = mapped_column(JSON, nullable=False)
    system_uptime: Mapped[float] = mapped_column(Double, nullable=False)
    data_quality: Mapped[float] = mapped_column(Double, nullable=False)
    diagnostic_message: Mapped[str | None] = mapped_column(Text, nullable=True)


class AutoTiltSettingsRow(Base):
    """Singleton auto-tilt configuration row."""

    __tablename__ = "auto_tilt_settings"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    mode: Mapped[str] = mapped_column(Text, nullable=False, default="time_based")
    min_tilt_angle: Mapped[float] = mapped_column(Double, nullable=False, default=15.0)
    max_tilt_angle: Mapped[float] = mapped_column(Double, nullable=False, default=60.0)
    adjustment_interval: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    use_weather_data: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    aggressiveness: Mapped[str] = mapped_column(Text, nullable=False, default="moderate")
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
