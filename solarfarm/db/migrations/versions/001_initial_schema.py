"""
Initial schema: panels, readings, predictions, recommendations, alerts,
system health and auto-tilt settings.

Revision ID: 001
Revises: None
Create Date: 2026-09-17

CHANGELOG:
- 2026-09-17: Initial creation (STORY-005)

TODO:
- None
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# Revision identifiers used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    """Create every farm table with its indexes."""
    op.create_table(
        "panels",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("panel_number", sa.Integer(), nullable=False, unique=True),
        sa.Column("location", sa.Text(), nullable=False),
        _timestamp("install_date"),
        sa.Column("health_score", sa.Double(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        _timestamp("last_maintenance", nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
    )

    op.create_table(
        "sensor_readings",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("panel_id", sa.Text(), nullable=False),
        _timestamp("timestamp"),
        sa.Column("energy_output", sa.Double(), nullable=False),
        sa.Column("sunlight_intensity", sa.Double(), nullable=False),
        sa.Column("temperature", sa.Double(), nullable=False),
        sa.Column("dust_level", sa.Double(), nullable=False),
        sa.Column("tilt_angle", sa.Double(), nullable=False),
        sa.Column("efficiency_percent", sa.Double(), nullable=False),
        sa.Column("dust_status", sa.Text(), nullable=False),
        sa.Column("current_level_ma", sa.Double(), nullable=False),
        sa.Column("power_output_mw", sa.Double(), nullable=False),
        sa.Column("overload", sa.Boolean(), nullable=False),
        sa.Column("sweep_enable", sa.Boolean(), nullable=False),
        sa.Column("auto_mode", sa.Boolean(), nullable=False),
        sa.Column("cleaning_done", sa.Boolean(), nullable=False),
    )
    op.create_index(
        "ix_sensor_readings_panel_ts", "sensor_readings", ["panel_id", "timestamp"]
    )
    op.create_index("ix_sensor_readings_ts", "sensor_readings", ["timestamp"])

    op.create_table(
        "predictions",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("panel_id", sa.Text(), nullable=True),
        _timestamp("timestamp"),
        _timestamp("predicted_date"),
        sa.Column("predicted_efficiency", sa.Double(), nullable=False),
        sa.Column("degradation_risk", sa.Text(), nullable=False),
        sa.Column("confidence_score", sa.Double(), nullable=False),
        sa.Column("factors", sa.JSON(), nullable=False),
    )
    op.create_index("ix_predictions_panel_id", "predictions", ["panel_id"])

    op.create_table(
        "recommendations",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("panel_id", sa.Text(), nullable=True),
        _timestamp("timestamp"),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("urgency", sa.Text(), nullable=False),
        sa.Column("impact_score", sa.Double(), nullable=False),
        sa.Column("ai_explanation", sa.Text(), nullable=False),
        sa.Column("implemented", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_recommendations_panel_id", "recommendations", ["panel_id"])

    op.create_table(
        "alerts",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("panel_id", sa.Text(), nullable=True),
        sa.Column("level", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        _timestamp("timestamp"),
        sa.Column("dismissed", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_alerts_panel_id", "alerts", ["panel_id"])

    op.create_table(
        "system_health",
        sa.Column("id", sa.Text(), primary_key=True),
        _timestamp("timestamp"),
        sa.Column("sensors", sa.JSON(), nullable=False),
        sa.Column("system_uptime", sa.Double(), nullable=False),
        sa.Column("data_quality", sa.Double(), nullable=False),
        sa.Column("diagnostic_message", sa.Text(), nullable=True),
    )
    op.create_index("ix_system_health_timestamp", "system_health", ["timestamp"])

    op.create_table(
        "auto_tilt_settings",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("mode", sa.Text(), nullable=False),
        sa.Column("min_tilt_angle", sa.Double(), nullable=False),
        sa.Column("max_tilt_angle", sa.Double(), nullable=False),
        sa.Column("adjustment_interval", sa.Integer(), nullable=False),
        sa.Column("use_weather_data", sa.Boolean(), nullable=False),
        sa.Column("aggressiveness", sa.Text(), nullable=False),
        _timestamp("updated_at"),
    )


def downgrade() -> None:
    """Drop every farm table."""
    for table in (
        "auto_tilt_settings",
        "system_health",
        "alerts",
        "recommendations",
        "predictions",
        "sensor_readings",
        "panels",
    ):
        op.drop_table(table)
