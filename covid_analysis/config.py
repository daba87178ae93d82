#!/usr/bin/env python3
"""Pipeline Configuration and Parameter Documentation.

This module centralizes all pipeline parameters with their justifications and
default values using Pydantic for validation and documentation.

Parameters are organized by category:
- Metrics: Windowing, normalization and null-handling policy
- Segmentation: Quartile bucketing
- Validation: Join gating and diagnostic limits

Usage:
    >>> from covid_analysis.config import PipelineConfig
    >>> config = PipelineConfig()
    >>> print(config.metrics.moving_average_window)  # 7
    >>> config.metrics.describe('global_null_policy')  # Print full documentation
"""

from typing import Any, Dict, Literal

from pydantic import BaseModel, Field, field_validator


class _DocumentedParameters(BaseModel):
    """Base class for parameter groups that can print their own documentation."""

    model_config = {'frozen': True, 'extra': 'forbid'}

    def describe(self, param_name: str) -> None:
        """Print comprehensive documentation for a parameter.

        Args:
            param_name: Name of the parameter to describe
        """
        fields = type(self).model_fields
        if param_name not in fields:
            raise ValueError(f"Unknown parameter: {param_name}")

        field_info = fields[param_name]
        value = getattr(self, param_name)
        extra = field_info.json_schema_extra or {}

        print(f"\n{'=' * 70}")
        print(f"Parameter: {param_name}")
        print(f"{'=' * 70}")
        print(f"Value: {value}")
        if 'units' in extra:
            print(f"Units: {extra['units']}")
        print(f"\nDescription:")
        print(f"  {field_info.description}")
        if 'interpretation' in extra:
            print(f"\nInterpretation:")
            print(f"  {extra['interpretation']}")
        if 'notes' in extra:
            print(f"\nNotes:")
            print(f"  {extra['notes']}")
        print(f"{'=' * 70}\n")


# ============================================================================
# Metric Parameters
# ============================================================================

class MetricParameters(_DocumentedParameters):
    """Parameters of the per-row and per-group metric computations."""

    moving_average_window: int = Field(
        default=7,
        ge=1,
        le=60,
        description="Number of rows in the trailing moving-average window (the current row plus the preceding ones).",
        json_schema_extra={
            'units': 'rows (one row per reported day)',
            'interpretation': 'Smooths day-of-week reporting volatility in new cases and deaths',
            'notes': 'Rows at the start of a series average over however many rows are available.',
        }
    )

    per_capita_base: int = Field(
        default=100_000,
        gt=0,
        description="Population base used for per-capita normalization.",
        json_schema_extra={
            'units': 'people',
            'interpretation': 'Counts are rescaled to "per 100,000 population" for cross-country comparison',
        }
    )

    percent_scale: float = Field(
        default=100.0,
        gt=0.0,
        description="Multiplier turning a ratio into a percentage.",
        json_schema_extra={'units': 'dimensionless'}
    )

    global_null_policy: Literal['exclude', 'zero'] = Field(
        default='exclude',
        description="How missing new_cases/new_deaths values enter global daily sums.",
        json_schema_extra={
            'interpretation': "'exclude' skips missing values (a date with only missing values sums to null); "
                              "'zero' counts them as 0",
            'notes': 'Rolling vaccination sums always treat missing values as 0 so they never go backward.',
        }
    )


# ============================================================================
# Segmentation Parameters
# ============================================================================

class SegmentationParameters(_DocumentedParameters):
    """Parameters of the quartile-based country segmentation."""

    n_tiles: int = Field(
        default=4,
        ge=4,
        le=4,
        description="Number of rank buckets. Fixed to 4 because segment labels are defined on quartile pairs.",
        json_schema_extra={'units': 'buckets'}
    )

    high_tile_cutoff: int = Field(
        default=2,
        ge=1,
        le=3,
        description="Quartiles up to and including this value count as 'High'; the rest count as 'Low'.",
        json_schema_extra={
            'interpretation': 'The default treats the top 50% as High to avoid near-empty segments',
        }
    )


# ============================================================================
# Validation Parameters
# ============================================================================

class ValidationParameters(_DocumentedParameters):
    """Parameters of the data-quality checks."""

    gate_join_on_duplicates: bool = Field(
        default=True,
        description="Refuse to join when either table has duplicate (location, date) keys.",
        json_schema_extra={
            'interpretation': 'Duplicate keys would multiply rows in the join and inflate rolling sums',
        }
    )

    aggregate_preview_limit: int = Field(
        default=20,
        ge=1,
        description="Number of aggregate locations listed by the quality report.",
        json_schema_extra={'units': 'locations'}
    )

    @field_validator('aggregate_preview_limit')
    @classmethod
    def _limit_is_reasonable(cls, v: int) -> int:
        if v > 1000:
            raise ValueError(f"aggregate_preview_limit must be <= 1000, got {v}")
        return v


# ============================================================================
# Main Configuration Class
# ============================================================================

class PipelineConfig(BaseModel):
    """Complete pipeline configuration with all parameter categories.

    Usage:
        >>> config = PipelineConfig()
        >>> config.metrics.per_capita_base
        100000
        >>> config = PipelineConfig(metrics={'global_null_policy': 'zero'})
    """

    model_config = {'frozen': True, 'extra': 'forbid'}

    metrics: MetricParameters = Field(
        default_factory=MetricParameters,
        description="Metric parameters (windowing and normalization)"
    )

    segmentation: SegmentationParameters = Field(
        default_factory=SegmentationParameters,
        description="Segmentation parameters"
    )

    validation: ValidationParameters = Field(
        default_factory=ValidationParameters,
        description="Data quality and join gating parameters"
    )

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Export all parameters as nested dictionary."""
        return {
            'metrics': self.metrics.model_dump(),
            'segmentation': self.segmentation.model_dump(),
            'validation': self.validation.model_dump(),
        }

    def describe_all(self) -> None:
        """Print documentation for all parameters in all categories."""
        for category_name in ['metrics', 'segmentation', 'validation']:
            category = getattr(self, category_name)
            print(f"\n{'#' * 70}")
            print(f"# {category_name.upper()}")
            print(f"{'#' * 70}")
            for param_name in type(category).model_fields.keys():
                category.describe(param_name)


DEFAULT_CONFIG = PipelineConfig()


if __name__ == "__main__":
    """Print all parameters when run as script."""
    print("=" * 80)
    print("PIPELINE PARAMETERS")
    print("=" * 80)
    for category_name, values in DEFAULT_CONFIG.to_dict().items():
        print(f"\n{category_name.upper()}")
        print("-" * 80)
        for param_name, value in values.items():
            print(f"  {param_name:25s} = {value}")
