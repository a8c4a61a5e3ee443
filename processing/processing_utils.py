"""
Processing Utilities - Common Infrastructure

Shared run scaffolding for the pipeline: logging setup, a processing
context that loads configuration and reports success or failure, and a few
consistent log helpers.
"""

import sys
import traceback
from pathlib import Path
from typing import Optional, Union

import geopandas as gpd
import pandas as pd
from loguru import logger

from ops.config_loader import Config

from .exceptions import DataLoadError

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{module}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def configure_logging(verbose: bool = False) -> None:
    """Configure loguru logger with appropriate format and level."""
    logger.remove()  # Remove default handler
    logger.add(sys.stderr, format=LOG_FORMAT, level="DEBUG" if verbose else "INFO")


class ProcessingContext:
    """
    Context manager that handles the common processing infrastructure:
    - Configuration loading
    - Banner and completion logging
    - Error reporting (and optionally exiting) on failure

    Usage:
        with ProcessingContext("Ancestry Maps", config_file="ops/config.yaml") as ctx:
            states = load_and_relocate(...)
    """

    def __init__(
        self,
        process_name: str,
        config_file: Optional[Union[str, Path]] = None,
        project_root_override: Optional[Union[str, Path]] = None,
        exit_on_error: bool = True,
    ):
        """
        Initialize processing context.

        Args:
            process_name: Human-readable name for this processing task
            config_file: Config path (None searches the default locations)
            project_root_override: Override project root detection
            exit_on_error: Whether to exit on errors (default: True)
        """
        self.process_name = process_name
        self.config_file = config_file
        self.project_root_override = project_root_override
        self.exit_on_error = exit_on_error
        self.config: Optional[Config] = None

    def __enter__(self):
        """Enter the processing context - load config."""
        logger.info(f"🚀 {self.process_name}")
        logger.info("=" * (len(self.process_name) + 4))

        try:
            self.config = Config(self.config_file, self.project_root_override)
        except Exception as e:
            logger.critical(f"❌ Configuration error: {e}")
            logger.info("💡 Make sure config.yaml exists or pass --config")
            if self.exit_on_error:
                sys.exit(1)
            raise

        logger.info(f"📋 Project: {self.config.get('project_name')}")
        logger.info(f"📋 Description: {self.config.get('description')}")
        self.config.print_config_summary()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit the processing context - report the outcome."""
        if exc_type is None:
            logger.success(f"✅ {self.process_name} completed successfully!")
            return False

        if issubclass(exc_type, SystemExit):
            return False

        logger.critical(f"❌ {self.process_name} failed: {exc_val}")
        logger.trace("".join(traceback.format_exception(exc_type, exc_val, exc_tb)))
        if self.exit_on_error:
            sys.exit(1)
        return False


def log_processing_step(step_name: str, details: str = ""):
    """
    Log a processing step with consistent formatting.

    Args:
        step_name: Name of the processing step
        details: Optional details about the step
    """
    logger.info(f"🔄 {step_name}")
    if details:
        logger.info(f"   {details}")


def log_data_summary(data: Union[pd.DataFrame, gpd.GeoDataFrame], data_name: str):
    """
    Log a standard summary of loaded data.

    Args:
        data: DataFrame or GeoDataFrame to summarize
        data_name: Human-readable name for the data
    """
    if isinstance(data, gpd.GeoDataFrame):
        logger.info(f"  ✓ {data_name}: {len(data):,} features")
        if data.crs:
            logger.debug(f"    CRS: {data.crs}")
    else:
        logger.info(f"  ✓ {data_name}: {len(data):,} rows")

    logger.debug(f"    Columns: {list(data.columns)[:10]}{'...' if len(data.columns) > 10 else ''}")


def validate_required_files(*file_paths: Union[str, Path]):
    """
    Validate that all required files exist before processing.

    Args:
        *file_paths: Paths to files that must exist

    Raises:
        DataLoadError: If any required file is missing
    """
    missing_files = [str(p) for p in file_paths if not Path(p).exists()]

    if missing_files:
        logger.error(f"❌ Missing required files: {missing_files}")
        raise DataLoadError(f"Required input files not found: {missing_files}")

    logger.debug(f"✅ All required files exist: {len(file_paths)} files validated")
