"""
Configuration Loader for the Ancestry Maps Pipeline

This module provides a centralized way to load and access configuration
settings from the config.yaml file. Every file path the pipeline touches is
resolved here against the project root; nothing changes the process working
directory.

Usage:
    from ops import Config

    config = Config()
    table = config.get_input_path('ancestry_csv')
    output_dir = config.get_output_dir()
"""

import copy
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml  # type: ignore[import-untyped]
from loguru import logger

from processing.map_loader import dataset_candidates

CONFIG_ENV_VAR = "ANCESTRY_MAPS_CONFIG"
ROOT_ENV_VAR = "PROJECT_ROOT_OVERRIDE"
PACKAGED_CONFIG = Path(__file__).parent / "config.yaml"


class Config:
    """Configuration manager for the ancestry maps pipeline."""

    # Default values that can be overridden in config
    DEFAULTS: Dict[str, Any] = {
        "directories": {"data": "data", "output": "maps"},
        "input_files": {
            "boundaries_dir": "data/geospatial",
            "boundaries_layer": "cb_2013_us_state_20m",
            "ancestry_csv": "data/census/ACS_13_1YR_DP02_with_ann.csv",
        },
        "columns": {
            "state_fips": "STATEFP",
            "state_code": "STUSPS",
            "state_name": "NAME",
            "table_label": "GEO.display-label",
        },
        "projection": {
            "source_crs": "EPSG:4269",
            "target_crs": (
                "+proj=laea +lat_0=45 +lon_0=-100 +x_0=0 +y_0=0 "
                "+a=6370997 +b=6370997 +units=m +no_defs"
            ),
            "excluded_fips": ["02", "15", "72", "66", "60", "69", "74", "78", "11"],
            "repair_invalid_geometry": False,
            "relocations": [
                {
                    "fips": "02",
                    "name": "Alaska",
                    "rotate": -50,
                    "scale_divisor": 2.2,
                    "shift": [-2100000, -2500000],
                },
                {"fips": "15", "name": "Hawaii", "rotate": -35, "shift": [5400000, -1400000]},
            ],
        },
        "ancestry": {
            "columns": {
                "pctArab": "HC03_VC187",
                "pctEnglish": "HC03_VC191",
                "pctGerman": "HC03_VC194",
                "pctIrish": "HC03_VC197",
                "pctItalian": "HC03_VC198",
                "pctPolish": "HC03_VC201",
                "pctSwedish": "HC03_VC208",
                "pctRussian": "HC03_VC203",
                "pctAmerican": "HC03_VC186",
                "pctCzech": "HC03_VC188",
                "pctDanish": "HC03_VC189",
                "pctDutch": "HC03_VC190",
                "pctFrench": "HC03_VC192",
                "pctGreek": "HC03_VC195",
                "pctScotchIrish": "HC03_VC204",
                "pctScottish": "HC03_VC205",
            },
            "render": [
                "Irish", "German", "Swedish", "Italian", "English", "Arab",
                "Russian", "Greek", "Polish", "French", "Dutch", "Danish",
            ],
            "grid": [
                "German", "English", "Irish", "Italian", "French", "Polish",
                "Swedish", "Dutch", "Danish", "Arab", "Russian", "Greek",
            ],
            "strict_join": False,
        },
        "visualization": {
            "color_ramp": ["#9ECAE1", "#6BAED6", "#4292C6", "#2171B5", "#08519C", "#08306B"],
            "missing_color": "#BDBDBD",
            "outline_color": "black",
            "outline_width": 0.3,
            "leader_width": 1.3,
            "title_size": 25,
            "legend_title": "%",
            "legend_size": 18,
            "map_dpi": 100,
            "single_size_px": 1000,
            "grid_size_px": 1200,
            "grid_columns": 3,
            "grid_font_scale": 0.45,
        },
    }

    # input_files keys naming a dataset id inside another input directory
    DATASET_KEYS: Dict[str, str] = {"boundaries_layer": "boundaries_dir"}

    def __init__(
        self,
        config_file: Optional[Union[str, Path]] = None,
        project_root_override: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize configuration manager.

        Args:
            config_file: Path to config file. If None, looks for:
                        1. Environment variable ANCESTRY_MAPS_CONFIG
                        2. config.yaml in current directory
                        3. ops/config.yaml shipped with the package
            project_root_override: Override project root detection (useful for temp configs)
        """
        if config_file is None:
            env_config = os.environ.get(CONFIG_ENV_VAR)
            if env_config and Path(env_config).exists():
                config_file = env_config
                logger.debug(f"Using config from environment: {config_file}")
            elif Path("config.yaml").exists():
                config_file = "config.yaml"
            elif PACKAGED_CONFIG.exists():
                config_file = PACKAGED_CONFIG
                logger.debug("Using packaged ops/config.yaml")
            else:
                raise FileNotFoundError(
                    f"No config.yaml found. Check current directory or set {CONFIG_ENV_VAR}"
                )

        self.config_path = Path(config_file).resolve()
        if not self.config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self.config_path}")

        if project_root_override:
            self.project_root = Path(project_root_override).resolve()
            logger.debug(f"Using project root override: {self.project_root}")
        elif os.environ.get(ROOT_ENV_VAR):
            self.project_root = Path(os.environ[ROOT_ENV_VAR]).resolve()
            logger.debug(f"Using project root from environment: {self.project_root}")
        else:
            self.project_root = self._find_project_root()

        logger.debug(f"Loading config from: {self.config_path}")
        logger.debug(f"Project root: {self.project_root}")

        with open(self.config_path, "r") as f:
            self.data = yaml.safe_load(f) or {}

        if not isinstance(self.data, dict):
            raise ValueError(f"Config file {self.config_path} must contain a mapping")

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation, falling back to DEFAULTS.

        Args:
            key_path: Dot-separated path to the configuration value
            default: Default value if key not found

        Returns:
            Configuration value
        """
        keys = key_path.split(".")

        for source in (self.data, self.DEFAULTS):
            value: Any = source
            for key in keys:
                if isinstance(value, dict) and key in value:
                    value = value[key]
                else:
                    value = None
                    break
            if value is not None:
                return copy.deepcopy(value)

        return default

    def _resolve(self, relative_path: Union[str, Path]) -> Path:
        path = Path(relative_path)
        return path if path.is_absolute() else self.project_root / path

    def get_input_path(self, filename_key: str) -> Path:
        """
        Get full path to an input file or directory listed under input_files.

        Args:
            filename_key: Key for the filename in input_files

        Returns:
            Full absolute path
        """
        relative_path_str = self.get(f"input_files.{filename_key}")
        if not relative_path_str:
            raise ValueError(
                f"Input filename key '{filename_key}' not found in config: input_files"
            )
        return self._resolve(relative_path_str)

    def get_output_dir(self, override: Optional[Union[str, Path]] = None) -> Path:
        """Image output directory, created on demand."""
        output_dir = self._resolve(override) if override else self._resolve(
            self.get("directories.output")
        )
        output_dir.mkdir(parents=True, exist_ok=True)
        return output_dir

    def get_column_name(self, column_key: str) -> str:
        """Get column name with intelligent defaults."""
        result = self.get(f"columns.{column_key}")
        if isinstance(result, str):
            return result
        raise ValueError(f"Column name not found or not a string: {column_key}")

    def get_projection_setting(self, setting_key: str) -> Any:
        return self.get(f"projection.{setting_key}")

    def get_ancestry_setting(self, setting_key: str) -> Any:
        return self.get(f"ancestry.{setting_key}")

    def get_visualization_setting(self, setting_key: str) -> Any:
        """Get visualization setting with intelligent defaults."""
        return self.get(f"visualization.{setting_key}")

    def get_variables(self, kind: str = "render") -> List[str]:
        """Variables to draw as single maps (``render``) or in the grid (``grid``)."""
        variables = self.get_ancestry_setting(kind)
        if not isinstance(variables, list):
            raise ValueError(f"ancestry.{kind} must be a list of variable names")
        return [str(v) for v in variables]

    def dataset_exists(self, layer_key: str) -> bool:
        """Whether the dataset id under ``layer_key`` exists inside its directory."""
        dataset_id = self.get(f"input_files.{layer_key}")
        if not dataset_id:
            raise ValueError(f"Input dataset key '{layer_key}' not found in config: input_files")
        source = self.get_input_path(self.DATASET_KEYS[layer_key])
        return any(p.is_file() for p in dataset_candidates(source, str(dataset_id)))

    def validate_input_files(self) -> Dict[str, bool]:
        """Validate that input files exist."""
        results: Dict[str, bool] = {}
        input_files = {**self.DEFAULTS["input_files"], **(self.data.get("input_files") or {})}

        for filename_key in input_files:
            try:
                if filename_key in self.DATASET_KEYS:
                    results[filename_key] = self.dataset_exists(filename_key)
                else:
                    results[filename_key] = self.get_input_path(filename_key).exists()
            except ValueError:
                results[filename_key] = False

        return results

    def print_config_summary(self) -> None:
        """Log a summary of the current configuration."""
        logger.debug("📋 Configuration Summary")
        logger.debug("=" * 50)
        logger.debug(f"Project: {self.get('project_name', 'Unknown')}")
        logger.debug(f"Description: {self.get('description', 'No description')}")
        logger.debug(f"Config file: {self.config_path}")
        logger.debug(f"Project root: {self.project_root}")

        logger.debug("📊 Input Files:")
        for file_key, exists in self.validate_input_files().items():
            status = "✅" if exists else "❌"
            value = self.get(f"input_files.{file_key}")
            if not value:
                logger.debug(f"  {status} {file_key}: (not set)")
            elif file_key in self.DATASET_KEYS:
                logger.debug(f"  {status} {file_key}: {value}")
            else:
                logger.debug(f"  {status} {file_key}: {self._resolve(value)}")

        logger.debug(f"🎨 Single maps: {', '.join(self.get_variables('render'))}")
        logger.debug(f"🎨 Grid: {', '.join(self.get_variables('grid'))}")

    def _find_project_root(self) -> Path:
        """Find the project root directory by looking for characteristic files/directories."""
        current = self.config_path.parent

        project_markers = ["data", "ops", "processing", "analysis", "pyproject.toml", ".git"]

        for _ in range(5):  # Limit to 5 levels up
            markers_found = sum(1 for marker in project_markers if (current / marker).exists())

            if markers_found >= 2:
                return current

            parent = current.parent
            if parent == current:
                break
            current = parent

        # Fallback: if config is in ops/, project root is parent
        if self.config_path.parent.name == "ops":
            return self.config_path.parent.parent

        logger.warning(
            f"Could not reliably detect project root, using config directory: {self.config_path.parent}"
        )
        return self.config_path.parent


# Convenience function for easy importing
def load_config(config_file: Optional[Union[str, Path]] = None) -> Config:
    """
    Load configuration from file.

    Args:
        config_file: Path to configuration file

    Returns:
        Config instance
    """
    return Config(config_file)
