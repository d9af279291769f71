"""
AWS Usage Audit - Configuration Management

Supports loading configuration from:
1. YAML config file (--config)
2. Environment variables (AUDIT_*)
3. Command-line arguments (highest priority)

Config file example:
```yaml
output: "./reports"
log_level: INFO
profile: ${AUDIT_PROFILE:-}   # env var substitution
lookback_days: 90
period: 2592000
regions:
  - us-east-1
  - eu-west-1
```
"""
import logging
import os
import re
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .constants import DEFAULT_LOOKBACK_DAYS, DEFAULT_PERIOD_SECONDS, DEFAULT_REGIONS
from .utils import parse_list

logger = logging.getLogger(__name__)


# Default config file locations (checked in order)
DEFAULT_CONFIG_PATHS = [
    './usage-audit.yaml',
    './usage-audit.yml',
    '~/.usage-audit/config.yaml',
]

# Mapping from config keys to env vars
ENV_VAR_MAPPING = {
    'output': 'AUDIT_OUTPUT',
    'log_level': 'AUDIT_LOG_LEVEL',
    'profile': 'AUDIT_PROFILE',
    'regions': 'AUDIT_REGIONS',
    'lookback_days': 'AUDIT_LOOKBACK_DAYS',
    'period': 'AUDIT_PERIOD',
    'fail_fast': 'AUDIT_FAIL_FAST',
}

INT_KEYS = ('lookback_days', 'period')
BOOL_KEYS = ('fail_fast',)


class ConfigError(ValueError):
    """Raised when the merged configuration is invalid."""


@dataclass
class AuditConfig:
    """Effective settings for one collection run."""
    output: str = "."
    log_level: str = "INFO"
    profile: Optional[str] = None
    regions: List[str] = field(default_factory=lambda: list(DEFAULT_REGIONS))
    lookback_days: int = DEFAULT_LOOKBACK_DAYS
    period: int = DEFAULT_PERIOD_SECONDS
    fail_fast: bool = False


def _substitute_env_vars(value: Any) -> Any:
    """Substitute ${ENV_VAR} patterns in string values."""
    if isinstance(value, str):
        # Pattern: ${VAR_NAME} or ${VAR_NAME:-default}
        pattern = r'\$\{([^}:]+)(?::-([^}]*))?\}'

        def replace(match):
            var_name = match.group(1)
            default = match.group(2) or ''
            return os.environ.get(var_name, default)

        return re.sub(pattern, replace, value)
    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_substitute_env_vars(item) for item in value]
    return value


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('true', '1', 'yes')


def load_config_file(config_path: str) -> Dict[str, Any]:
    """Load configuration from a YAML file."""
    path = Path(config_path).expanduser()

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    file_mode = path.stat().st_mode
    if file_mode & (stat.S_IRWXG | stat.S_IRWXO):  # Group or world access
        logger.warning(f"Config file {config_path} has loose permissions. "
                       f"Consider: chmod 600 {config_path}")

    logger.info(f"Loading config from {path}")

    with open(path) as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    return _substitute_env_vars(config)


def find_default_config() -> Optional[str]:
    """Find a config file in default locations."""
    for path in DEFAULT_CONFIG_PATHS:
        expanded = Path(path).expanduser()
        if expanded.exists():
            return str(expanded)
    return None


def load_env_config() -> Dict[str, Any]:
    """Load configuration from environment variables."""
    config: Dict[str, Any] = {}

    for config_key, env_var in ENV_VAR_MAPPING.items():
        value = os.environ.get(env_var)
        if value is not None and value != '':
            config[config_key] = value

    return config


def args_to_config(args) -> Dict[str, Any]:
    """Convert argparse args to config dict format, skipping unset options."""
    config: Dict[str, Any] = {}

    for key in ('output', 'log_level', 'profile', 'regions', 'lookback_days', 'period'):
        value = getattr(args, key, None)
        if value is not None:
            config[key] = value

    # store_true flags only override when set
    if getattr(args, 'fail_fast', False):
        config['fail_fast'] = True

    return config


def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
    """Merge multiple config dicts. Later configs override earlier ones."""
    result: Dict[str, Any] = {}

    for config in configs:
        for key, value in config.items():
            if value is not None:
                result[key] = value

    return result


def build_config(merged: Dict[str, Any]) -> AuditConfig:
    """Coerce and validate a merged config dict into an AuditConfig."""
    config = AuditConfig()

    unknown = set(merged) - set(ENV_VAR_MAPPING)
    if unknown:
        logger.warning(f"Ignoring unknown config keys: {', '.join(sorted(unknown))}")

    if 'output' in merged:
        config.output = str(merged['output'])
    if 'log_level' in merged:
        config.log_level = str(merged['log_level']).upper()
    if merged.get('profile'):
        config.profile = str(merged['profile'])
    if 'regions' in merged:
        config.regions = parse_list(merged['regions'])
    for key in INT_KEYS:
        if key in merged:
            try:
                setattr(config, key, int(merged[key]))
            except (TypeError, ValueError):
                raise ConfigError(f"{key} must be an integer, got {merged[key]!r}")
    for key in BOOL_KEYS:
        if key in merged:
            setattr(config, key, _to_bool(merged[key]))

    if not config.regions:
        raise ConfigError("At least one region is required")
    if config.lookback_days <= 0:
        raise ConfigError(f"lookback_days must be positive, got {config.lookback_days}")
    if config.period <= 0:
        raise ConfigError(f"period must be positive, got {config.period}")

    return config


def load_config(args) -> AuditConfig:
    """
    Load configuration from all sources and merge them.

    Priority (highest to lowest):
    1. CLI arguments
    2. Config file (--config or default location)
    3. Environment variables
    """
    configs = []

    env_config = load_env_config()
    if env_config:
        logger.debug("Loaded config from environment variables")
        configs.append(env_config)

    config_path = getattr(args, 'config', None)
    if config_path:
        configs.append(load_config_file(config_path))
    else:
        default_config = find_default_config()
        if default_config:
            logger.info(f"Found default config file: {default_config}")
            configs.append(load_config_file(default_config))

    configs.append(args_to_config(args))

    return build_config(merge_configs(*configs))


def generate_sample_config() -> str:
    """Generate a sample config file content."""
    regions = "\n".join(f"#   - {region}" for region in DEFAULT_REGIONS)
    return f'''# AWS Usage Audit Configuration
#
# Environment variable substitution supported:
#   ${{VAR_NAME}}           - required env var
#   ${{VAR_NAME:-default}}  - env var with default value

# Output directory for the CSV reports and the log file
output: "."

# Logging level: DEBUG, INFO, WARNING, ERROR
log_level: INFO

# AWS CLI profile (optional, uses the default credential chain if not set)
# profile: my-profile

# Metric window: days to look back and CloudWatch aggregation period (seconds)
lookback_days: {DEFAULT_LOOKBACK_DAYS}
period: {DEFAULT_PERIOD_SECONDS}

# Abort the whole run on the first region error instead of skipping the region
fail_fast: false

# Regions to audit (default: the {len(DEFAULT_REGIONS)} regions below)
# regions:
{regions}
'''
