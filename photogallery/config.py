"""
Configuration management for the gallery build

Settings live in a YAML file. The raw dictionary is turned into an explicit
GalleryConfig that gets passed into the pipeline, so nothing reads global
constants at run time.
"""

import copy
import os
import re
import logging
from dataclasses import dataclass, field, fields, replace as dataclass_replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"

THUMBNAIL_FORMATS = ('webp', 'jpeg', 'png')
MANIFEST_MODES = ('incremental', 'full')


def _expand_env_vars(obj: Union[Dict, Any]) -> Union[Dict, Any]:
    """
    Recursively expand environment variables in config values.
    Supports ${VAR_NAME} syntax.
    """
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        pattern = r'\$\{([^}]+)\}'

        def replace_var(match):
            var_name = match.group(1)
            return os.getenv(var_name, match.group(0))  # Leave unresolved references alone
        return re.sub(pattern, replace_var, obj)
    else:
        return obj


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of base with override applied key by key."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[Union[str, Path]] = None,
                strict: bool = False) -> Dict[str, Any]:
    """
    Load configuration from YAML file

    Values from the file are merged over get_default_config(), so a partial
    file only needs the keys it changes.

    Args:
        config_path: Path to config file. If None, uses the packaged config.yaml
        strict: Raise instead of falling back to defaults when the file is
            missing or unusable (for a path the user asked for)

    Returns:
        Configuration dictionary

    Raises:
        ValueError: strict is set and the file cannot be used
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
    config_path = Path(config_path)

    if not config_path.exists():
        if strict:
            raise ValueError(f"Config file not found: {config_path}")
        logger.warning(f"Config file not found: {config_path}. Using defaults.")
        return get_default_config()

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        if strict:
            raise ValueError(f"Failed to load config from {config_path}: {e}") from e
        logger.error(f"Failed to load config from {config_path}: {e}")
        return get_default_config()

    if not isinstance(config, dict):
        if strict:
            raise ValueError(f"Config file {config_path} does not contain a mapping")
        logger.error(f"Config file {config_path} does not contain a mapping. Using defaults.")
        return get_default_config()

    logger.debug(f"Loaded configuration from {config_path}")
    return _deep_merge(get_default_config(), _expand_env_vars(config))


def get_default_config() -> Dict[str, Any]:
    """
    Get default configuration values

    Returns:
        Default configuration dictionary
    """
    return {
        'paths': {
            'photos_dir': 'public/photos',
            'thumbnails_dir': 'public/thumbnails',
            'manifest': 'public/photos.json',
        },
        'urls': {
            'photos_prefix': '/photos',
            'thumbnails_prefix': '/thumbnails',
        },
        'scan': {
            'extensions': ['.jpg', '.jpeg', '.png', '.webp'],
        },
        'thumbnails': {
            'enabled': True,
            'width': 600,
            'format': 'webp',
            'quality': 75,
        },
        'normalization': {
            'enabled': False,
            'max_dimension': 2500,
            'quality': 90,
        },
        'processing': {
            'concurrency': 4,
        },
        'manifest': {
            'mode': 'incremental',
            'prune': False,
        },
        'logging': {
            'level': 'INFO',
            'file': None,
        },
    }


def get_config_value(config: Dict[str, Any], key_path: str, default: Any = None) -> Any:
    """
    Get a nested configuration value using dot notation

    Args:
        config: Configuration dictionary
        key_path: Dot-separated key path (e.g., 'thumbnails.width')
        default: Default value if key not found

    Returns:
        Configuration value or default
    """
    keys = key_path.split('.')
    value = config

    try:
        for key in keys:
            value = value[key]
        return value
    except (KeyError, TypeError):
        return default


def update_config_value(config: Dict[str, Any], key_path: str, value: Any) -> None:
    """
    Update a nested configuration value using dot notation

    Args:
        config: Configuration dictionary to update
        key_path: Dot-separated key path (e.g., 'manifest.mode')
        value: New value to set
    """
    keys = key_path.split('.')
    current = config

    for key in keys[:-1]:
        if key not in current:
            current[key] = {}
        current = current[key]

    current[keys[-1]] = value


def _normalize_extension(ext: str) -> str:
    ext = str(ext).strip().lower()
    return ext if ext.startswith('.') else f'.{ext}'


@dataclass(frozen=True)
class GalleryConfig:
    """Everything one pipeline run needs to know."""

    photos_dir: Path = Path('public/photos')
    thumbnails_dir: Path = Path('public/thumbnails')
    manifest_path: Path = Path('public/photos.json')
    photos_url_prefix: str = '/photos'
    thumbnails_url_prefix: str = '/thumbnails'
    extensions: Tuple[str, ...] = ('.jpg', '.jpeg', '.png', '.webp')
    thumbnails_enabled: bool = True
    thumbnail_width: int = 600
    thumbnail_format: str = 'webp'
    thumbnail_quality: int = 75
    normalize_sources: bool = False
    max_dimension: int = 2500
    source_quality: int = 90
    concurrency: int = 4
    mode: str = 'incremental'
    prune: bool = False
    log_level: str = 'INFO'
    log_file: Optional[Path] = field(default=None)

    def __post_init__(self):
        object.__setattr__(self, 'photos_dir', Path(self.photos_dir))
        object.__setattr__(self, 'thumbnails_dir', Path(self.thumbnails_dir))
        object.__setattr__(self, 'manifest_path', Path(self.manifest_path))
        if self.log_file is not None:
            object.__setattr__(self, 'log_file', Path(self.log_file))
        object.__setattr__(self, 'extensions',
                           tuple(_normalize_extension(e) for e in self.extensions))
        object.__setattr__(self, 'thumbnail_format', str(self.thumbnail_format).lower())
        object.__setattr__(self, 'mode', str(self.mode).lower())
        self._validate()

    def _validate(self):
        if self.concurrency < 1:
            raise ValueError(f"processing.concurrency must be at least 1, got {self.concurrency}")
        if self.thumbnail_width < 1:
            raise ValueError(f"thumbnails.width must be at least 1, got {self.thumbnail_width}")
        if self.max_dimension < 1:
            raise ValueError(f"normalization.max_dimension must be at least 1, got {self.max_dimension}")
        for name in ('thumbnail_quality', 'source_quality'):
            quality = getattr(self, name)
            if not 1 <= quality <= 100:
                raise ValueError(f"{name} must be between 1 and 100, got {quality}")
        if self.thumbnail_format not in THUMBNAIL_FORMATS:
            raise ValueError(f"thumbnails.format must be one of {', '.join(THUMBNAIL_FORMATS)}, "
                             f"got {self.thumbnail_format!r}")
        if self.mode not in MANIFEST_MODES:
            raise ValueError(f"manifest.mode must be one of {', '.join(MANIFEST_MODES)}, "
                             f"got {self.mode!r}")
        if not self.extensions:
            raise ValueError("scan.extensions must not be empty")

    @property
    def incremental(self) -> bool:
        return self.mode == 'incremental'

    @property
    def thumbnail_extension(self) -> str:
        return 'jpg' if self.thumbnail_format == 'jpeg' else self.thumbnail_format

    @classmethod
    def from_dict(cls, config: Dict[str, Any], base_dir: Optional[Path] = None) -> "GalleryConfig":
        """
        Build a GalleryConfig from a configuration dictionary

        Args:
            config: Dictionary as returned by load_config()
            base_dir: Directory that relative paths are resolved against.
                Relative paths are left as-is when None.

        Returns:
            Validated GalleryConfig
        """
        config = _deep_merge(get_default_config(), config or {})

        def path_value(key_path: str) -> Optional[Path]:
            value = get_config_value(config, key_path)
            if value in (None, ''):
                return None
            path = Path(os.path.expanduser(str(value)))
            if base_dir is not None and not path.is_absolute():
                path = Path(base_dir) / path
            return path

        return cls(
            photos_dir=path_value('paths.photos_dir'),
            thumbnails_dir=path_value('paths.thumbnails_dir'),
            manifest_path=path_value('paths.manifest'),
            photos_url_prefix=str(get_config_value(config, 'urls.photos_prefix')).rstrip('/'),
            thumbnails_url_prefix=str(get_config_value(config, 'urls.thumbnails_prefix')).rstrip('/'),
            extensions=tuple(get_config_value(config, 'scan.extensions')),
            thumbnails_enabled=bool(get_config_value(config, 'thumbnails.enabled')),
            thumbnail_width=int(get_config_value(config, 'thumbnails.width')),
            thumbnail_format=get_config_value(config, 'thumbnails.format'),
            thumbnail_quality=int(get_config_value(config, 'thumbnails.quality')),
            normalize_sources=bool(get_config_value(config, 'normalization.enabled')),
            max_dimension=int(get_config_value(config, 'normalization.max_dimension')),
            source_quality=int(get_config_value(config, 'normalization.quality')),
            concurrency=int(get_config_value(config, 'processing.concurrency')),
            mode=get_config_value(config, 'manifest.mode'),
            prune=bool(get_config_value(config, 'manifest.prune')),
            log_level=str(get_config_value(config, 'logging.level')).upper(),
            log_file=path_value('logging.file'),
        )

    def replace(self, **overrides) -> "GalleryConfig":
        """Return a copy with the given fields replaced. None values are ignored."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown GalleryConfig fields: {', '.join(sorted(unknown))}")
        changes = {key: value for key, value in overrides.items() if value is not None}
        return dataclass_replace(self, **changes)
