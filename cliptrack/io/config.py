"""
Tracking configuration and its two codecs (JSON text and binary).

Both codecs converge on the same TrackingConfig.
"""

from typing import Any, Dict, Optional, Union
from dataclasses import dataclass, asdict
from pathlib import Path
import io
import json
import logging
import os
import struct
import numpy as np

from cliptrack.errors import ConfigError
from cliptrack.records.track_record import BoundingBox

logger = logging.getLogger(__name__)


DEFAULT_RECORD_PATH = os.getenv("CLIPTRACK_RECORD_PATH", "tracked_data.trk")

CONFIG_MAGIC = b"CLPTCFG\x00"
CONFIG_VERSION = 1

CONFIG_DTYPE = np.dtype([
    ('algorithm', '<U32'),
    ('x1', '<f8'),
    ('y1', '<f8'),
    ('x2', '<f8'),
    ('y2', '<f8'),
    ('start', '<i8'),
    ('end', '<i8'),
    ('process_interval', '?'),
    ('reseed_on_loss', '?'),
    ('use_association', '?'),
    ('smooth_with_association', '?'),
    ('record_path', '<U1024'),
])

# Accepted spellings for the required fields, first match wins
ALGORITHM_KEYS = ('algorithm', 'tracker-type', 'tracker_type')
BOX_KEYS = ('bounding_box', 'bbox', 'region')
RECORD_PATH_KEYS = ('record_path', 'protobuf_data_path')


@dataclass
class TrackingConfig:
    """Parameters for one tracking run."""
    algorithm: str
    bounding_box: BoundingBox
    start: int = 0
    end: int = 0
    process_interval: bool = False
    record_path: str = DEFAULT_RECORD_PATH
    reseed_on_loss: bool = True
    use_association: bool = True
    smooth_with_association: bool = False

    def __post_init__(self):
        if not self.algorithm:
            raise ConfigError("algorithm must be a non-empty string")
        if self.start < 0 or self.end < 0:
            raise ConfigError(f"start/end must be non-negative, got {self.start}/{self.end}")

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['bounding_box'] = {
            'x1': self.bounding_box.x1,
            'y1': self.bounding_box.y1,
            'x2': self.bounding_box.x2,
            'y2': self.bounding_box.y2,
        }
        return data


def _first_present(data: Dict[str, Any], keys) -> Optional[Any]:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _get_flag(data: Dict[str, Any], key: str, default: bool) -> bool:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise ConfigError(f"'{key}' must be true or false, got {value!r}")
    return value


def _parse_box(value: Any) -> BoundingBox:
    """Accept {x1, y1, x2, y2} or {x, y, width|w, height|h}."""
    if not isinstance(value, dict):
        raise ConfigError(f"bounding_box must be an object, got {type(value).__name__}")

    try:
        if all(k in value for k in ('x1', 'y1', 'x2', 'y2')):
            return BoundingBox(float(value['x1']), float(value['y1']),
                               float(value['x2']), float(value['y2']))
        if 'x' in value and 'y' in value:
            width = value.get('width', value.get('w'))
            height = value.get('height', value.get('h'))
            if width is not None and height is not None:
                return BoundingBox.from_xywh(float(value['x']), float(value['y']),
                                             float(width), float(height))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid bounding_box coordinates: {e}") from e

    raise ConfigError("bounding_box needs x1, y1, x2, y2 (or x, y, width, height)")


class ConfigLoader:
    """Parses configuration payloads into a TrackingConfig."""

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> TrackingConfig:
        """
        Build a config from a decoded payload. Unrecognized keys are ignored.

        Raises:
            ConfigError: If algorithm or bounding_box is missing or malformed
        """
        if not isinstance(data, dict):
            raise ConfigError("Configuration payload must be an object")

        algorithm = _first_present(data, ALGORITHM_KEYS)
        if algorithm is None:
            raise ConfigError("Missing required field 'algorithm'")
        if not isinstance(algorithm, str):
            raise ConfigError("'algorithm' must be a string")

        box_value = _first_present(data, BOX_KEYS)
        if box_value is None:
            raise ConfigError("Missing required field 'bounding_box'")
        box = _parse_box(box_value)

        start = data.get('start', 0)
        process_interval = _get_flag(data, 'process_interval', False)
        # The region's first frame implies an interval starting there
        if isinstance(box_value, dict) and box_value.get('first-frame') is not None:
            start = box_value['first-frame']
            process_interval = True
        try:
            start = int(start or 0)
            end = int(data.get('end', 0) or 0)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"start/end must be integers: {e}") from e

        record_path = _first_present(data, RECORD_PATH_KEYS) or DEFAULT_RECORD_PATH

        return TrackingConfig(
            algorithm=algorithm,
            bounding_box=box,
            start=start,
            end=end,
            process_interval=process_interval,
            record_path=str(record_path),
            reseed_on_loss=_get_flag(data, 'reseed_on_loss', True),
            use_association=_get_flag(data, 'use_association', True),
            smooth_with_association=_get_flag(data, 'smooth_with_association', False),
        )

    @staticmethod
    def from_json(text: str) -> TrackingConfig:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Configuration is not valid JSON: {e}") from e
        return ConfigLoader.from_dict(data)

    @staticmethod
    def to_json(config: TrackingConfig) -> str:
        return json.dumps(config.to_dict(), indent=2)

    @staticmethod
    def to_binary(config: TrackingConfig) -> bytes:
        """Encode a config as magic + version + one-row numpy record."""
        box = config.bounding_box
        row = np.array([(
            config.algorithm, box.x1, box.y1, box.x2, box.y2,
            config.start, config.end, config.process_interval,
            config.reseed_on_loss, config.use_association,
            config.smooth_with_association, config.record_path,
        )], dtype=CONFIG_DTYPE)

        buffer = io.BytesIO()
        buffer.write(CONFIG_MAGIC)
        buffer.write(struct.pack('<H', CONFIG_VERSION))
        np.save(buffer, row, allow_pickle=False)
        return buffer.getvalue()

    @staticmethod
    def from_binary(payload: bytes) -> TrackingConfig:
        """
        Decode a config written by to_binary().

        Raises:
            ConfigError: If the payload is not a readable binary config
        """
        header_size = len(CONFIG_MAGIC) + 2
        if len(payload) < header_size or not payload.startswith(CONFIG_MAGIC):
            raise ConfigError("Not a binary tracking configuration")

        (version,) = struct.unpack('<H', payload[len(CONFIG_MAGIC):header_size])
        if version > CONFIG_VERSION:
            raise ConfigError(f"Unsupported configuration version {version}")

        try:
            row = np.load(io.BytesIO(payload[header_size:]), allow_pickle=False)
        except (ValueError, OSError, EOFError) as e:
            raise ConfigError(f"Corrupt binary configuration: {e}") from e

        if row.dtype.names is None or len(row) != 1:
            raise ConfigError("Corrupt binary configuration: unexpected layout")

        fields = row.dtype.names
        for name in ('algorithm', 'x1', 'y1', 'x2', 'y2'):
            if name not in fields:
                raise ConfigError(f"Binary configuration is missing '{name}'")

        record = row[0]
        data = {
            'algorithm': str(record['algorithm']),
            'bounding_box': {k: float(record[k]) for k in ('x1', 'y1', 'x2', 'y2')},
        }
        for name in ('start', 'end'):
            if name in fields:
                data[name] = int(record[name])
        for name in ('process_interval', 'reseed_on_loss', 'use_association',
                     'smooth_with_association'):
            if name in fields:
                data[name] = bool(record[name])
        if 'record_path' in fields and str(record['record_path']):
            data['record_path'] = str(record['record_path'])

        return ConfigLoader.from_dict(data)

    @staticmethod
    def load(filepath: Union[str, Path]) -> TrackingConfig:
        """
        Load a config file, binary or JSON depending on its leading bytes.

        Args:
            filepath: Path to config file
        """
        path = Path(filepath)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        payload = path.read_bytes()
        if payload.startswith(CONFIG_MAGIC):
            config = ConfigLoader.from_binary(payload)
        else:
            try:
                text = payload.decode('utf-8')
            except UnicodeDecodeError as e:
                raise ConfigError(f"Configuration is neither binary nor UTF-8 JSON: {e}") from e
            config = ConfigLoader.from_json(text)

        logger.info(f"Loaded configuration from {path}: algorithm={config.algorithm}, "
                    f"box={config.bounding_box.as_tuple()}")
        return config

    @staticmethod
    def save(config: TrackingConfig, filepath: Union[str, Path], binary: bool = False):
        path = Path(filepath)
        if binary:
            path.write_bytes(ConfigLoader.to_binary(config))
        else:
            path.write_text(ConfigLoader.to_json(config))
