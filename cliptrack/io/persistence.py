"""
Durable binary record of tracked data.

File layout:
    8 bytes   magic b"CLPTRK\\x00\\x00"
    uint16    format version, little-endian
    .npy      structured array, one row per frame, sorted by frame_id

Readers ignore fields they do not know, so later versions may append fields.
"""

from typing import Optional, Union
from pathlib import Path
import io
import logging
import os
import struct
import tempfile
import numpy as np

from cliptrack.errors import CorruptRecord, RecordIOError, RecordNotFound
from cliptrack.records.track_record import BoundingBox, TrackRecord, TrackedData

logger = logging.getLogger(__name__)


RECORD_MAGIC = b"CLPTRK\x00\x00"
RECORD_VERSION = 1

RECORD_DTYPE = np.dtype([
    ('frame_id', '<u8'),
    ('rotation', '<f8'),
    ('x1', '<f8'),
    ('y1', '<f8'),
    ('x2', '<f8'),
    ('y2', '<f8'),
])

_HEADER = struct.Struct('<8sH')


def encode_tracked_data(tracked_data: TrackedData) -> bytes:
    """Serialize a collection to the durable record format."""
    rows = np.array([
        (r.frame_id, r.rotation, r.bounding_box.x1, r.bounding_box.y1,
         r.bounding_box.x2, r.bounding_box.y2)
        for r in tracked_data
    ], dtype=RECORD_DTYPE)

    buffer = io.BytesIO()
    buffer.write(_HEADER.pack(RECORD_MAGIC, RECORD_VERSION))
    np.save(buffer, rows, allow_pickle=False)
    return buffer.getvalue()


def decode_tracked_data(payload: bytes) -> TrackedData:
    """
    Parse a durable record.

    Raises:
        CorruptRecord: If the header, version or payload is not readable
    """
    if len(payload) < _HEADER.size:
        raise CorruptRecord("Record is truncated")

    magic, version = _HEADER.unpack(payload[:_HEADER.size])
    if magic != RECORD_MAGIC:
        raise CorruptRecord("Not a tracked data record (bad magic)")
    if version > RECORD_VERSION:
        raise CorruptRecord(f"Unsupported record version {version}")

    try:
        rows = np.load(io.BytesIO(payload[_HEADER.size:]), allow_pickle=False)
    except (ValueError, OSError, EOFError) as e:
        raise CorruptRecord(f"Record payload could not be decoded: {e}") from e

    # An .npz archive body loads as NpzFile, not an array
    if not isinstance(rows, np.ndarray):
        raise CorruptRecord("Record payload is not a single array")

    names = rows.dtype.names or ()
    missing = [name for name in RECORD_DTYPE.names if name not in names]
    if rows.ndim != 1 or missing:
        raise CorruptRecord(f"Record payload has unexpected layout (missing {missing})")

    tracked_data = TrackedData()
    try:
        for row in rows:
            tracked_data.add(TrackRecord(
                frame_id=int(row['frame_id']),
                rotation=float(row['rotation']),
                bounding_box=BoundingBox(float(row['x1']), float(row['y1']),
                                         float(row['x2']), float(row['y2'])),
            ))
    except (ValueError, TypeError) as e:
        raise CorruptRecord(f"Record contains an invalid row: {e}") from e
    return tracked_data


def _default_file_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


class PersistenceAdapter:
    """
    Saves, reloads and queries the tracked data of a clip.

    Holds the in-memory collection that editing tools query after a run.
    """

    def __init__(self, record_path: Union[str, Path], tracked_data: Optional[TrackedData] = None):
        """
        Args:
            record_path: Location of the durable record
            tracked_data: Initial in-memory collection (empty if omitted)
        """
        self.record_path = Path(record_path)
        self.tracked_data = tracked_data if tracked_data is not None else TrackedData()

    def save(self, tracked_data: Optional[TrackedData] = None) -> bool:
        """
        Write the collection to the record path, replacing any existing record.

        The record is written to a temporary file next to the target and moved
        into place, so a failed save leaves the previous record untouched.

        Args:
            tracked_data: Collection to save; becomes the in-memory collection.
                Defaults to the current in-memory collection.

        Raises:
            RecordIOError: If the record path is not writable
        """
        if tracked_data is not None:
            self.tracked_data = tracked_data

        payload = encode_tracked_data(self.tracked_data)
        directory = self.record_path.parent

        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(dir=directory, prefix=f".{self.record_path.name}.",
                                             suffix='.tmp', delete=False) as tmp:
                tmp_path = tmp.name
                tmp.write(payload)
                tmp.flush()
                os.fsync(tmp.fileno())
            # Temporary files are created 0600; give the record the usual umask mode
            os.chmod(tmp_path, _default_file_mode())
            os.replace(tmp_path, self.record_path)
        except OSError as e:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise RecordIOError(f"Could not write tracked data to {self.record_path}: {e}") from e

        logger.info(f"Saved {len(self.tracked_data)} frames to {self.record_path}")
        return True

    def load(self, record_path: Optional[Union[str, Path]] = None) -> TrackedData:
        """
        Replace the in-memory collection with the contents of a record.

        Args:
            record_path: Record to read; defaults to the configured path

        Raises:
            RecordNotFound: If the record does not exist
            CorruptRecord: If the record cannot be parsed
        """
        path = Path(record_path) if record_path is not None else self.record_path
        try:
            payload = path.read_bytes()
        except FileNotFoundError:
            raise RecordNotFound(f"No tracked data record at {path}") from None
        except IsADirectoryError as e:
            raise CorruptRecord(f"{path} is a directory, not a record") from e

        self.tracked_data = decode_tracked_data(payload)
        logger.info(f"Loaded {len(self.tracked_data)} frames from {path}")
        return self.tracked_data

    def get_tracked_data(self, frame_id: int) -> TrackRecord:
        """
        Get the tracked data for a frame.

        Raises:
            NotFound: If the frame was not tracked
        """
        return self.tracked_data.get(frame_id)
