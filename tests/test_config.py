import json
import pytest

from cliptrack.errors import ConfigError
from cliptrack.io import ConfigLoader, TrackingConfig
from cliptrack.io.config import DEFAULT_RECORD_PATH
from cliptrack.records import BoundingBox


def test_from_json_recognized_fields():
    config = ConfigLoader.from_json(json.dumps({
        'algorithm': 'KCF',
        'bounding_box': {'x1': 10, 'y1': 10, 'x2': 50, 'y2': 50},
        'start': 3,
        'end': 6,
        'process_interval': True,
        'unrelated': {'ignored': True},
    }))
    assert config.algorithm == 'KCF'
    assert config.bounding_box == BoundingBox(10, 10, 50, 50)
    assert (config.start, config.end, config.process_interval) == (3, 6, True)
    assert config.record_path == DEFAULT_RECORD_PATH
    assert config.reseed_on_loss and config.use_association
    assert not config.smooth_with_association


def test_defaults_for_optional_fields():
    config = ConfigLoader.from_dict({'algorithm': 'MIL',
                                     'bounding_box': {'x1': 0, 'y1': 0, 'x2': 1, 'y2': 1}})
    assert (config.start, config.end, config.process_interval) == (0, 0, False)


def test_legacy_key_aliases():
    config = ConfigLoader.from_dict({
        'tracker-type': 'CSRT',
        'region': {'x': 100, 'y': 80, 'width': -40, 'height': 20, 'first-frame': 12},
        'protobuf_data_path': 'clip.data',
    })
    assert config.algorithm == 'CSRT'
    assert config.bounding_box == BoundingBox(60, 80, 100, 100)
    assert config.start == 12
    assert config.process_interval
    assert config.record_path == 'clip.data'


@pytest.mark.parametrize("payload", [
    {'bounding_box': {'x1': 0, 'y1': 0, 'x2': 1, 'y2': 1}},
    {'algorithm': 'KCF'},
    {'algorithm': 'KCF', 'bounding_box': {'x1': 0, 'y1': 0}},
    {'algorithm': 'KCF', 'bounding_box': [0, 0, 1, 1]},
    {'algorithm': 'KCF', 'bounding_box': {'x1': 'a', 'y1': 0, 'x2': 1, 'y2': 1}},
    {'algorithm': 7, 'bounding_box': {'x1': 0, 'y1': 0, 'x2': 1, 'y2': 1}},
    {'algorithm': 'KCF', 'bounding_box': {'x1': 0, 'y1': 0, 'x2': 1, 'y2': 1}, 'start': -2},
    [],
])
def test_invalid_payloads_fail_at_load_time(payload):
    with pytest.raises(ConfigError):
        ConfigLoader.from_dict(payload)


@pytest.mark.parametrize("flag", ['process_interval', 'reseed_on_loss', 'use_association',
                                  'smooth_with_association'])
def test_flags_must_be_booleans(flag):
    payload = {'algorithm': 'KCF', 'bounding_box': {'x1': 0, 'y1': 0, 'x2': 1, 'y2': 1},
               flag: "false"}
    with pytest.raises(ConfigError):
        ConfigLoader.from_dict(payload)

    payload[flag] = False
    assert getattr(ConfigLoader.from_dict(payload), flag) is False


def test_invalid_json():
    with pytest.raises(ConfigError):
        ConfigLoader.from_json("{not json")


def test_binary_and_json_converge():
    config = TrackingConfig(algorithm='MOSSE', bounding_box=BoundingBox(1.5, 2, 30, 40),
                            start=2, end=9, process_interval=True, record_path='out.trk',
                            reseed_on_loss=False, smooth_with_association=True)

    from_binary = ConfigLoader.from_binary(ConfigLoader.to_binary(config))
    from_json = ConfigLoader.from_json(ConfigLoader.to_json(config))
    assert from_binary == config
    assert from_json == config


def test_corrupt_binary():
    payload = ConfigLoader.to_binary(TrackingConfig('KCF', BoundingBox(0, 0, 1, 1)))
    with pytest.raises(ConfigError):
        ConfigLoader.from_binary(payload[:20])
    with pytest.raises(ConfigError):
        ConfigLoader.from_binary(b"xx" + payload)


@pytest.mark.parametrize("binary", [False, True])
def test_load_dispatches_on_format(tmp_path, binary):
    config = TrackingConfig('KCF', BoundingBox(5, 5, 25, 25), record_path='x.trk')
    path = tmp_path / "config.bin"
    ConfigLoader.save(config, path, binary=binary)
    assert ConfigLoader.load(path) == config


def test_load_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        ConfigLoader.load(tmp_path / "missing.json")
