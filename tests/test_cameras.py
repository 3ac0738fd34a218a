import json
import logging
from unittest.mock import MagicMock, patch

import pytest

from ball_vision.cameras import (
    DEFAULT_HEIGHT,
    DEFAULT_WIDTH,
    CameraOpenError,
    CameraRegistry,
    CscoreBackend,
)
from ball_vision.config import CameraDescriptor, SwitchedCameraDescriptor
from ball_vision.frame_source import CvSinkSource


def _descriptor(name, path, stream=None, **extra):
    raw = {"name": name, "path": path, **extra}
    if stream is not None:
        raw["stream"] = stream
    return CameraDescriptor(
        name=name,
        path=path,
        raw_config=json.dumps(raw),
        stream_config=json.dumps(stream) if stream is not None else None,
    )


@pytest.fixture
def cscore():
    module = MagicMock(name="cscore")
    with patch("ball_vision.cameras._import_cscore", return_value=module):
        yield module


def _mode(width, height):
    mode = MagicMock()
    mode.width = width
    mode.height = height
    return mode


def test_start_all_opens_cameras_in_order(make_backend):
    registry = CameraRegistry(make_backend())
    descriptors = [
        _descriptor("front", "/dev/video0", fps=30),
        _descriptor("back", "/dev/video2", stream={"properties": []}),
    ]

    handles = registry.start_all(descriptors)

    assert [h.name for h in handles] == ["front", "back"]
    front, back = handles
    front.camera.setConfigJson.assert_called_once_with(descriptors[0].raw_config)
    assert front.camera.keep_open is True
    assert back.camera.keep_open is True
    front.server.setConfigJson.assert_not_called()
    back.server.setConfigJson.assert_called_once_with('{"properties": []}')


def test_failed_camera_does_not_stop_the_rest(make_backend, caplog):
    registry = CameraRegistry(make_backend(fail_paths={"/dev/video2"}))

    with caplog.at_level(logging.ERROR, logger="ball_vision.cameras"):
        handles = registry.start_all(
            [
                _descriptor("a", "/dev/video0"),
                _descriptor("b", "/dev/video2"),
                _descriptor("c", "/dev/video4"),
            ]
        )

    assert [h.name for h in handles] == ["a", "c"]
    assert "could not start camera 'b' on /dev/video2" in caplog.text


def test_start_camera_wraps_errors(make_backend):
    registry = CameraRegistry(make_backend(fail_paths={"/dev/bad"}))
    with pytest.raises(CameraOpenError) as excinfo:
        registry.start_camera(_descriptor("x", "/dev/bad"))
    assert excinfo.value.name == "x"
    assert isinstance(excinfo.value.__cause__, OSError)


def test_rejected_config_is_logged_not_fatal(make_backend, caplog):
    backend = make_backend()
    registry = CameraRegistry(backend)
    original_open = backend.open_camera

    def _open(name, path):
        camera = original_open(name, path)
        camera.setConfigJson.return_value = False
        return camera

    backend.open_camera = _open

    with caplog.at_level(logging.WARNING, logger="ball_vision.cameras"):
        handles = registry.start_all([_descriptor("front", "/dev/video0")])

    assert len(handles) == 1
    assert "rejected its config" in caplog.text


def test_no_cameras_requested(make_backend):
    registry = CameraRegistry(make_backend())
    assert registry.start_all([]) == []
    assert registry.handles == []


def test_frame_sources_are_independent(make_backend):
    registry = CameraRegistry(make_backend())
    registry.start_all([_descriptor("front", "/dev/video0"), _descriptor("back", "/dev/video2")])

    blue = registry.frame_source(0, label="blue")
    red = registry.frame_source(0, label="red")

    assert blue is not red
    assert blue.camera is red.camera is registry.handles[0].camera
    assert (blue.label, red.label) == ("blue", "red")


def test_switched_camera_selects_by_index_and_name(make_backend, telemetry):
    backend = make_backend()
    registry = CameraRegistry(backend)
    registry.start_all([_descriptor("front", "/dev/video0"), _descriptor("back", "/dev/video2")])

    registry.start_switched_camera(
        SwitchedCameraDescriptor(name="driver", key="/Vision/select"), telemetry
    )
    server = backend.switched["driver"]
    select = telemetry.listeners["/Vision/select"]

    select(1)
    server.setSource.assert_called_with(registry.handles[1].camera)
    select(0.0)
    server.setSource.assert_called_with(registry.handles[0].camera)
    select("back")
    server.setSource.assert_called_with(registry.handles[1].camera)

    server.setSource.reset_mock()
    select(7)
    select(-1)
    select("missing")
    select(True)
    server.setSource.assert_not_called()


def test_cscore_camera_is_served_and_kept_open(cscore):
    registry = CameraRegistry(CscoreBackend())
    descriptor = _descriptor("front", "/dev/video0", stream={"properties": []}, fps=30)

    handle = registry.start_camera(descriptor)

    cscore.UsbCamera.assert_called_once_with("front", "/dev/video0")
    camera = cscore.UsbCamera.return_value
    cscore.CameraServer.startAutomaticCapture.assert_called_once_with(camera=camera)
    camera.setConfigJson.assert_called_once_with(descriptor.raw_config)
    camera.setConnectionStrategy.assert_called_once_with(
        cscore.VideoSource.ConnectionStrategy.kConnectionKeepOpen
    )
    server = cscore.CameraServer.startAutomaticCapture.return_value
    server.setConfigJson.assert_called_once_with('{"properties": []}')
    assert handle.camera is camera
    assert handle.server is server


def test_cscore_gives_each_reader_its_own_sink(cscore):
    camera = MagicMock()
    camera.getName.return_value = "front"
    camera.getVideoMode.return_value = _mode(320, 240)
    cscore.CvSink.side_effect = lambda name: MagicMock(name=name)
    backend = CscoreBackend()

    blue = backend.frame_source(camera, "blue")
    red = backend.frame_source(camera, "red")

    assert [c.args[0] for c in cscore.CvSink.call_args_list] == ["blue front", "red front"]
    assert isinstance(blue, CvSinkSource)
    assert blue.sink is not red.sink
    blue.sink.setSource.assert_called_once_with(camera)
    red.sink.setSource.assert_called_once_with(camera)
    assert (blue.width, blue.height) == (320, 240)
    cscore.CameraServer.getVideo.assert_not_called()


def test_cscore_frame_source_defaults_size_without_video_mode(cscore):
    camera = MagicMock()
    camera.getName.return_value = "front"
    camera.getVideoMode.return_value = _mode(0, 0)

    source = CscoreBackend().frame_source(camera, "blue")

    assert (source.width, source.height) == (DEFAULT_WIDTH, DEFAULT_HEIGHT)


def test_cscore_switched_camera(cscore):
    server = CscoreBackend().add_switched_camera("driver")
    cscore.CameraServer.addSwitchedCamera.assert_called_once_with("driver")
    assert server is cscore.CameraServer.addSwitchedCamera.return_value


def test_cscore_open_failure_becomes_camera_open_error(cscore):
    cscore.UsbCamera.side_effect = RuntimeError("device busy")
    registry = CameraRegistry(CscoreBackend())

    assert registry.start_all([_descriptor("front", "/dev/video0")]) == []
