import asyncio

import pytest

from scanpay.capture.session_controller import CaptureSessionController, CaptureState
from scanpay.utils.exceptions import CaptureSessionError
from tests.helpers import BrokenCaptureSource, FakeCaptureSource


def make_controller(source=None):
    received = []

    async def on_capture(text):
        received.append(text)

    controller = CaptureSessionController(source or FakeCaptureSource(), on_capture)
    return controller, received


def test_start_opens_one_handle():
    source = FakeCaptureSource()
    controller, _ = make_controller(source)
    controller.start()
    assert controller.state == CaptureState.CAPTURING
    assert len(source.handles) == 1


def test_second_start_is_rejected():
    source = FakeCaptureSource()
    controller, _ = make_controller(source)
    controller.start()
    with pytest.raises(CaptureSessionError):
        controller.start()
    assert len(source.handles) == 1


def test_decode_stays_decoded_until_handler_returns():
    source = FakeCaptureSource()
    seen_states = []

    async def on_capture(text):
        seen_states.append((text, controller.state, source.handles[0].released))

    controller = CaptureSessionController(source, on_capture)
    controller.start()
    asyncio.run(source.emit("payload"))
    assert seen_states == [("payload", CaptureState.DECODED, 1)]
    assert controller.state == CaptureState.IDLE


def test_late_frames_after_decode_are_ignored():
    source = FakeCaptureSource()
    controller, received = make_controller(source)
    controller.start()

    async def burst():
        await source.emit("first")
        await source.emit("second")

    asyncio.run(burst())
    assert received == ["first"]


def test_stop_returns_to_idle_and_allows_restart():
    source = FakeCaptureSource()
    controller, _ = make_controller(source)
    controller.start()
    asyncio.run(controller.stop())
    assert controller.state == CaptureState.IDLE
    assert source.handles[0].released == 1

    controller.start()
    assert len(source.handles) == 2


def test_stop_when_idle_is_a_no_op():
    controller, _ = make_controller()
    asyncio.run(controller.stop())
    assert controller.state == CaptureState.IDLE


def test_release_failure_still_ends_idle():
    source = FakeCaptureSource(fail_release=True)
    controller, _ = make_controller(source)
    controller.start()
    asyncio.run(controller.stop())
    assert controller.state == CaptureState.IDLE
    controller.start()
    assert controller.is_capturing


def test_source_errors_keep_capturing():
    source = FakeCaptureSource()
    controller, _ = make_controller(source)
    controller.start()
    source.on_error(RuntimeError("no code in frame"))
    assert controller.state == CaptureState.CAPTURING


def test_start_is_refused_while_decoded_text_is_handled():
    source = FakeCaptureSource()
    refused = []

    async def on_capture(text):
        with pytest.raises(CaptureSessionError):
            controller.start()
        refused.append(text)

    controller = CaptureSessionController(source, on_capture)
    controller.start()
    asyncio.run(source.emit("payload"))
    assert refused == ["payload"]
    assert len(source.handles) == 1


def test_handler_failure_still_returns_to_idle():
    source = FakeCaptureSource()

    async def on_capture(text):
        raise RuntimeError("downstream broke")

    controller = CaptureSessionController(source, on_capture)
    controller.start()
    with pytest.raises(RuntimeError):
        asyncio.run(source.emit("payload"))
    assert controller.state == CaptureState.IDLE


def test_open_failure_raises_session_error_and_stays_idle():
    source = BrokenCaptureSource(RuntimeError("camera permission denied"))
    controller, _ = make_controller(source)
    with pytest.raises(CaptureSessionError) as exc_info:
        controller.start()
    assert exc_info.value.notice == "Unable to start the camera"
    assert controller.state == CaptureState.IDLE
    assert source.attempts == 1
