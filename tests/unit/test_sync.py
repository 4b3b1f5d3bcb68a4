"""Test the device sync contract."""

import datetime
import json
import logging

import pytest
import pytest_mock

from antisnooze.core import exceptions, models, scheduling
from antisnooze.io import sync


@pytest.fixture
def transport() -> sync.LoopbackTransport:
    """A reachable loopback transport."""
    return sync.LoopbackTransport()


@pytest.fixture
def endpoint(
    transport: sync.LoopbackTransport, scheduler: scheduling.VirtualScheduler
) -> sync.DeviceSync:
    """The sending endpoint."""
    return sync.DeviceSync(transport, scheduler)


@pytest.fixture
def peer(
    transport: sync.LoopbackTransport, scheduler: scheduling.VirtualScheduler
) -> sync.DeviceSync:
    """The receiving endpoint, connected to the transport."""
    peer = sync.DeviceSync(sync.LoopbackTransport(), scheduler)
    transport.peer = peer
    return peer


@pytest.fixture
def alarm_settings() -> models.AlarmSettings:
    """Some non-default alarm settings."""
    return models.AlarmSettings(
        wake_up_time=datetime.time(6, 45),
        is_active=True,
        vibration_intensity=models.VibrationIntensity.strong,
        repeat_days=(False, True, True, True, True, True, False),
    )


def test_envelope_format(
    endpoint: sync.DeviceSync,
    scheduler: scheduling.VirtualScheduler,
    alarm_settings: models.AlarmSettings,
) -> None:
    """Test the wire format of an encoded message."""
    message = endpoint.encode(sync.MessageType.alarm_settings, alarm_settings)

    assert set(message) == {"messageType", "timestamp", "data"}
    assert message["messageType"] == "alarmSettings"
    assert message["timestamp"] == scheduler.now().timestamp()
    payload = json.loads(message["data"])
    assert payload["wakeUpTime"] == "06:45:00"
    assert payload["isActive"] is True
    assert payload["vibrationIntensity"] == 3
    assert len(payload["repeatDays"]) == 7


def test_alarm_action_payload(endpoint: sync.DeviceSync) -> None:
    """Test actions are encoded as their raw string values."""
    message = endpoint.encode(
        sync.MessageType.alarm_action, models.AlarmAction.start_monitoring
    )

    assert json.loads(message["data"]) == "startMonitoring"


def test_settings_delivered_directly(
    endpoint: sync.DeviceSync,
    peer: sync.DeviceSync,
    transport: sync.LoopbackTransport,
    alarm_settings: models.AlarmSettings,
    mocker: pytest_mock.MockerFixture,
) -> None:
    """Test settings reach the peer's handler when it is reachable."""
    handler = mocker.Mock()
    peer.on_alarm_settings = handler

    delivery = endpoint.send_alarm_settings(alarm_settings)

    assert delivery == sync.Delivery.direct
    assert len(transport.sent) == 1
    handler.assert_called_once_with(alarm_settings)


def test_settings_fall_back_to_context(
    endpoint: sync.DeviceSync,
    peer: sync.DeviceSync,
    transport: sync.LoopbackTransport,
    alarm_settings: models.AlarmSettings,
    mocker: pytest_mock.MockerFixture,
) -> None:
    """Test settings are left in the durable context for an unreachable peer."""
    handler = mocker.Mock()
    peer.on_alarm_settings = handler
    transport.reachable = False

    delivery = endpoint.send_alarm_settings(alarm_settings)
    handler.assert_not_called()
    transport.deliver_context()

    assert delivery == sync.Delivery.context
    assert transport.sent == []
    handler.assert_called_once_with(alarm_settings)


def test_sleep_state_dropped_when_unreachable(
    endpoint: sync.DeviceSync, transport: sync.LoopbackTransport
) -> None:
    """Test live-only messages are not kept for an unreachable peer."""
    transport.reachable = False

    delivery = endpoint.send_sleep_state(models.SleepState(is_lying_down=True))

    assert delivery == sync.Delivery.dropped
    assert transport.context is None


def test_sleep_state_round_trip(
    endpoint: sync.DeviceSync,
    peer: sync.DeviceSync,
    mocker: pytest_mock.MockerFixture,
) -> None:
    """Test the sleep state reaches the peer with every field."""
    handler = mocker.Mock()
    peer.on_sleep_state = handler
    state = models.SleepState(
        is_lying_down=True,
        motion_level=0.42,
        last_significant_motion_time=datetime.datetime(2024, 5, 2, 7, 0, 3),
        step_count=4,
    )

    endpoint.send_sleep_state(state)

    handler.assert_called_once_with(state)


def test_alarm_action_dispatched(
    endpoint: sync.DeviceSync,
    peer: sync.DeviceSync,
    mocker: pytest_mock.MockerFixture,
) -> None:
    """Test remote actions reach the action handler."""
    handler = mocker.Mock()
    peer.on_alarm_action = handler

    endpoint.send_alarm_action(models.AlarmAction.stop)

    handler.assert_called_once_with(models.AlarmAction.stop)
    assert peer.received == 1


def test_send_failure_is_dropped(
    scheduler: scheduling.VirtualScheduler,
    mocker: pytest_mock.MockerFixture,
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Test a transport error is logged and not raised."""
    caplog.set_level(logging.WARNING)
    transport = mocker.Mock(spec=sync.SyncTransport)
    transport.is_reachable.return_value = True
    transport.send_message.side_effect = ConnectionError("link lost")
    endpoint = sync.DeviceSync(transport, scheduler)

    delivery = endpoint.send_alarm_action(models.AlarmAction.stop)

    assert delivery == sync.Delivery.dropped
    assert "link lost" in caplog.text


def test_encode_wrong_payload(endpoint: sync.DeviceSync) -> None:
    """Test a payload that does not match its message type is rejected."""
    with pytest.raises(exceptions.SyncEncodeError):
        endpoint.encode(sync.MessageType.alarm_action, models.SleepState())


def test_send_wrong_payload_is_dropped(
    endpoint: sync.DeviceSync, transport: sync.LoopbackTransport
) -> None:
    """Test an unencodable payload never reaches the transport."""
    delivery = endpoint.send_alarm_action("wake up!")  # type: ignore[arg-type]

    assert delivery == sync.Delivery.dropped
    assert transport.sent == []


@pytest.mark.parametrize(
    "message",
    [
        {},
        {"messageType": "weather", "timestamp": 0.0, "data": b"{}"},
        {"messageType": "alarmSettings", "timestamp": 0.0},
        {"messageType": "alarmAction", "timestamp": 0.0, "data": b'"dance"'},
        {"messageType": "sleepState", "timestamp": 0.0, "data": b"not json"},
    ],
)
def test_decode_invalid_message(endpoint: sync.DeviceSync, message: dict) -> None:
    """Test malformed envelopes and payloads raise a decode error."""
    with pytest.raises(exceptions.SyncDecodeError):
        endpoint.decode(message)


def test_invalid_message_dropped(
    peer: sync.DeviceSync, mocker: pytest_mock.MockerFixture
) -> None:
    """Test a malformed received message calls no handler."""
    handler = mocker.Mock()
    peer.on_alarm_action = handler

    peer.handle_message({"messageType": "alarmAction", "data": b'"dance"'})

    handler.assert_not_called()
    assert peer.received == 0
