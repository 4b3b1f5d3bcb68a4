"""Wire contract between the wrist unit and its companion device.

Every message is a dictionary `{"messageType": str, "timestamp": float,
"data": bytes}` where `data` is the JSON encoding of the payload. Messages go
out as direct messages when the peer is reachable. Alarm settings fall back to
the durable "last known context" when it is not; sleep state and actions are
only meaningful live and are dropped instead.
"""

import abc
import enum
from typing import Any, Callable, Dict, List, Optional, Union

import pydantic
from pydantic.alias_generators import to_camel

from antisnooze.core import config, exceptions, models, scheduling

logger = config.get_logger()

Message = Dict[str, Any]
Payload = Union[models.AlarmSettings, models.SleepState, models.AlarmAction]

_ACTION_ADAPTER = pydantic.TypeAdapter(models.AlarmAction)


class MessageType(str, enum.Enum):
    """Kinds of messages exchanged between the devices."""

    alarm_settings = "alarmSettings"
    sleep_state = "sleepState"
    alarm_action = "alarmAction"


class Delivery(str, enum.Enum):
    """How an outgoing message left the device."""

    direct = "direct"
    context = "context"
    dropped = "dropped"


class SyncEnvelope(pydantic.BaseModel):
    """The envelope wrapping every payload on the wire.

    Attributes:
        message_type: Which payload `data` holds.
        timestamp: Send time as seconds since the epoch.
        data: The JSON encoded payload.
    """

    model_config = pydantic.ConfigDict(
        alias_generator=to_camel, populate_by_name=True
    )

    message_type: MessageType
    timestamp: float
    data: bytes

    def to_message(self) -> Message:
        """Return the envelope as a transport dictionary."""
        return {
            "messageType": self.message_type.value,
            "timestamp": self.timestamp,
            "data": self.data,
        }

    @classmethod
    def from_message(cls, message: Message) -> "SyncEnvelope":
        """Parse a transport dictionary.

        Raises:
            SyncDecodeError: If the dictionary is not a valid envelope.
        """
        try:
            return cls.model_validate(message)
        except pydantic.ValidationError as e:
            raise exceptions.SyncDecodeError(f"Invalid message format: {e}") from e


class SyncTransport(abc.ABC):
    """The platform channel between the two devices."""

    @abc.abstractmethod
    def is_reachable(self) -> bool:
        """Whether the peer can receive a direct message right now."""
        pass

    @abc.abstractmethod
    def send_message(self, message: Message) -> None:
        """Deliver a message immediately.

        Raises:
            OSError: If the message could not be delivered.
        """
        pass

    @abc.abstractmethod
    def update_application_context(self, message: Message) -> None:
        """Replace the durable context the peer reads when it next wakes up.

        Raises:
            OSError: If the context could not be updated.
        """
        pass


class LoopbackTransport(SyncTransport):
    """In-process transport that hands messages to a peer `DeviceSync`."""

    def __init__(self, reachable: bool = True) -> None:
        """Initialize the transport.

        Args:
            reachable: Whether the peer is reported as reachable.
        """
        self.reachable = reachable
        self.peer: Optional["DeviceSync"] = None
        self.sent: List[Message] = []
        self.context: Optional[Message] = None

    def is_reachable(self) -> bool:
        """Whether messages are passed on directly."""
        return self.reachable

    def send_message(self, message: Message) -> None:
        """Record the message and hand it to the peer."""
        if not self.reachable:
            raise ConnectionError("Peer is not reachable.")
        self.sent.append(message)
        if self.peer is not None:
            self.peer.handle_message(message)

    def update_application_context(self, message: Message) -> None:
        """Keep the message as the latest context."""
        self.context = message

    def deliver_context(self) -> None:
        """Hand the stored context to the peer, as on the peer's next launch."""
        if self.peer is not None and self.context is not None:
            self.peer.handle_message(self.context)


class DeviceSync:
    """Encodes, sends, receives and dispatches sync messages.

    Failures never propagate to the caller: they are logged and the message is
    dropped. The next state push carries the latest state anyway.

    Attributes:
        on_alarm_settings: Receives decoded alarm settings.
        on_sleep_state: Receives decoded sleep states.
        on_alarm_action: Receives decoded remote actions.
        received: Number of messages decoded and dispatched.
    """

    def __init__(
        self, transport: SyncTransport, scheduler: scheduling.Scheduler
    ) -> None:
        """Initialize the sync endpoint.

        Args:
            transport: The platform channel.
            scheduler: Source of the envelope timestamps.
        """
        self._transport = transport
        self._scheduler = scheduler
        self.on_alarm_settings: Optional[Callable[[models.AlarmSettings], None]] = None
        self.on_sleep_state: Optional[Callable[[models.SleepState], None]] = None
        self.on_alarm_action: Optional[Callable[[models.AlarmAction], None]] = None
        self.received = 0

    def send_alarm_settings(self, settings: models.AlarmSettings) -> Delivery:
        """Push alarm settings, falling back to the durable context."""
        return self._send(MessageType.alarm_settings, settings, context_fallback=True)

    def send_sleep_state(self, state: models.SleepState) -> Delivery:
        """Push the current sleep state if the peer is reachable."""
        return self._send(MessageType.sleep_state, state)

    def send_alarm_action(self, action: models.AlarmAction) -> Delivery:
        """Push a remote command if the peer is reachable."""
        return self._send(MessageType.alarm_action, action)

    def encode(self, message_type: MessageType, payload: Payload) -> Message:
        """Wrap a payload in an envelope.

        Raises:
            SyncEncodeError: If the payload does not match the message type.
        """
        try:
            if message_type == MessageType.alarm_action:
                action = _ACTION_ADAPTER.validate_python(payload)
                data = _ACTION_ADAPTER.dump_json(action)
            elif message_type == MessageType.alarm_settings:
                data = models.AlarmSettings.model_validate(payload).model_dump_json(
                    by_alias=True
                )
            else:
                data = models.SleepState.model_validate(payload).model_dump_json(
                    by_alias=True
                )
        except (pydantic.ValidationError, TypeError) as e:
            raise exceptions.SyncEncodeError(
                f"Could not encode {message_type.value}: {e}"
            ) from e

        if isinstance(data, str):
            data = data.encode()
        envelope = SyncEnvelope(
            message_type=message_type,
            timestamp=self._scheduler.now().timestamp(),
            data=data,
        )
        return envelope.to_message()

    def decode(self, message: Message) -> Payload:
        """Unwrap and parse the payload of a received message.

        Raises:
            SyncDecodeError: If the envelope or the payload is invalid.
        """
        envelope = SyncEnvelope.from_message(message)
        try:
            if envelope.message_type == MessageType.alarm_settings:
                return models.AlarmSettings.model_validate_json(envelope.data)
            if envelope.message_type == MessageType.sleep_state:
                return models.SleepState.model_validate_json(envelope.data)
            return _ACTION_ADAPTER.validate_json(envelope.data)
        except pydantic.ValidationError as e:
            raise exceptions.SyncDecodeError(
                f"Could not decode {envelope.message_type.value}: {e}"
            ) from e

    def handle_message(self, message: Message) -> None:
        """Decode a received message and dispatch it by message type."""
        try:
            payload = self.decode(message)
        except exceptions.SyncDecodeError:
            return

        self.received += 1
        if isinstance(payload, models.AlarmSettings):
            handler: Optional[Callable[[Any], None]] = self.on_alarm_settings
        elif isinstance(payload, models.SleepState):
            handler = self.on_sleep_state
        else:
            handler = self.on_alarm_action

        if handler is None:
            logger.debug("No handler for %s.", type(payload).__name__)
            return
        handler(payload)

    def _send(
        self,
        message_type: MessageType,
        payload: Payload,
        context_fallback: bool = False,
    ) -> Delivery:
        try:
            message = self.encode(message_type, payload)
        except exceptions.SyncEncodeError:
            return Delivery.dropped

        try:
            if self._transport.is_reachable():
                self._transport.send_message(message)
                return Delivery.direct
            if context_fallback:
                self._transport.update_application_context(message)
                return Delivery.context
        except OSError as e:
            logger.warning("Sending %s failed: %s", message_type.value, e)
            return Delivery.dropped

        logger.debug("Peer unreachable, %s dropped.", message_type.value)
        return Delivery.dropped

