"""MQTT subscriber feeding sensor telemetry into the state store."""

from __future__ import annotations

import asyncio
import json
import logging
from concurrent.futures import Future
from typing import Any, Optional

import paho.mqtt.client as mqtt

from ..core.config import Settings
from ..core.timeutil import now_utc
from ..domain.errors import DecodeError, ValidationError
from ..domain.models import Reading, ReadingSource, parse_measurement
from .state_store import StateStore

logger = logging.getLogger(__name__)

# The field device publishes Spanish keys; newer firmware uses English ones
_FIELD_ALIASES = {
    "temperature": ("temperature", "temperatura"),
    "humidity": ("humidity", "humedad"),
}


def _pick(data: dict, name: str) -> Any:
    for key in _FIELD_ALIASES[name]:
        if data.get(key) is not None:
            return data[key]
    return None


def decode_payload(raw: bytes | str) -> Reading:
    """Turn an MQTT payload into a sensor Reading stamped with the arrival time.

    Raises DecodeError for non-UTF-8, non-JSON, non-object payloads or when
    temperature/humidity are missing or not numeric.
    """
    try:
        text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
        data = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError(f"payload is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise DecodeError(f"payload must be a JSON object, got {type(data).__name__}")

    try:
        temperature = parse_measurement(_pick(data, "temperature"), "temperature")
        humidity = parse_measurement(_pick(data, "humidity"), "humidity")
    except ValidationError as e:
        raise DecodeError(str(e)) from e

    return Reading(
        temperature=temperature,
        humidity=humidity,
        observed_at=now_utc(),
        source=ReadingSource.SENSOR,
    )


class MqttListener:
    """Subscribes to the telemetry topic and records every valid payload.

    paho runs its network loop on a background thread; decoded readings are
    handed to the asyncio loop so the store is only mutated from there.
    """

    def __init__(self, store: StateStore, cfg: Settings) -> None:
        self._store = store
        self._cfg = cfg
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._connected = False
        self.accepted = 0
        self.rejected = 0

        self._client: mqtt.Client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=cfg.mqtt_client_id,
        )
        if cfg.mqtt_username:
            self._client.username_pw_set(cfg.mqtt_username, cfg.mqtt_password)
        self._client.reconnect_delay_set(min_delay=1, max_delay=60)

        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_message = self._on_message

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def topic(self) -> str:
        return self._cfg.mqtt_topic

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        """Connect asynchronously; paho keeps retrying in the background if the broker is down."""
        self._loop = loop
        try:
            self._client.connect_async(self._cfg.mqtt_host, self._cfg.mqtt_port, self._cfg.mqtt_keepalive)
            self._client.loop_start()
            logger.info("MQTT connecting to %s:%d ...", self._cfg.mqtt_host, self._cfg.mqtt_port)
        except (OSError, ValueError):
            logger.exception(
                "Failed to start MQTT client for %s:%d", self._cfg.mqtt_host, self._cfg.mqtt_port
            )

    def stop(self) -> None:
        try:
            self._client.loop_stop()
            self._client.disconnect()
            logger.info("MQTT listener disconnected")
        except Exception:
            logger.exception("Error during MQTT disconnect")
        self._connected = False

    async def ingest(self, topic: str, payload: bytes | str) -> Optional[Reading]:
        """Decode and record one message; malformed payloads are logged and dropped."""
        try:
            reading = decode_payload(payload)
        except DecodeError as e:
            self.rejected += 1
            logger.warning("Discarding MQTT message on %s: %s (payload=%r)", topic, e, _excerpt(payload))
            return None

        self.accepted += 1
        logger.info("Reading received [%s] -> H:%.1f T:%.1f", topic, reading.humidity, reading.temperature)
        await self._store.record_reading(reading)
        return reading

    def status(self) -> dict:
        return {
            "enabled": True,
            "connected": self._connected,
            "broker": f"{self._cfg.mqtt_host}:{self._cfg.mqtt_port}",
            "topic": self._cfg.mqtt_topic,
            "accepted": self.accepted,
            "rejected": self.rejected,
        }

    # --- paho callbacks (network thread) ---

    def _on_connect(
        self,
        client: mqtt.Client,
        userdata: object,
        flags: mqtt.ConnectFlags,
        rc: mqtt.ReasonCode,
        properties: mqtt.Properties | None = None,
    ) -> None:
        if rc.is_failure:
            logger.error("MQTT connection refused: %s", rc)
            return
        self._connected = True
        client.subscribe(self._cfg.mqtt_topic, qos=self._cfg.mqtt_qos)
        logger.info("MQTT connected, subscribed to %s", self._cfg.mqtt_topic)

    def _on_disconnect(
        self,
        client: mqtt.Client,
        userdata: object,
        flags: mqtt.DisconnectFlags,
        rc: mqtt.ReasonCode,
        properties: mqtt.Properties | None = None,
    ) -> None:
        self._connected = False
        logger.warning("MQTT disconnected (rc=%s)", rc)

    def _on_message(self, client: mqtt.Client, userdata: object, msg: mqtt.MQTTMessage) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.warning("MQTT message on %s dropped: event loop not available", msg.topic)
            return
        fut = asyncio.run_coroutine_threadsafe(self.ingest(msg.topic, msg.payload), loop)
        fut.add_done_callback(_log_failure)


def _log_failure(fut: Future) -> None:
    if fut.cancelled():
        return
    exc = fut.exception()
    if exc is not None:
        logger.error("Unexpected error handling MQTT message", exc_info=exc)


def _excerpt(payload: bytes | str, limit: int = 120) -> str:
    text = payload.decode("utf-8", errors="replace") if isinstance(payload, (bytes, bytearray)) else str(payload)
    return text if len(text) <= limit else text[:limit] + "..."
