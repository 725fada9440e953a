import json
import logging
from typing import Optional

from confluent_kafka import KafkaException, Producer

from market_mood.mood.core.errors import ConfigurationError, SinkUnavailableError
from market_mood.mood.core.schema import MoodAnalysis
from market_mood.mood.dispatch.base import DEFAULT_INTER_ITEM_DELAY_MS, DispatchSink, build_message

log = logging.getLogger(__name__)


class KafkaSink(DispatchSink):
    """
    Publishes mood updates to a Kafka topic keyed by token id.

    A send counts as delivered only after the broker acknowledged it
    within `timeout` seconds.
    """

    name = "kafka"

    def __init__(
        self,
        bootstrap_servers: str,
        topic: str,
        contract_address: str = "",
        timeout: float = 10.0,
        inter_item_delay_ms: float = DEFAULT_INTER_ITEM_DELAY_MS,
        extra_config: Optional[dict] = None,
    ) -> None:
        super().__init__(inter_item_delay_ms)
        if not bootstrap_servers:
            raise ConfigurationError("kafka sink needs MOOD_KAFKA_BOOTSTRAP_SERVERS")
        self.topic = topic
        self.contract_address = contract_address
        self.timeout = timeout
        self.config = {
            "bootstrap.servers": bootstrap_servers,
            "enable.idempotence": True,
            "acks": "all",
            **(extra_config or {}),
        }
        self.producer: Optional[Producer] = None

    def connect(self) -> None:
        producer = self.producer if self.producer is not None else Producer(self.config)
        try:
            producer.list_topics(topic=self.topic, timeout=self.timeout)
        except KafkaException as e:
            self.producer = None
            raise SinkUnavailableError(f"kafka cluster unreachable: {e}") from e
        self.producer = producer
        log.info("[Kafka] producer ready for topic: %s", self.topic)

    def disconnect(self) -> None:
        if self.producer is not None:
            remaining = self.producer.flush(self.timeout)
            if remaining:
                log.warning("[Kafka] %d messages still queued at shutdown", remaining)
            self.producer = None
            log.info("[Kafka] producer closed")

    def is_ready(self) -> bool:
        return self.producer is not None

    def send_one(self, token_id: int, analysis: MoodAnalysis) -> bool:
        if self.producer is None:
            log.error("[Kafka] producer not connected, cannot send token_id=%s", token_id)
            return False

        outcome = {}

        def on_delivery(err, msg):
            outcome["error"] = err

        message = build_message(token_id, analysis, self.contract_address)
        try:
            self.producer.produce(
                self.topic,
                key=str(token_id).encode("utf-8"),
                value=json.dumps(message).encode("utf-8"),
                on_delivery=on_delivery,
            )
            self.producer.flush(self.timeout)
        except (KafkaException, BufferError) as e:
            log.warning("[Kafka] produce failed token_id=%s error=%s", token_id, e)
            return False

        if "error" not in outcome:
            log.warning("[Kafka] no delivery report for token_id=%s within %.1fs", token_id, self.timeout)
            return False
        if outcome["error"] is not None:
            log.warning("[Kafka] delivery failed token_id=%s error=%s", token_id, outcome["error"])
            return False
        return True
