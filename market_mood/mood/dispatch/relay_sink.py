from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from market_mood.mood.core.errors import ConfigurationError, SinkUnavailableError
from market_mood.mood.core.schema import MoodAnalysis
from market_mood.mood.dispatch.base import DEFAULT_INTER_ITEM_DELAY_MS, DispatchSink, build_message

log = logging.getLogger(__name__)


class RelayerSink(DispatchSink):
    """
    Posts mood updates to a cross-chain relayer over HTTP.

    The relayer signs and forwards the `update_mood` call to the token
    contract on the destination chain; message verification is its job.
    """

    name = "relayer"

    def __init__(
        self,
        relayer_url: str,
        signer_account: str,
        contract_address: str,
        source_chain: str = "arkiv-network",
        destination_chain: str = "kusama",
        timeout: float = 10.0,
        inter_item_delay_ms: float = DEFAULT_INTER_ITEM_DELAY_MS,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        super().__init__(inter_item_delay_ms)
        if not relayer_url:
            raise ConfigurationError("relayer sink needs MOOD_RELAYER_URL")
        if not relayer_url.startswith(("http://", "https://")):
            raise ConfigurationError(f"relayer URL must be http(s), got {relayer_url!r}")
        if not signer_account:
            raise ConfigurationError("relayer sink needs MOOD_SIGNER_ACCOUNT")
        if not contract_address:
            raise ConfigurationError("relayer sink needs MOOD_CONTRACT_ADDRESS")

        self.relayer_url = relayer_url.rstrip("/")
        self.signer_account = signer_account
        self.contract_address = contract_address
        self.source_chain = source_chain
        self.destination_chain = destination_chain
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.Client] = None
        self._connected = False

    def connect(self) -> None:
        log.info("connecting to relayer %s", self.relayer_url)
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.relayer_url, timeout=self.timeout, transport=self._transport
            )
        try:
            r = self._client.get("/health")
            r.raise_for_status()
        except httpx.HTTPError as e:
            self._connected = False
            raise SinkUnavailableError(f"relayer {self.relayer_url} unreachable: {e}") from e

        self._connected = True
        log.info("relayer connected source=%s destination=%s", self.source_chain, self.destination_chain)

    def disconnect(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
        if self._connected:
            log.info("relayer disconnected")
        self._connected = False

    def is_ready(self) -> bool:
        return self._connected and self._client is not None

    def _envelope(self, token_id: int, analysis: MoodAnalysis) -> Dict[str, Any]:
        message = build_message(token_id, analysis, self.contract_address)
        return {
            "source": self.source_chain,
            "destination": self.destination_chain,
            "target": self.contract_address,
            "method": "update_mood",
            "args": [message["tokenId"], message["newMood"]],
            "signer": self.signer_account,
            "nonce": message["timestamp"],
            "payload": message,
        }

    def send_one(self, token_id: int, analysis: MoodAnalysis) -> bool:
        if not self.is_ready():
            log.error("relayer not connected, cannot send token_id=%s", token_id)
            return False
        try:
            r = self._client.post("/messages", json=self._envelope(token_id, analysis))
            r.raise_for_status()
        except httpx.HTTPError as e:
            log.warning("relayer send failed token_id=%s mood=%s error=%s", token_id, analysis.mood.value, e)
            return False

        log.info(
            "relayer accepted token_id=%s mood=%s confidence=%.2f",
            token_id, analysis.mood.value, analysis.confidence,
        )
        return True

    def status(self) -> Dict[str, Any]:
        return {
            "sink": self.name,
            "connected": self.is_ready(),
            "source_chain": self.source_chain,
            "destination_chain": self.destination_chain,
        }
