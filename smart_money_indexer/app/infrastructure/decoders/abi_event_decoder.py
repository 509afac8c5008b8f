from __future__ import annotations

from typing import Any, Mapping

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import keccak

from smart_money_indexer.app.domain.errors import DecodeError
from smart_money_indexer.app.domain.models import ChainLog
from smart_money_indexer.app.registry.abis import load_abi


class AbiEventDecoder:
    """
    ABI-based decoder for a single EVM event.

    It:
    - loads ABI from registry/abi/,
    - finds the event ABI by name,
    - computes topic0 = keccak("EventName(type1,type2,...)"),
    - decodes indexed args from topics,
    - decodes non-indexed args from `data` with eth_abi.

    `decode_args` returns None when topic0 is a different event and raises
    DecodeError when topic0 matches but topics/data do not fit the ABI.
    """

    def __init__(self, *, abi_file: str, event_name: str) -> None:
        self._event_abi = self._find_event(load_abi(abi_file), event_name)
        self._signature = self._event_signature(self._event_abi)
        self._topic0 = "0x" + keccak(text=self._signature).hex()

        # Cache inputs split
        self._inputs: list[dict[str, Any]] = list(self._event_abi.get("inputs", []))
        self._indexed_inputs = [i for i in self._inputs if i.get("indexed") is True]
        self._non_indexed_inputs = [i for i in self._inputs if not i.get("indexed")]

        self._non_indexed_types = [i["type"] for i in self._non_indexed_inputs]
        self._non_indexed_names = [i["name"] for i in self._non_indexed_inputs]

    @property
    def topic0(self) -> str:
        return self._topic0

    @property
    def event_signature(self) -> str:
        return self._signature

    def decode_args(self, log: ChainLog) -> dict[str, Any] | None:
        # 1) must match expected event
        if log.topic0 is None or log.topic0.lower() != self._topic0:
            return None

        # 2) indexed args: one topic each, after topic0
        if len(log.topics) != 1 + len(self._indexed_inputs):
            raise DecodeError(
                f"{self._signature}: expected {1 + len(self._indexed_inputs)} topics, "
                f"got {len(log.topics)} (tx={log.transaction_hash} log_index={log.log_index})"
            )

        out: dict[str, Any] = {}
        for i, inp in enumerate(self._indexed_inputs, start=1):
            topic = log.topic_bytes(i)
            if topic is None or len(topic) != 32:
                raise DecodeError(f"{self._signature}: malformed topic{i}")
            out[inp["name"]] = self._decode_value(inp["type"], topic)

        # 3) non-indexed from data
        out.update(self._decode_non_indexed_data(log.data_bytes))
        return out

    # ---------------------------------------------------------------------
    # ABI helpers
    # ---------------------------------------------------------------------

    def _find_event(self, abi: tuple[dict[str, Any], ...], event_name: str) -> dict[str, Any]:
        events = [x for x in abi if x.get("type") == "event" and x.get("name") == event_name]
        if not events:
            names = sorted({x.get("name") for x in abi if x.get("type") == "event"})
            raise ValueError(
                f"Event {event_name!r} not found in ABI. Available events: {names}"
            )
        if len(events) > 1:
            raise ValueError(
                f"Multiple events named {event_name!r} found in ABI. "
                "Disambiguation by full signature is required."
            )
        return events[0]

    def _event_signature(self, event_abi: Mapping[str, Any]) -> str:
        name = event_abi.get("name")
        inputs = event_abi.get("inputs", [])
        if not isinstance(name, str) or not isinstance(inputs, list):
            raise ValueError("Invalid event ABI: missing name/inputs")
        types = []
        for inp in inputs:
            if not isinstance(inp, dict) or "type" not in inp:
                raise ValueError("Invalid event ABI inputs")
            types.append(inp["type"])
        return f"{name}({','.join(types)})"

    def _decode_non_indexed_data(self, data: bytes) -> dict[str, Any]:
        if not self._non_indexed_inputs:
            if data:
                raise DecodeError(f"{self._signature}: unexpected data payload")
            return {}

        try:
            values = abi_decode(self._non_indexed_types, data)
        except DecodingError as exc:
            raise DecodeError(f"{self._signature}: {exc}") from exc

        out: dict[str, Any] = {}
        for name, typ, val in zip(self._non_indexed_names, self._non_indexed_types, values, strict=True):
            out[name] = self._normalize_abi_value(typ, val)
        return out

    # ---------------------------------------------------------------------
    # Topic / ABI value normalization
    # ---------------------------------------------------------------------

    def _decode_value(self, typ: str, topic: bytes) -> Any:
        if typ == "address":
            # Indexed address is a 32-byte topic, left-zero padded.
            return "0x" + topic[-20:].hex()
        try:
            (val,) = abi_decode([typ], topic)
        except DecodingError as exc:
            raise DecodeError(f"{self._signature}: {exc}") from exc
        return self._normalize_abi_value(typ, val)

    def _normalize_abi_value(self, typ: str, val: Any) -> Any:
        if typ == "address":
            return str(val).lower()

        if typ.startswith("uint") or typ.startswith("int"):
            # eth_abi handles the sign of intN properly
            return int(val)

        if typ.startswith("bytes"):
            return bytes(val)

        return val
