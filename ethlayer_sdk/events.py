"""
Event log queries.
"""
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Union

from web3 import Web3

from .abi import ABI, decode_log, event_topic, find_event, match_event, parse_abi
from .exceptions import ValidationError
from .normalizer import normalize_error, to_serializable
from .provider import NetworkResolver
from .validation import validate_address, validate_block_tag

logger = logging.getLogger(__name__)

_TOPIC = re.compile(r"^0x[0-9a-fA-F]{64}$")

Topic = Optional[Union[str, Sequence[str]]]


def validate_topics(topics: Optional[Sequence[Topic]]) -> Optional[List[Topic]]:
    """
    Validate a topic filter. Each position is None (any), a 32-byte hex topic,
    or a list of alternatives.
    """
    if topics is None:
        return None
    if isinstance(topics, str) or not isinstance(topics, Sequence):
        raise ValidationError("Invalid input format: topics must be a list")
    checked: List[Topic] = []
    for i, topic in enumerate(topics):
        alternatives = topic if isinstance(topic, (list, tuple)) else [topic]
        for alt in alternatives:
            if alt is not None and (not isinstance(alt, str) or not _TOPIC.match(alt)):
                raise ValidationError(
                    f"Invalid input format: topics[{i}]: expected a 32-byte hex topic, got {alt!r}"
                )
        checked.append(list(topic) if isinstance(topic, (list, tuple)) else topic)
    return checked


def log_record(log: Any, name: Optional[str] = None, args: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Shape a raw web3 log into the record returned to callers"""
    return {
        "address": log.get("address"),
        "blockNumber": log.get("blockNumber"),
        "transactionHash": Web3.to_hex(log["transactionHash"]) if log.get("transactionHash") is not None else None,
        "logIndex": log.get("logIndex"),
        "name": name,
        "args": to_serializable(args) if args is not None else None,
        "data": Web3.to_hex(log.get("data") or b""),
        "topics": [Web3.to_hex(t) for t in log.get("topics", [])],
    }


class EventLogQuery:
    """
    Fetches and decodes logs.

    Args:
        networks: Resolver for network identifiers
    """

    def __init__(self, networks: NetworkResolver):
        self.networks = networks

    def _filter(
        self,
        address: Optional[str],
        topics: Optional[List[Topic]],
        from_block: Optional[Union[int, str]],
        to_block: Optional[Union[int, str]],
    ) -> Dict[str, Any]:
        # Absent criteria are left out so the node applies no restriction
        params: Dict[str, Any] = {}
        if address is not None:
            params["address"] = Web3.to_checksum_address(validate_address(address, "address"))
        if topics:
            params["topics"] = topics
        from_block = validate_block_tag(from_block, "fromBlock")
        to_block = validate_block_tag(to_block, "toBlock")
        if from_block is not None:
            params["fromBlock"] = from_block
        if to_block is not None:
            params["toBlock"] = to_block
        return params

    def query_logs(
        self,
        address: Optional[str] = None,
        topics: Optional[Sequence[Topic]] = None,
        from_block: Optional[Union[int, str]] = None,
        to_block: Optional[Union[int, str]] = None,
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Fetch raw logs matching a filter, in the order the node returns them.

        Returns:
            Log records with ``name`` and ``args`` set to None
        """
        try:
            params = self._filter(address, validate_topics(topics), from_block, to_block)
            handle = self.networks.resolve(network, chain_id)
            logs = handle.w3.eth.get_logs(params)
            logger.debug(f"Fetched {len(logs)} logs")
            return [log_record(log) for log in logs]
        except Exception as e:
            normalize_error(
                e, "query logs",
                {"address": address, "fromBlock": from_block, "toBlock": to_block},
            )

    def contract_events(
        self,
        address: str,
        abi: Union[str, ABI],
        event_name: Optional[str] = None,
        topics: Optional[Sequence[Topic]] = None,
        from_block: Optional[Union[int, str]] = None,
        to_block: Optional[Union[int, str]] = None,
        network: Optional[Any] = None,
        chain_id: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Fetch and decode the events of a contract.

        With ``event_name`` the event's topic hash is prepended to the topic
        filter. Logs that cannot be decoded with the ABI are returned raw.

        Raises:
            ValidationError: If the event is not declared in the ABI (before any fetch)
        """
        try:
            validate_address(address, "contractAddress")
            entries = parse_abi(abi)
            checked_topics = validate_topics(topics) or []
            if event_name is not None:
                checked_topics = [event_topic(find_event(entries, event_name))] + checked_topics
            params = self._filter(address, checked_topics, from_block, to_block)
            handle = self.networks.resolve(network, chain_id)
            logs = handle.w3.eth.get_logs(params)
            return [self._decode(entries, log) for log in logs]
        except Exception as e:
            normalize_error(
                e, "get contract events",
                {"contractAddress": address, "eventName": event_name, "fromBlock": from_block, "toBlock": to_block},
            )

    @staticmethod
    def _decode(entries: ABI, log: Any) -> Dict[str, Any]:
        event = match_event(entries, log.get("topics", []))
        if event is None:
            return log_record(log)
        try:
            args = decode_log(event, log.get("topics", []), log.get("data"))
        except Exception as e:
            logger.debug(f"Could not decode log {log.get('logIndex')} as {event['name']}: {e}")
            return log_record(log)
        return log_record(log, event["name"], args)
