"""
Chain Gateway Constants.

Event ABIs of the tipping and bounty contracts and their topic hashes.
"""

from eth_utils import keccak

# TippingContract
TIP_SENT_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "name": "sender", "type": "address"},
        {"indexed": True, "name": "recipient", "type": "address"},
        {"indexed": False, "name": "amount", "type": "uint256"},
        {"indexed": False, "name": "message", "type": "string"},
        {"indexed": False, "name": "timestamp", "type": "uint256"},
    ],
    "name": "TipSent",
    "type": "event",
}

# BountyContract
BOUNTY_CREATED_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "name": "bountyId", "type": "uint256"},
        {"indexed": True, "name": "creator", "type": "address"},
        {"indexed": False, "name": "title", "type": "string"},
        {"indexed": False, "name": "description", "type": "string"},
        {"indexed": False, "name": "amount", "type": "uint256"},
        {"indexed": False, "name": "deadline", "type": "uint256"},
    ],
    "name": "BountyCreated",
    "type": "event",
}

BOUNTY_CLAIMED_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "name": "bountyId", "type": "uint256"},
        {"indexed": True, "name": "claimer", "type": "address"},
        {"indexed": False, "name": "contentUrl", "type": "string"},
    ],
    "name": "BountyClaimed",
    "type": "event",
}

TIPPING_ABI = [TIP_SENT_ABI]
BOUNTY_ABI = [BOUNTY_CREATED_ABI, BOUNTY_CLAIMED_ABI]


def event_signature(event_abi: dict) -> str:
    """Canonical signature, e.g. TipSent(address,address,uint256,string,uint256)."""
    types = ",".join(item["type"] for item in event_abi["inputs"])
    return f"{event_abi['name']}({types})"


def event_topic(event_abi: dict) -> str:
    """0x-prefixed keccak of the event signature (topic0)."""
    return "0x" + keccak(text=event_signature(event_abi)).hex()


TIP_SENT_TOPIC = event_topic(TIP_SENT_ABI)
BOUNTY_CREATED_TOPIC = event_topic(BOUNTY_CREATED_ABI)
BOUNTY_CLAIMED_TOPIC = event_topic(BOUNTY_CLAIMED_ABI)

INDEXED_TOPICS = (TIP_SENT_TOPIC, BOUNTY_CREATED_TOPIC, BOUNTY_CLAIMED_TOPIC)
