"""
Task Receipts

Every task the engine runs leaves a receipt: the slot name, the task type
and a hash of the solver state right after it. Receipts are chained by
SHA-256 over canonical JSON, so two solves with the same problem and
settings end on the same final hash, and an edited trail no longer
verifies.
"""

import json
import hashlib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List

GENESIS = "genesis"


def canonical_dumps(obj: Any, indent: int = None) -> str:
    """Serialize with sorted keys so equal objects give equal strings."""
    separators = (',', ':') if indent is None else None
    return json.dumps(obj, sort_keys=True, separators=separators, indent=indent, default=str)


def canonical_hash(obj: Any) -> str:
    """SHA-256 hex digest of the canonical JSON of obj."""
    return hashlib.sha256(canonical_dumps(obj).encode()).hexdigest()


class ActionType(Enum):
    TASK_RUN = "task_run"
    TASK_FAILED = "task_failed"
    TERMINATE = "terminate"


@dataclass
class Receipt:
    """
    One engine event.

    Attributes:
        sequence: Position in the chain
        action: Event type
        params: Slot name, task type and, for failures, the message
        state_hash: Hash of Environment.state_summary() after the event
        prev_hash: Hash of the preceding receipt, GENESIS for the first
        receipt_hash: Hash over all of the above
    """
    sequence: int
    action: ActionType
    params: Dict[str, Any]
    state_hash: str
    prev_hash: str
    receipt_hash: str = field(default="")

    def __post_init__(self):
        if not self.receipt_hash:
            self.receipt_hash = canonical_hash(self._payload())

    def _payload(self) -> Dict[str, Any]:
        return {
            "sequence": self.sequence,
            "action": self.action.value,
            "params": self.params,
            "state_hash": self.state_hash,
            "prev_hash": self.prev_hash,
        }

    @property
    def task(self) -> str:
        return self.params.get("task", "")

    def verify(self) -> bool:
        return self.receipt_hash == canonical_hash(self._payload())

    def to_dict(self) -> Dict[str, Any]:
        data = self._payload()
        data["receipt_hash"] = self.receipt_hash
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Receipt':
        return cls(
            sequence=data["sequence"],
            action=ActionType(data["action"]),
            params=data["params"],
            state_hash=data["state_hash"],
            prev_hash=data["prev_hash"],
            receipt_hash=data["receipt_hash"],
        )


class ReceiptChain:
    """Append-only trail of task receipts."""

    def __init__(self):
        self.receipts: List[Receipt] = []

    def add_receipt(self, action: ActionType, params: Dict[str, Any], state: Any = None) -> Receipt:
        """
        Append a receipt linked to the current tail.

        Args:
            action: The event type
            params: Event parameters, at least {"task": slot name}
            state: Solver state summary hashed into the receipt

        Returns:
            The created receipt
        """
        receipt = Receipt(
            sequence=len(self.receipts),
            action=action,
            params=params,
            state_hash=canonical_hash(state),
            prev_hash=self.final_hash,
        )
        self.receipts.append(receipt)
        return receipt

    def verify_chain(self) -> bool:
        """True if every receipt hash matches and every link is intact."""
        prev_hash = GENESIS
        for sequence, receipt in enumerate(self.receipts):
            if receipt.sequence != sequence or receipt.prev_hash != prev_hash:
                return False
            if not receipt.verify():
                return False
            prev_hash = receipt.receipt_hash
        return True

    def executed_tasks(self) -> List[str]:
        """Slot names of the tasks that completed, in execution order."""
        return [r.task for r in self.receipts if r.action == ActionType.TASK_RUN]

    def failed_tasks(self) -> List[str]:
        return [r.task for r in self.receipts if r.action == ActionType.TASK_FAILED]

    @property
    def final_hash(self) -> str:
        return self.receipts[-1].receipt_hash if self.receipts else GENESIS

    def __len__(self) -> int:
        return len(self.receipts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "receipts": [r.to_dict() for r in self.receipts],
            "final_hash": self.final_hash,
        }

    def save_json(self, path: Path) -> None:
        with open(path, 'w') as f:
            f.write(canonical_dumps(self.to_dict(), indent=2))

    @classmethod
    def load_json(cls, path: Path) -> 'ReceiptChain':
        with open(path, 'r') as f:
            data = json.load(f)

        chain = cls()
        chain.receipts = [Receipt.from_dict(r) for r in data["receipts"]]
        return chain
