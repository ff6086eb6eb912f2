"""Stable suggestion identities and canonical signatures."""

from __future__ import annotations

import hashlib
import json
from typing import Any, Dict, List

from shiftplan.domain.types import CreateShiftAction, MoveShiftAction, Suggestion

SUGGESTION_ID_PREFIX = "assistant-suggestion:v1"
SIGNATURE_VERSION = "sig:v2"
SIGNATURE_PREVIEW_LIMIT = 160


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def build_action_key(action: Any) -> str:
    """Pipe-joined canonical fields of one action; unknown actions serialize as sorted JSON."""
    if isinstance(action, MoveShiftAction):
        fields = [
            action.type,
            action.shift_id,
            action.user_id,
            action.date_key,
            action.new_start_time,
            action.new_end_time,
            action.position_id or "",
        ]
    elif isinstance(action, CreateShiftAction):
        fields = [
            action.type,
            action.user_id,
            action.date_key,
            action.start_time,
            action.end_time,
            action.position_id or "",
        ]
    else:
        return "unknown|" + json.dumps(action, sort_keys=True, default=str)
    return "|".join(str(value) for value in fields)


def canonical_suggestion_v1(suggestion: Suggestion) -> str:
    return ":".join(
        [
            suggestion.type,
            ";".join(build_action_key(a) for a in suggestion.actions),
            suggestion.expected_impact,
            suggestion.explanation,
        ]
    )


def build_suggestion_id(suggestion: Suggestion) -> str:
    """``assistant-suggestion:v1:{sha256}`` of type, actions, impact and explanation."""
    return f"{SUGGESTION_ID_PREFIX}:{sha256_hex(canonical_suggestion_v1(suggestion))}"


def is_suggestion_id_v1(suggestion_id: str) -> bool:
    return isinstance(suggestion_id, str) and suggestion_id.startswith(f"{SUGGESTION_ID_PREFIX}:")


def canonical_action_keys_v2(suggestion: Suggestion) -> List[str]:
    return sorted(build_action_key(a) for a in suggestion.actions)


def build_signature_v2(suggestion: Suggestion) -> Dict[str, Any]:
    """Order-independent signature of what a suggestion does (explanation text excluded)."""
    actions = []
    for key in canonical_action_keys_v2(suggestion):
        action_type, _, rest = key.partition("|")
        parts = rest.split("|")
        if action_type == "moveShift":
            names = ["shiftId", "userId", "dateKey", "newStartTime", "newEndTime", "positionId"]
        elif action_type == "createShift":
            names = ["userId", "dateKey", "startTime", "endTime", "positionId"]
        else:
            actions.append({"type": action_type, "raw": rest})
            continue
        actions.append({"type": action_type, **dict(zip(names, parts))})
    return {"version": SIGNATURE_VERSION, "type": suggestion.type, "actions": actions}


def stringify_signature(signature: Dict[str, Any]) -> str:
    return json.dumps(signature, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def build_signature_meta(suggestion: Suggestion) -> Dict[str, str]:
    signature = stringify_signature(build_signature_v2(suggestion))
    preview = signature
    if len(signature) > SIGNATURE_PREVIEW_LIMIT:
        preview = signature[:SIGNATURE_PREVIEW_LIMIT] + "…"
    return {
        "signatureVersion": SIGNATURE_VERSION,
        "signaturePreview": preview,
        "signatureHash": sha256_hex(signature),
    }
