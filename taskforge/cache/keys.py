import json
from typing import Any

TASK_KEY_PREFIX = "task:"
TASK_LIST_KEY_PREFIX = "tasks:"
TASK_LIST_PATTERN = f"{TASK_LIST_KEY_PREFIX}*"


def stable_stringify(value: Any) -> str:
    """
    Serialize a JSON-like value with mapping keys sorted at every depth.

    Sequences keep their order. Two mappings that differ only in key order
    produce the same string:

      stable_stringify({"status": "done", "page": 1})
      == stable_stringify({"page": 1, "status": "done"})
      == '{"page":1,"status":"done"}'
    """
    return json.dumps(
        value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str
    )


def task_key(task_id: int) -> str:
    return f"{TASK_KEY_PREFIX}{int(task_id)}"


def task_list_key(query: dict[str, Any]) -> str:
    return f"{TASK_LIST_KEY_PREFIX}{stable_stringify(query)}"
