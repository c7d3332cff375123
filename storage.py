import os
import json
import logging
import tempfile
from dataclasses import asdict
from pathlib import Path
from typing import List, Dict, Any, Optional

logger = logging.getLogger(__name__)


def ensure_dir(path: str):
    if path:
        Path(path).mkdir(parents=True, exist_ok=True)


def _replace_atomically(out_path: str, write) -> None:
    directory = os.path.dirname(out_path)
    ensure_dir(directory)
    with tempfile.NamedTemporaryFile(
        "w",
        encoding="utf-8",
        dir=directory or ".",
        prefix=f"{os.path.basename(out_path)}.",
        suffix=".tmp",
        delete=False,
    ) as f:
        tmp_path = f.name
        try:
            write(f)
        except BaseException:
            f.close()
            os.remove(tmp_path)
            raise
    os.replace(tmp_path, out_path)


def save_raw_json(data: Any, out_path: str) -> bool:
    try:
        _replace_atomically(
            out_path, lambda f: json.dump(data, f, ensure_ascii=False, indent=2)
        )
        return True
    except (OSError, TypeError, ValueError) as e:
        logger.error(f"Error saving JSON to {out_path}: {e}")
        return False


def load_raw_json(path: str, default: Any = None) -> Any:
    if not os.path.exists(path):
        return default
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Error loading JSON from {path}: {e}")
        return default


def save_records_jsonl(records: List[Any], out_path: str) -> bool:
    def write(f):
        for record in records:
            if hasattr(record, "to_dict"):
                record = record.to_dict()
            elif hasattr(record, "__dataclass_fields__"):
                record = asdict(record)
            json.dump(record, f, ensure_ascii=False)
            f.write("\n")

    try:
        _replace_atomically(out_path, write)
        return True
    except (OSError, TypeError, ValueError) as e:
        logger.error(f"Error saving JSONL to {out_path}: {e}")
        return False


def load_records_jsonl(path: str) -> List[Dict[str, Any]]:
    """Read a JSONL file, skipping lines that aren't valid JSON objects."""
    records = []
    if not os.path.exists(path):
        return records
    with open(path, "r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning(f"Skipping corrupt line {line_number} in {path}: {e}")
                continue
            if isinstance(record, dict):
                records.append(record)
    return records


def get_file_summary(path: str) -> Dict[str, Any]:
    try:
        size = os.path.getsize(path)
        with open(path, "r", encoding="utf-8") as f:
            count = sum(1 for line in f if line.strip())
        return {"file": path, "size_bytes": size, "record_count": count}
    except OSError as e:
        return {"file": path, "error": str(e)}


def remove_file(path: str) -> Optional[str]:
    """Delete a file if present. Returns an error message on failure."""
    try:
        if os.path.exists(path):
            os.remove(path)
        return None
    except OSError as e:
        logger.error(f"Error removing {path}: {e}")
        return str(e)
