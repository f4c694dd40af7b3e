"""
Local payment cache.

Keeps one JSON file per submitted payment so a UI can show what was paid
after a reload. The payment flow only ever writes here.
"""

import logging
import re
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError

from .schemas.payments import PaymentRecord

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


class LocalPaymentCache:
    """
    Directory of ``payment_<txid>.json`` files.

    Args:
        directory: Cache directory, created on first write.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def path_for(self, transaction_id: str) -> Path:
        safe_id = _UNSAFE_CHARS.sub("_", transaction_id)
        return self.directory / f"payment_{safe_id}.json"

    def save(self, record: PaymentRecord) -> Path:
        """Write ``record`` under its transaction id, replacing any older entry."""
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(record.transaction_id)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
        tmp_path.replace(path)
        logger.debug("cached %s at %s", record.cache_key, path)
        return path

    def load(self, transaction_id: str) -> Optional[PaymentRecord]:
        """Cached record for ``transaction_id``, or None when absent or unreadable."""
        path = self.path_for(transaction_id)
        if not path.exists():
            return None
        try:
            return PaymentRecord.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, PydanticValidationError) as e:
            logger.warning("ignoring unreadable cache entry %s: %s", path, e)
            return None
