"""
MRF file storage.

Documents are written under ``<base_dir>/<customer-slug>/<file name>`` and
listed through a single manifest, ``<base_dir>/index.json``::

    {"customers": {"<customer id>": {"id", "key", "name", "files": [...]}}}

File records are kept newest first. Files and the manifest are written to a
temporary file and swapped into place, and saves are serialized per manifest
path within the process. Each customer id owns its directory: a new id whose
slug is already taken gets a key suffixed with a digest of the id.
"""

import json
import logging
import os
import shutil
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

from .codes import disambiguate_key, slugify
from .config import MRF_DATA_DIR
from .models import GeneratedMrf, MrfCustomerRecord, MrfFileRecord, MrfIndex

logger = logging.getLogger(__name__)

INDEX_FILE_NAME = "index.json"

# Permissions for stored documents and the manifest (mkstemp creates 0600)
FILE_MODE = 0o644

_index_locks: Dict[str, threading.Lock] = {}
_index_locks_guard = threading.Lock()


class StorageError(OSError):
    """The manifest cannot be read as an MRF index, or a customer cannot be keyed."""


def _lock_for(path: Path) -> threading.Lock:
    key = str(path.resolve())
    with _index_locks_guard:
        lock = _index_locks.get(key)
        if lock is None:
            lock = threading.Lock()
            _index_locks[key] = lock
        return lock


def _utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision, e.g. 2024-05-01T12:00:00.000Z"""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def _atomic_write(path: Path, payload: str) -> None:
    """Write text to a temporary file beside ``path`` and rename it into place."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.chmod(tmp_name, FILE_MODE)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class MRFStorage:
    """
    Flat-file store for generated MRF documents.

    Example:
        >>> storage = MRFStorage("data/mrf")
        >>> record = storage.save(generated)
        >>> storage.list(record.customer_id)[0].files[0].file_name
    """

    def __init__(self, base_dir: Optional[Union[str, Path]] = None):
        """
        Initialize storage.

        Args:
            base_dir: Root directory for documents and the manifest.
                      Defaults to the MRF_DATA_DIR setting.
        """
        self.base_dir = Path(base_dir or MRF_DATA_DIR)
        self.index_path = self.base_dir / INDEX_FILE_NAME

    def save(self, generated: GeneratedMrf) -> MrfFileRecord:
        """
        Persist a generated document and record it in the manifest.

        A customer keeps the directory key it was first stored under. A new
        customer whose key is already taken by a different customer id gets
        a disambiguated key, so customers never share a directory.

        Args:
            generated: Document produced by the generator

        Returns:
            The new file record

        Raises:
            OSError: If the document or manifest cannot be written
            StorageError: If the existing manifest is unreadable, or no
                          unique key can be found for the customer
        """
        with _lock_for(self.index_path):
            index = self._read_index()
            customer = index.customers.get(generated.customer_id)
            if customer is None:
                customer_key = self._claim_key(index, generated)
                customer = MrfCustomerRecord(
                    id=generated.customer_id,
                    key=customer_key,
                    name=generated.customer_name,
                )
            customer_key = customer.key

            customer_dir = self.base_dir / customer_key
            customer_dir.mkdir(parents=True, exist_ok=True)
            file_path = customer_dir / generated.file_name
            _atomic_write(file_path, generated.data.to_json())

            record = MrfFileRecord(
                customer_id=generated.customer_id,
                customer_key=customer_key,
                customer_name=generated.customer_name,
                file_name=generated.file_name,
                created_at=_utc_timestamp(),
                claim_count=generated.claim_count,
                size=file_path.stat().st_size,
            )

            customer.name = generated.customer_name
            customer.files.insert(0, record)
            index.customers[generated.customer_id] = customer
            self._write_index(index)

        logger.info(
            "Saved %s for customer %s (%d bytes, %d claims)",
            record.file_name, record.customer_id, record.size, record.claim_count,
        )
        return record

    @staticmethod
    def _claim_key(index: MrfIndex, generated: GeneratedMrf) -> str:
        taken = {customer.key: customer.id for customer in index.customers.values()}
        key = slugify(generated.customer_key)
        if key not in taken:
            return key

        logger.warning(
            "Customer key %s is used by %r; disambiguating for %r",
            key, taken[key], generated.customer_id,
        )
        key = disambiguate_key(key, generated.customer_id)
        if key in taken:
            raise StorageError(f"No unique storage key for customer {generated.customer_id!r}")
        return key

    def list(self, customer_id: Optional[str] = None) -> List[MrfCustomerRecord]:
        """
        List customer records.

        Args:
            customer_id: Optional customer to restrict the listing to

        Returns:
            All customer records, or the matching one (empty list if unknown)
        """
        index = self._read_index()
        if not customer_id:
            return list(index.customers.values())
        customer = index.customers.get(customer_id)
        return [customer] if customer else []

    def read_file(self, customer_id: str, file_name: str) -> Optional[bytes]:
        """
        Read a stored document.

        Only the base name of ``file_name`` is used, so the lookup stays
        inside the customer's directory.

        Returns:
            The stored bytes, or None if the customer or file is unknown
        """
        customer = self._read_index().customers.get(customer_id)
        if customer is None:
            return None

        safe_name = os.path.basename(file_name.replace("\\", "/"))
        if not safe_name or safe_name in (".", ".."):
            return None

        file_path = self.base_dir / customer.key / safe_name
        try:
            return file_path.read_bytes()
        except OSError as e:
            logger.warning("Could not read %s: %s", file_path, e)
            return None

    def clear(self) -> None:
        """Delete every stored document and the manifest."""
        with _lock_for(self.index_path):
            if self.base_dir.exists():
                shutil.rmtree(self.base_dir)
        logger.info("Cleared MRF storage at %s", self.base_dir)

    def _read_index(self) -> MrfIndex:
        try:
            payload = self.index_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return MrfIndex()

        try:
            return MrfIndex.model_validate(json.loads(payload))
        except ValueError as e:
            raise StorageError(f"MRF manifest {self.index_path} is unreadable: {e}") from e

    def _write_index(self, index: MrfIndex) -> None:
        self.base_dir.mkdir(parents=True, exist_ok=True)
        _atomic_write(self.index_path, index.model_dump_json(indent=2, by_alias=True))
