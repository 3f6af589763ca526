"""Documents that hold trust records, and how records in them are rewritten.

Two kinds of document are supported:

``SourceDocument``
    Python source with records embedded as call literals, e.g.
    ``require_trusted("sha256", "<digest>", "https://...", "OLD", "https://...")``.
    A rewrite deletes the call's exact source span and inserts a freshly
    rendered literal.

``TrustRecordStore``
    A JSON file mapping a stable site identifier to a record, so consuming
    code only has to hold the identifier.

Both write the whole file atomically (temp file + rename), so an
interrupted rewrite leaves either the old or the new file, never a mix.
"""

from __future__ import annotations

import ast
import codecs
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ConfigDict, ValidationError

from trustfetch.config import config
from trustfetch.errors import TrustfetchError
from trustfetch.models.records import TrustRecord

logger = logging.getLogger(__name__)

_MIN_RECORD_ARGS = 3


class StaleRecordError(TrustfetchError):
    """Raised when a record changed or vanished between scan and rewrite."""


class InvalidDocumentError(TrustfetchError):
    """Raised when a document cannot be parsed for trust records."""


class RecordSite(BaseModel):
    """Where one trust record lives inside a document."""

    model_config = ConfigDict(frozen=True)

    site_id: str
    record: TrustRecord
    line: int = 0
    # Byte offsets of the record literal in a SourceDocument.
    start: int = 0
    end: int = 0
    callee: str = ""


class TrustDocument(Protocol):
    """Anything the Update Auditor can scan and rewrite."""

    @property
    def document_id(self) -> str: ...

    def sites(self) -> list[RecordSite]: ...

    def replace(self, site: RecordSite, record: TrustRecord) -> RecordSite: ...


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Replace *path* with *data* in one rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}-", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        if path.exists():
            os.chmod(tmp_name, path.stat().st_mode & 0o7777)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def open_document(path: Path) -> SourceDocument | TrustRecordStore:
    """``.json`` files are record stores; anything else is source."""
    path = Path(path)
    if path.suffix == ".json":
        return TrustRecordStore(path)
    return SourceDocument(path)


def _find_site(
    current: list[RecordSite], site: RecordSite, document_id: str
) -> RecordSite:
    for candidate in current:
        if candidate.site_id == site.site_id and candidate.record == site.record:
            return candidate
    raise StaleRecordError(
        f"Trust record {site.site_id} in {document_id} changed since it was "
        f"scanned; rescan before approving."
    )


# ---------------------------------------------------------------------------
# Embedded records in Python source
# ---------------------------------------------------------------------------


class SourceDocument:
    """Python source file carrying trust records as call literals.

    Parameters
    ----------
    path:
        The source file.
    function_name:
        Name of the call that marks a record (``foo(...)`` or ``mod.foo(...)``).
    """

    def __init__(self, path: Path, function_name: str | None = None) -> None:
        self._path = Path(path)
        self._function = function_name or config.record_function

    @property
    def path(self) -> Path:
        return self._path

    @property
    def document_id(self) -> str:
        return str(self._path.resolve())

    def sites(self) -> list[RecordSite]:
        return self._parse(self._path.read_bytes())

    def replace(self, site: RecordSite, record: TrustRecord) -> RecordSite:
        source = self._path.read_bytes()
        current = _find_site(self._parse(source), site, self.document_id)
        literal = record.render(current.callee).encode("utf-8")
        updated = source[: current.start] + literal + source[current.end :]
        try:
            ast.parse(updated, filename=str(self._path))
        except SyntaxError as exc:
            raise InvalidDocumentError(
                f"Rewriting {site.site_id} would leave {self._path} unparseable: {exc}"
            ) from exc
        atomic_write_bytes(self._path, updated)
        logger.info("Rewrote trust record %s in %s.", site.site_id, self._path)
        return current.model_copy(
            update={"record": record, "end": current.start + len(literal)}
        )

    # -- Internal helpers ---------------------------------------------------

    def _parse(self, source: bytes) -> list[RecordSite]:
        try:
            tree = ast.parse(source, filename=str(self._path))
        except SyntaxError as exc:
            raise InvalidDocumentError(f"Cannot parse {self._path}: {exc}") from exc

        line_starts = [0]
        for line in source.splitlines(keepends=True):
            line_starts.append(line_starts[-1] + len(line))
        # ast columns on the first line do not count a leading BOM.
        if source.startswith(codecs.BOM_UTF8):
            line_starts[0] = len(codecs.BOM_UTF8)

        calls = [node for node in ast.walk(tree) if self._is_record_call(node)]
        calls.sort(key=lambda n: (n.lineno, n.col_offset))

        sites: list[RecordSite] = []
        for index, node in enumerate(calls):
            # ast columns are UTF-8 byte offsets within the line.
            start = line_starts[node.lineno - 1] + node.col_offset
            end = line_starts[node.end_lineno - 1] + node.end_col_offset
            values = [arg.value for arg in node.args]
            func_start = line_starts[node.func.lineno - 1] + node.func.col_offset
            func_end = line_starts[node.func.end_lineno - 1] + node.func.end_col_offset
            sites.append(
                RecordSite(
                    site_id=f"site-{index}",
                    record=TrustRecord(
                        algorithm=values[0],
                        expected_digest=values[1],
                        primary=values[2],
                        alternates=tuple(values[3:]),
                    ),
                    line=node.lineno,
                    start=start,
                    end=end,
                    callee=source[func_start:func_end].decode("utf-8"),
                )
            )
        return sites

    def _is_record_call(self, node: ast.AST) -> bool:
        if not isinstance(node, ast.Call) or node.keywords:
            return False
        func = node.func
        name = func.id if isinstance(func, ast.Name) else (
            func.attr if isinstance(func, ast.Attribute) else None
        )
        if name != self._function or len(node.args) < _MIN_RECORD_ARGS:
            return False
        return all(
            isinstance(arg, ast.Constant) and isinstance(arg.value, str)
            for arg in node.args
        )


# ---------------------------------------------------------------------------
# Decoupled JSON record store
# ---------------------------------------------------------------------------


class TrustRecordStore:
    """Trust records keyed by a stable site identifier, persisted as JSON.

    File format::

        {"records": {"<site_id>": {"algorithm": ..., "expected_digest": ...,
                                   "primary": ..., "alternates": [...]}}}

    Examples
    --------
    >>> from pathlib import Path
    >>> store = TrustRecordStore(Path("/tmp/trust.json"))
    >>> # store.put("vendor.helpers", record)
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def document_id(self) -> str:
        return str(self._path.resolve())

    def get(self, site_id: str) -> TrustRecord | None:
        return self._read().get(site_id)

    def put(self, site_id: str, record: TrustRecord) -> None:
        records = self._read()
        records[site_id] = record
        self._write(records)

    def sites(self) -> list[RecordSite]:
        return [
            RecordSite(site_id=site_id, record=record)
            for site_id, record in sorted(self._read().items())
        ]

    def replace(self, site: RecordSite, record: TrustRecord) -> RecordSite:
        records = self._read()
        _find_site(
            [RecordSite(site_id=k, record=v) for k, v in records.items()],
            site,
            self.document_id,
        )
        records[site.site_id] = record
        self._write(records)
        logger.info("Rewrote trust record %s in %s.", site.site_id, self._path)
        return site.model_copy(update={"record": record})

    # -- Internal helpers ---------------------------------------------------

    def _read(self) -> dict[str, TrustRecord]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            return {
                site_id: TrustRecord(**data)
                for site_id, data in raw.get("records", {}).items()
            }
        except (ValueError, TypeError, AttributeError, ValidationError) as exc:
            raise InvalidDocumentError(
                f"Invalid trust record store {self._path}: {exc}"
            ) from exc

    def _write(self, records: dict[str, TrustRecord]) -> None:
        payload = {
            "records": {
                site_id: record.model_dump(mode="json")
                for site_id, record in sorted(records.items())
            }
        }
        text = json.dumps(payload, indent=2, sort_keys=True) + "\n"
        atomic_write_bytes(self._path, text.encode("utf-8"))
