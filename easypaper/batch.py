"""Batch orchestration — the per-file state machine over a list of uploads.

State machine
-------------
::

    IDLE | ERROR --start--> READING --auto--> ANALYZING --ok--> COMPLETED
                                                        \\--fail--> ERROR

READING is a short pause that exists only so a UI can show the file being
picked up; ``Config.reading_delay_s = 0`` skips it.  COMPLETED files are never
re-analysed; ERROR files are picked up again by the next ``start_batch``.

Snapshots
---------
The batch is held as a tuple of frozen ``AnalyzedFile`` rows.  Every
transition builds a new tuple and hands it to the subscribed listeners, so the
render layer only ever sees immutable snapshots.  Files are processed one at a
time, in batch order, on the caller's event loop.
"""

import asyncio
import logging
import sys
import uuid
from typing import Callable, Iterable, Literal, Mapping, Sequence

import httpx
from tqdm.auto import tqdm

from easypaper.llm import ProviderAdapter, create_adapter
from easypaper.models import (
    DEFAULT_MODEL_CONFIGS,
    AnalyzedFile,
    BatchReport,
    Config,
    ExportArtifact,
    FailedPaper,
    ModelConfig,
    PaperAnalysis,
    ProcessingStatus,
    ProviderKind,
    SourceDocument,
)
from easypaper.renderer import (
    export_markdown,
    export_pdf,
    export_spreadsheet,
)

logger = logging.getLogger(__name__)

Snapshot = tuple[AnalyzedFile, ...]
Listener = Callable[[Snapshot], None]
ExportFormat = Literal["md", "pdf", "xlsx"]

_FALLBACK_ERROR = "Analysis failed, please retry."
_PENDING = frozenset({ProcessingStatus.IDLE, ProcessingStatus.ERROR})
_IN_FLIGHT = frozenset({ProcessingStatus.READING, ProcessingStatus.ANALYZING})


class BatchOrchestrator:
    """Owns the batch and drives every file through the pipeline.

    Args:
        config:        Runtime settings, including provider and credentials.
        model_configs: Provider table; ``config.provider`` selects the entry.
        adapter:       Pre-built adapter.  Built from the table when omitted.
        http_client:   Passed to the adapter built from the table.
    """

    def __init__(
        self,
        config: Config,
        model_configs: Mapping[ProviderKind, ModelConfig] = DEFAULT_MODEL_CONFIGS,
        adapter: ProviderAdapter | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self.model_config = model_configs[config.provider]
        self.adapter = adapter or create_adapter(
            self.model_config, config, http_client
        )
        self._files: Snapshot = ()
        self._issued_ids: set[str] = set()
        self._listeners: list[Listener] = []
        self._running = False

    # ------------------------------------------------------------------
    # Snapshot access
    # ------------------------------------------------------------------

    @property
    def files(self) -> Snapshot:
        return self._files

    @property
    def is_busy(self) -> bool:
        """True while any file is READING or ANALYZING."""
        return any(f.status in _IN_FLIGHT for f in self._files)

    def get(self, file_id: str) -> AnalyzedFile | None:
        return next((f for f in self._files if f.id == file_id), None)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for every new snapshot; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Batch membership
    # ------------------------------------------------------------------

    def add_files(self, documents: Iterable[SourceDocument]) -> list[SourceDocument]:
        """Append every PDF in ``documents`` as a new IDLE row.

        Returns:
            The documents that were rejected because they are not PDFs.
        """
        accepted: list[AnalyzedFile] = []
        rejected: list[SourceDocument] = []
        for document in documents:
            if not document.is_pdf:
                rejected.append(document)
                continue
            accepted.append(AnalyzedFile(id=self._new_id(), source=document))

        if rejected:
            logger.warning(
                "Only PDF files are supported; ignored %d file(s): %s",
                len(rejected),
                ", ".join(d.filename for d in rejected),
            )
        if accepted:
            logger.info("Added %d file(s) to the batch", len(accepted))
            self._publish(self._files + tuple(accepted))
        return rejected

    def remove(self, file_id: str) -> None:
        """Drop a row; unknown ids are ignored.

        Removing a file that is being analysed does not cancel the request;
        its result is discarded when it arrives.
        """
        entry = self.get(file_id)
        if entry is None:
            return
        if entry.status in _IN_FLIGHT:
            logger.warning(
                "Removed %s while %s; its result will be discarded",
                entry.filename,
                entry.status.value,
            )
        self._publish(tuple(f for f in self._files if f.id != file_id))

    def clear(self) -> bool:
        """Empty the batch.  Refused (returns False) while a file is in flight."""
        if self.is_busy:
            logger.warning("Cannot clear the batch while a file is being analysed")
            return False
        self._publish(())
        return True

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    async def start_batch(self) -> BatchReport:
        """Analyse every IDLE or ERROR file, strictly one after another.

        A failure is recorded on its file and the loop moves on.  A missing
        API key or endpoint id is raised before any file changes state, but
        only when there is something to analyse.

        Raises:
            ConfigurationError: if the provider credentials are incomplete.
        """
        if self._running:
            logger.warning("A batch is already running; ignoring start request")
            return BatchReport()

        pending = [f.id for f in self._files if f.status in _PENDING]
        report = BatchReport(skipped=len(self._files) - len(pending))
        if not pending:
            logger.info("Nothing to analyse")
            return report

        self.adapter.resolve_model(self.config.api_key, self.config.endpoint_id)

        logger.info(
            "Analysing %d file(s) with %s", len(pending), self.model_config.name
        )
        self._running = True
        try:
            with tqdm(
                total=len(pending),
                desc="Analyse",
                unit="pdf",
                disable=not sys.stderr.isatty(),
                leave=True,
            ) as progress:
                for run_idx, file_id in enumerate(pending, start=1):
                    entry = self.get(file_id)
                    if entry is None:
                        # Removed while waiting its turn.
                        progress.update(1)
                        continue
                    logger.info(
                        "  Processing [%d/%d]: %s", run_idx, len(pending), entry.filename
                    )
                    error = await self._process_file(entry)
                    if error is None:
                        report.processed += 1
                    else:
                        report.failed += 1
                        report.failed_papers.append(
                            FailedPaper(
                                file_id=file_id, filename=entry.filename, error=error
                            )
                        )
                    progress.update(1)
                    progress.set_postfix(ok=report.processed, failed=report.failed)
        finally:
            self._running = False

        logger.info(
            "Batch finished: processed %d, failed %d, skipped %d",
            report.processed,
            report.failed,
            report.skipped,
        )
        return report

    async def _process_file(self, entry: AnalyzedFile) -> str | None:
        """Run one file through READING → ANALYZING → COMPLETED/ERROR.

        Returns:
            ``None`` on success, otherwise the error message recorded.
        """
        self._transition(
            entry.id, status=ProcessingStatus.READING, result=None, error=None
        )
        await self._reading_pause()
        self._transition(entry.id, status=ProcessingStatus.ANALYZING)

        try:
            payload = await self.adapter.extract(entry.source)
            result = await self.adapter.analyze(
                payload, self.config.api_key, self.config.endpoint_id
            )
        except Exception as exc:
            message = str(exc) or _FALLBACK_ERROR
            logger.error("  Failed: %s: %s", entry.filename, message)
            self._transition(entry.id, status=ProcessingStatus.ERROR, error=message)
            return message

        logger.info("  Completed: %s", entry.filename)
        self._transition(entry.id, status=ProcessingStatus.COMPLETED, result=result)
        return None

    async def _reading_pause(self) -> None:
        if self.config.reading_delay_s > 0:
            await asyncio.sleep(self.config.reading_delay_s)

    # ------------------------------------------------------------------
    # Exports
    # ------------------------------------------------------------------

    def completed_results(self) -> list[PaperAnalysis]:
        """Results of every COMPLETED file, in batch order."""
        return [
            f.result
            for f in self._files
            if f.status is ProcessingStatus.COMPLETED and f.result is not None
        ]

    def export_batch(self) -> ExportArtifact | None:
        """Spreadsheet of every completed result; ``None`` when there are none."""
        results = self.completed_results()
        if not results:
            return None
        return export_spreadsheet(results)

    def export_file(self, file_id: str, fmt: ExportFormat) -> ExportArtifact | None:
        """Export one completed file; ``None`` if it is missing or not COMPLETED."""
        entry = self.get(file_id)
        if entry is None or entry.result is None:
            return None
        if fmt == "md":
            return export_markdown(entry.result, entry.filename)
        if fmt == "pdf":
            return export_pdf(entry.result, entry.filename)
        if fmt == "xlsx":
            return export_spreadsheet([entry.result])
        raise ValueError(f"Unknown export format: {fmt!r}")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _new_id(self) -> str:
        while True:
            file_id = uuid.uuid4().hex[:12]
            if file_id not in self._issued_ids:
                self._issued_ids.add(file_id)
                return file_id

    def _transition(self, file_id: str, **changes) -> None:
        """Replace one row with an updated copy; a missing row is a no-op."""
        entry = self.get(file_id)
        if entry is None:
            logger.warning("Discarding late update for removed file %s", file_id)
            return
        updated = AnalyzedFile(**{**dict(entry), **changes})
        logger.debug(
            "%s: %s -> %s", entry.filename, entry.status.value, updated.status.value
        )
        self._publish(tuple(updated if f.id == file_id else f for f in self._files))

    def _publish(self, files: Sequence[AnalyzedFile]) -> None:
        self._files = tuple(files)
        for listener in list(self._listeners):
            listener(self._files)
