"""
Batch controller: drive every document in the input folder through the
workflow, route it to done/fail and keep the run statistics.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from .config import UploaderSettings
from .files import FileManager, identifiers_from_filename
from .models import DocumentResult, OutcomeStatus, Task
from .session import SessionManager
from .stats import RunStatistics
from .workflow import WorkflowOrchestrator


class BatchController:
    def __init__(
        self,
        sessions: SessionManager,
        orchestrator: WorkflowOrchestrator,
        files: FileManager,
        settings: UploaderSettings,
        stats: Optional[RunStatistics] = None,
    ):
        self.sessions = sessions
        self.orchestrator = orchestrator
        self.files = files
        self.settings = settings
        self.stats = stats or RunStatistics()

    def run(self) -> RunStatistics:
        """Process all documents in order and return the final statistics.

        A failure to start the browser propagates to the caller. Documents
        left unprocessed after an aborted run stay in the input folder.
        """
        documents = self.files.list_documents()
        self.stats.total = len(documents)

        if not documents:
            logging.info("📂 No PDF files found in the specified folder")
            logging.info(f"📁 Checked folder: {self.files.pdf_folder.resolve()}")
            self.stats.finish()
            self.stats.log_report()
            return self.stats

        logging.info(f"📊 Starting automation for {len(documents)} PDF files")
        if not self.settings.dry_run:
            self.files.ensure_folders()

        try:
            self.sessions.init()
            self._process_all(documents)
        finally:
            self.stats.finish()
            self.stats.log_report()
            self.sessions.cleanup(persist=True)
        return self.stats

    def _process_all(self, documents: List[Path]) -> None:
        for index, document in enumerate(documents, start=1):
            logging.info(f"📈 Progress: {index}/{len(documents)}")
            result = self.process_document(document)
            self._route(document, result)

            if self.sessions.is_alive():
                continue
            if len(documents) == 1:
                logging.info("🔄 Single file processing failed, closing browser...")
                return
            if index == len(documents):
                return

            logging.info("🔄 Browser crashed, attempting to reinitialize...")
            try:
                self.sessions.ensure_alive()
            except Exception as exc:
                self.stats.aborted = True
                self.stats.record_error("Fatal", f"Browser reinitialization failed: {exc}")
                logging.error(
                    f"❌ Could not reinitialize browser, stopping with {len(documents) - index} file(s) unprocessed: {exc}"
                )
                return
            logging.info("✅ Browser reinitialized successfully")
            logging.info("⏭️ Continuing with next file...")

    def process_document(self, document: Path) -> DocumentResult:
        """Run one task per supplier code in ``document``'s name, in declared order."""
        result = DocumentResult(document=document)
        identifiers = identifiers_from_filename(document.name)

        logging.info("=" * 60)
        logging.info(f"🔄 Processing: {document.name} (Suppliers: {', '.join(identifiers) or '-'})")
        logging.info("=" * 60)

        if not identifiers:
            self.stats.record_error(document.name, "No supplier code in filename")
            return result

        for position, identifier in enumerate(identifiers, start=1):
            if len(identifiers) > 1:
                logging.info(f"📋 Processing supplier {position}/{len(identifiers)}: {identifier}")
            outcome = self.orchestrator.run(Task(document=document, identifier=identifier))
            result.outcomes.append((identifier, outcome))

            if outcome.status is OutcomeStatus.SKIPPED:
                self.stats.record_skip()
                self.stats.record_error(document.name, outcome.reason, identifier)
            elif outcome.status is OutcomeStatus.FAILED:
                self.stats.record_error(document.name, outcome.reason, identifier)
        return result

    def _route(self, document: Path, result: DocumentResult) -> None:
        if result.succeeded:
            self.stats.record_success()
            logging.info(f"✅ Successfully uploaded {document.name} to all suppliers")
        else:
            self.stats.record_failure()
            failed = ", ".join(result.failed_identifiers()) or "-"
            logging.info(f"❌ Failed to upload {document.name} for suppliers: {failed}")

        if self.settings.dry_run:
            logging.info(f"🧪 Rehearsal: leaving {document.name} in place")
            return

        try:
            if result.succeeded:
                self.files.move_to_done(document)
            else:
                self.files.move_to_failed(document)
        except OSError as exc:
            logging.error(f"⚠️ Could not move {document.name}: {exc}")
            self.stats.record_error(document.name, f"Move failed: {exc}")
