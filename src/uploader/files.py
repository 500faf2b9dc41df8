"""
Input folder handling: enumerate documents, derive supplier codes from
filenames and move finished documents into the done/fail folders.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import List

from . import config


def identifiers_from_filename(filename: str) -> List[str]:
    """Supplier codes encoded in a document name, in declared order.

    ``"2002,2003.pdf"`` yields ``["2002", "2003"]``; blank entries are dropped.
    """
    stem = Path(filename).name
    if stem.lower().endswith(config.DOCUMENT_EXTENSION):
        stem = stem[: -len(config.DOCUMENT_EXTENSION)]
    codes = [code.strip() for code in stem.split(config.IDENTIFIER_DELIMITER)]
    return [code for code in codes if code]


def unique_destination(folder: Path, filename: str) -> Path:
    """First free path for ``filename`` in ``folder``: ``X.pdf``, ``X_1.pdf``, ``X_2.pdf``..."""
    candidate = folder / filename
    stem, ext = os.path.splitext(filename)
    counter = 1
    while candidate.exists():
        candidate = folder / f"{stem}_{counter}{ext}"
        counter += 1
    return candidate


class FileManager:
    def __init__(self, pdf_folder: str | os.PathLike):
        self.pdf_folder = Path(pdf_folder)

    @property
    def done_folder(self) -> Path:
        return self.pdf_folder / config.DONE_FOLDER_NAME

    @property
    def fail_folder(self) -> Path:
        return self.pdf_folder / config.FAIL_FOLDER_NAME

    def list_documents(self) -> List[Path]:
        """PDFs directly inside the input folder, sorted by name. Subfolders are ignored."""
        self.pdf_folder.mkdir(parents=True, exist_ok=True)
        documents = sorted(
            (
                entry
                for entry in self.pdf_folder.iterdir()
                if entry.is_file()
                and not entry.name.startswith(".")
                and entry.suffix.lower() == config.DOCUMENT_EXTENSION
            ),
            key=lambda p: p.name,
        )
        logging.info(f"📂 Found {len(documents)} PDF files in {self.pdf_folder}")
        return documents

    def ensure_folders(self) -> None:
        self.done_folder.mkdir(parents=True, exist_ok=True)
        self.fail_folder.mkdir(parents=True, exist_ok=True)

    def move_to_done(self, document: Path) -> Path:
        return self._move(document, self.done_folder, "done")

    def move_to_failed(self, document: Path) -> Path:
        return self._move(document, self.fail_folder, "fail")

    def _move(self, document: Path, folder: Path, label: str) -> Path:
        folder.mkdir(parents=True, exist_ok=True)
        destination = unique_destination(folder, document.name)
        shutil.move(str(document), str(destination))
        if destination.name != document.name:
            logging.info(f"📁 Moved {document.name} to {label} folder as {destination.name}")
        else:
            logging.info(f"📁 Moved {document.name} to {label} folder")
        return destination
