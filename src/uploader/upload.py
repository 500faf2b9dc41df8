"""
Upload-and-save stage: attach the document on the edit view and save the record.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

from . import config
from .browser import Browser, Element
from .config import UploaderSettings
from .errors import ElementNotFound, UploadFailure
from .models import StageStatus
from .utils import is_present, resolve, robust_activate

# Wait for the upload popup to render its buttons after a click
POPUP_PAUSE_SECONDS = 1.0
POST_SELECT_PAUSE_SECONDS = 0.5


class UploadStage:
    def __init__(self, browser: Browser, settings: UploaderSettings):
        self.browser = browser
        self.settings = settings

    def execute(self, document_path: str) -> StageStatus:
        self.upload(document_path)
        return self.save()

    # --- Upload ---

    def upload(self, document_path: str) -> StageStatus:
        logging.info("📎 Uploading PDF: %s", os.path.basename(document_path))
        file_input = self._find_file_input()

        if self.settings.dry_run:
            logging.info("🧪 Rehearsal: file input located, not attaching %s", os.path.basename(document_path))
            return StageStatus.SKIPPED

        try:
            file_input.set_files(document_path)
        except Exception as exc:
            raise UploadFailure(f"Could not attach {os.path.basename(document_path)}: {exc}") from exc
        self.browser.pause(POST_SELECT_PAUSE_SECONDS)

        confirm = resolve(self.browser, config.CONFIRM_UPLOAD_BUTTON, self.settings.resolve_timeout)
        if confirm is not None:
            logging.info("✅ Found Upload File button, clicking...")
            confirm.click()
            self.browser.pause(POPUP_PAUSE_SECONDS)
        else:
            logging.info("⚠️ Upload File button not found, file might be uploaded automatically")

        self._await_upload_result()
        logging.info("✅ PDF upload completed")
        return StageStatus.SUCCEEDED

    def _find_file_input(self) -> Element:
        file_input = resolve(self.browser, config.FILE_INPUT)
        if file_input is not None:
            return file_input

        logging.info("🔍 No file input found, looking for upload button...")
        opener = resolve(self.browser, config.OPEN_UPLOAD_BUTTON, self.settings.resolve_timeout)
        if opener is not None:
            opener.click()
            self.browser.pause(POPUP_PAUSE_SECONDS)
            file_input = resolve(self.browser, config.FILE_INPUT, self.settings.resolve_timeout)

        if file_input is None:
            raise UploadFailure(
                "Could not find file upload input",
                role=config.FILE_INPUT.name,
                candidates=config.FILE_INPUT.describe() + config.OPEN_UPLOAD_BUTTON.describe(),
            )
        logging.info("✅ File input appeared after clicking button")
        return file_input

    def _await_upload_result(self) -> None:
        dialog = resolve(self.browser, config.UPLOAD_SUCCESS_DIALOG, self.settings.resolve_timeout)
        if dialog is not None:
            logging.info("✅ Upload success dialog detected")
            self.dismiss_dialog()
            return
        if is_present(self.browser, config.UPLOAD_SUCCESS):
            logging.info("✅ Upload success detected")
            return
        logging.warning("⚠️ No explicit success message found, but continuing...")

    def dismiss_dialog(self) -> Optional[str]:
        """Close the success popup; failure is logged and tolerated."""
        ok_button = resolve(self.browser, config.DIALOG_OK_BUTTON, self.settings.resolve_timeout)
        if ok_button is None:
            logging.info("⚠️ OK button not found, trying keyboard shortcuts...")

        method = robust_activate(self.browser, ok_button)
        if method is None:
            logging.warning("⚠️ Could not dismiss the success dialog, continuing to save")
            return None

        logging.info("✅ Success dialog dismissed via %s", method)
        if is_present(self.browser, config.OPEN_DIALOG):
            logging.warning("⚠️ Modal may still be visible")
        return method

    # --- Save ---

    def save(self) -> StageStatus:
        if self.settings.dry_run:
            logging.info("🧪 Rehearsal: save skipped")
            return StageStatus.SKIPPED

        logging.info("💾 Saving changes...")
        button = resolve(self.browser, config.SAVE_BUTTON, self.settings.resolve_timeout)
        if button is None:
            raise ElementNotFound(
                "Save button not found",
                role=config.SAVE_BUTTON.name,
                candidates=config.SAVE_BUTTON.describe(),
            )
        button.click()
        logging.info("🔄 Save button clicked")
        self.browser.wait_for_settle(self.settings.settle_timeout)

        if self._save_confirmed():
            logging.info("✅ Changes saved successfully")
        else:
            # Indistinguishable from a silently failed save; see DESIGN.md.
            logging.warning("⚠️ Save confirmation not detected, but continuing...")
        return StageStatus.SUCCEEDED

    def _save_confirmed(self) -> bool:
        try:
            if config.LISTING_URL_FRAGMENT in self.browser.current_url():
                return True
        except Exception as e:
            logging.debug("Could not read URL after save: %s", e)
        return is_present(self.browser, config.SAVE_CONFIRMATION, self.settings.resolve_timeout)
