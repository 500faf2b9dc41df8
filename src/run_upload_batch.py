# src/run_upload_batch.py

import os
import sys
import logging
import signal
import argparse
from typing import List, Optional

from dotenv import load_dotenv
import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

# --- Import project modules (package-qualified for -m execution) ---
from src.uploader import config
from src.uploader.batch import BatchController
from src.uploader.errors import FatalError, SessionCrashed
from src.uploader.files import FileManager
from src.uploader.session import SessionManager
from src.uploader.stats import save_run_summary
from src.uploader.workflow import WorkflowOrchestrator

LOG_FILE = "logs/uploader.log"
EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

SENSITIVE_PATTERNS = (
    "PASSWORD",
    "USERNAME",
    "SENTRY_DSN",
    "COOKIE",
    "AUTH_STATE",
)


def _is_sensitive(text: str) -> bool:
    upper_text = str(text).upper()
    return any(pattern in upper_text for pattern in SENSITIVE_PATTERNS)


def _redact(value):
    if isinstance(value, dict):
        for key, val in list(value.items()):
            if _is_sensitive(key) or (isinstance(val, str) and _is_sensitive(val)):
                value[key] = "[REDACTED]"
            else:
                _redact(val)
    elif isinstance(value, list):
        for idx, item in enumerate(value):
            if isinstance(item, str) and _is_sensitive(item):
                value[idx] = "[REDACTED]"
            else:
                _redact(item)


def sanitize_upload_event(event, hint):
    """Redact credential-bearing keys and values from Sentry events."""
    _redact(event)
    return event


def setup_logging(verbose: bool = False) -> None:
    os.makedirs("logs", exist_ok=True)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(module)s - %(message)s',
        handlers=[
            logging.FileHandler(LOG_FILE), # Log to a file
            logging.StreamHandler() # Also print to console
        ]
    )


def init_sentry() -> bool:
    sentry_dsn = os.getenv("SENTRY_DSN")
    if not sentry_dsn:
        return False
    sentry_sdk.init(
        dsn=sentry_dsn,
        environment=os.getenv("SENTRY_ENVIRONMENT", "production"),
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1")),
        integrations=[LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)],
        before_send=sanitize_upload_event,
    )
    logging.info("Sentry monitoring initialized for upload batch")
    return True


def _handle_interrupt(signum, frame):
    # Immediate exit; an in-flight upload may be left half done in the remote app.
    logging.warning("🛑 Interrupted, exiting without cleanup")
    os._exit(EXIT_INTERRUPTED)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="TA Summary PDF upload batch")
    parser.add_argument("--folder", help="Input folder with PDF files (overrides UPLOADER_PDF_FOLDER)")
    parser.add_argument("--url", help="Application base URL (overrides UPLOADER_BASE_URL)")
    parser.add_argument(
        "--dry-run", "-d",
        action="store_true",
        help="Rehearsal: visible, slowed browser; nothing is attached, saved or moved",
    )
    return parser.parse_args(argv)


def resolve_settings(args: argparse.Namespace) -> config.UploaderSettings:
    settings = config.UploaderSettings()
    overrides = {}
    if args.folder:
        overrides["pdf_folder"] = args.folder
    if args.url:
        overrides["base_url"] = args.url
    if overrides:
        settings = settings.model_copy(update=overrides)
    if args.dry_run:
        settings = settings.as_rehearsal()
    return settings


def validate_settings(settings: config.UploaderSettings) -> None:
    base_url = (settings.base_url or "").strip().rstrip("/")
    if not base_url or base_url == config.PLACEHOLDER_BASE_URL:
        raise FatalError(
            "Base URL is not configured. Set UPLOADER_BASE_URL in .env or pass --url."
        )


def log_banner(settings: config.UploaderSettings) -> None:
    logging.info("🚀 TA Summary PDF Upload Automation")
    logging.info("=" * 50)
    logging.info(f"📍 Base URL: {settings.base_url}")
    logging.info(f"📁 PDF Folder: {os.path.abspath(settings.pdf_folder)}")
    logging.info(f"🧪 Mode: {'DRY RUN (rehearsal)' if settings.dry_run else 'LIVE'}")
    logging.info(f"👁️ Headless: {settings.headless}")
    logging.info(f"📸 Screenshots: {settings.enable_screenshots}")
    logging.info(f"🔐 Credentials configured: {settings.has_credentials}")
    logging.info("=" * 50)


def build_controller(settings: config.UploaderSettings, browser_factory=None) -> BatchController:
    sessions = SessionManager(settings, browser_factory) if browser_factory else SessionManager(settings)
    orchestrator = WorkflowOrchestrator(sessions, settings)
    return BatchController(sessions, orchestrator, FileManager(settings.pdf_folder), settings)


def main(argv: Optional[List[str]] = None, browser_factory=None) -> int:
    load_dotenv()
    args = parse_args(argv)
    settings = resolve_settings(args)

    setup_logging(settings.verbose_logging)
    sentry_enabled = init_sentry()

    try:
        validate_settings(settings)
    except FatalError as e:
        logging.error(f"❌ {e}")
        return EXIT_FAILURE

    log_banner(settings)
    mode = "dry_run" if settings.dry_run else "live"
    controller = build_controller(settings, browser_factory)

    try:
        stats = controller.run()
    except SessionCrashed as e:
        logging.error(f"❌ Fatal: {e}")
        return EXIT_FAILURE
    except Exception as e:
        logging.error(f"❌ Fatal error in upload batch: {e}", exc_info=True)
        if sentry_enabled:
            sentry_sdk.capture_exception(e)
        return EXIT_FAILURE

    try:
        save_run_summary(stats, mode)
    except Exception as summary_err:
        logging.error(f"Failed to save run summary: {summary_err}")

    if sentry_enabled:
        sentry_sdk.set_context("upload_batch", {"mode": mode, **stats.as_dict()})

    if stats.aborted:
        logging.error("🛑 Upload batch aborted before all files were processed.")
        return EXIT_FAILURE
    logging.info("🎉 Upload batch finished.")
    return EXIT_OK


# --- Allow running the script directly ---
if __name__ == "__main__":
    signal.signal(signal.SIGINT, _handle_interrupt)
    sys.exit(main())
