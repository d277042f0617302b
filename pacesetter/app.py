import asyncio
import faulthandler
import logging
import os
import random
import sys
import traceback
from pathlib import Path
from typing import Optional

import qasync
from PyQt6.QtWidgets import QApplication

from . import __app_name__, __version__
from .config import load_config
from .content.media_queue import DirectoryMediaProvider, MediaQueue
from .engine.audio import PygameAudioSink
from .logging_utils import setup_logging
from .session.runner import SessionRunner
from .ui.session_window import SessionWindow

_DIAG_INSTALLED = False


def _install_diagnostics():
    global _DIAG_INSTALLED
    if _DIAG_INSTALLED:
        return
    if os.environ.get("PACESETTER_NO_DIAG", "0") in ("1", "true", "True", "yes"):
        return
    _DIAG_INSTALLED = True
    log = logging.getLogger("diag")
    try:
        faulthandler.enable(all_threads=True)
        log.info("DIAG faulthandler enabled")
    except Exception as e:
        log.debug("DIAG faulthandler unavailable: %s", e)

    def _excepthook(t, v, tb):
        log.error("UNCAUGHT %s: %s", t.__name__, v)
        for line in traceback.format_tb(tb):
            log.error(line.rstrip())
    sys.excepthook = _excepthook


def run(
    config_path: Optional[str] = None,
    media_dir: Optional[str] = None,
    voice_dir: Optional[str] = None,
    ambient_dir: Optional[str] = None,
    seed: Optional[int] = None,
    gender: Optional[str] = None,
    intensity: Optional[str] = None,
) -> int:
    # Ensure logging is configured when launching GUI directly
    log_mode_env = os.environ.get("PACESETTER_LOG_MODE")
    debug_mode = os.environ.get("PACESETTER_DEBUG", "0") in ("1", "true", "True", "yes")
    if not logging.getLogger().handlers:
        setup_logging(level="DEBUG" if debug_mode else "WARNING", add_console=True, log_mode=log_mode_env)
    _install_diagnostics()
    log = logging.getLogger(__name__)

    config = load_config(Path(config_path) if config_path else None)
    rng = random.Random(seed) if seed is not None else random.Random()

    app = QApplication(sys.argv)
    app.setApplicationName(__app_name__)
    app.setApplicationVersion(__version__)

    # qasync loop so cadence flows (asyncio tasks) run alongside Qt
    loop = qasync.QEventLoop(app)
    asyncio.set_event_loop(loop)

    audio = PygameAudioSink(config, voice_dir=voice_dir, ambient_dir=ambient_dir, rng=rng)
    media = None
    if media_dir:
        media = MediaQueue(DirectoryMediaProvider(media_dir, rng=rng))

    def make_runner(cfg):
        return SessionRunner(
            cfg,
            audio=audio,
            media=media,
            rng=rng,
            gender=gender,
            intensity=intensity,
        )

    win = SessionWindow(config, runner_factory=make_runner)
    app.aboutToQuit.connect(lambda: log.info("[app] aboutToQuit"))
    win.resize(720, 640)
    win.show()
    log.info("[app] %s %s ready", __app_name__, __version__)

    with loop:
        loop.run_forever()
    return 0


if __name__ == "__main__":
    raise SystemExit(run())
