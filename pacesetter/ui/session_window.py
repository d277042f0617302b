"""
Session Window

Provides UI for:
- Starting, pausing, resuming and stopping a session
- Live cadence readout (speed, phase, beat meter, edges/ruins)
- Current task with countdown and a skip button
- Current media item with manual advance
- Session summary after stop

The window's 16 ms QTimer is the frame source that drives
``SessionRunner.update(dt)``.
"""

import logging
import time
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import Qt, QTimer, pyqtSignal
from PyQt6.QtGui import QColor, QPainter, QPixmap
from PyQt6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QLabel, QPushButton, QGroupBox,
    QProgressBar, QPlainTextEdit,
)

from ..config import GameConfig
from ..content.media_scan import MediaType
from ..session.runner import SessionRunner


def _fmt_clock(seconds: float) -> str:
    minutes, secs = divmod(int(max(0.0, seconds)), 60)
    return f"{minutes:02d}:{secs:02d}"


class BeatMeter(QWidget):
    """Flashes on every beat; fades over a quarter second."""

    FLASH_S = 0.25

    def __init__(self, parent=None):
        super().__init__(parent)
        self.setFixedHeight(18)
        self._last_beat = 0.0

    def pulse(self):
        self._last_beat = time.monotonic()
        self.update()

    def paintEvent(self, _):
        age = time.monotonic() - self._last_beat
        alpha = int(230 * max(0.0, 1.0 - age / self.FLASH_S))
        p = QPainter(self)
        p.setRenderHints(QPainter.RenderHint.Antialiasing, True)
        p.setPen(Qt.PenStyle.NoPen)
        p.setBrush(QColor(255, 255, 255, 30))
        r = self.rect().adjusted(1, 1, -1, -1)
        p.drawRoundedRect(r, r.height() / 2, r.height() / 2)
        if alpha > 0:
            p.setBrush(QColor(255, 154, 60, alpha))
            p.drawRoundedRect(r, r.height() / 2, r.height() / 2)


class SessionWindow(QWidget):
    """
    Main session window.

    The runner is rebuilt from the current config whenever a new session
    starts, so config edits apply to the next session only.
    """

    session_started = pyqtSignal()
    session_stopped = pyqtSignal(object)  # SessionSummary

    def __init__(
        self,
        config: Optional[GameConfig] = None,
        *,
        runner_factory=None,
        parent=None,
    ):
        super().__init__(parent)
        self.logger = logging.getLogger(__name__)
        self.config = config or GameConfig()
        self._runner_factory = runner_factory or (lambda cfg: SessionRunner(cfg))
        self.runner: Optional[SessionRunner] = None
        self._last_frame: Optional[float] = None
        self._last_strokes = 0

        self.frame_timer = QTimer(self)
        self.frame_timer.setInterval(16)
        self.frame_timer.timeout.connect(self._on_frame)

        self.setWindowTitle("Pacesetter")
        self._init_ui()
        self._refresh_buttons()

    # ------------------------------------------------------------------ ui
    def _init_ui(self):
        layout = QVBoxLayout(self)
        layout.setSpacing(10)
        layout.setContentsMargins(12, 12, 12, 12)

        # === PROGRESS ===
        progress_group = QGroupBox("Session")
        pl = QVBoxLayout()
        self.progress_bar = QProgressBar()
        self.progress_bar.setRange(0, 1000)
        self.progress_bar.setFormat("Not started")
        pl.addWidget(self.progress_bar)
        times = QHBoxLayout()
        self.label_elapsed = QLabel("Elapsed 00:00")
        self.label_remaining = QLabel("Remaining --:--")
        self.label_driver = QLabel("Phase: -")
        times.addWidget(self.label_elapsed)
        times.addSpacing(16)
        times.addWidget(self.label_remaining)
        times.addStretch()
        times.addWidget(self.label_driver)
        pl.addLayout(times)
        progress_group.setLayout(pl)
        layout.addWidget(progress_group)

        # === CADENCE ===
        cadence_group = QGroupBox("Cadence")
        cl = QVBoxLayout()
        row = QHBoxLayout()
        self.label_speed = QLabel("0.00 /s")
        self.label_speed.setStyleSheet("font-size: 16pt; font-weight: bold;")
        self.label_phase = QLabel("idle")
        self.label_counts = QLabel("Edges 0 · Ruins 0 · Strokes 0")
        row.addWidget(self.label_speed)
        row.addSpacing(12)
        row.addWidget(self.label_phase)
        row.addStretch()
        row.addWidget(self.label_counts)
        cl.addLayout(row)
        self.beat_meter = BeatMeter()
        cl.addWidget(self.beat_meter)
        self.label_notification = QLabel("")
        self.label_notification.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.label_notification.setStyleSheet("font-size: 14pt; color: #ff9a3c;")
        cl.addWidget(self.label_notification)
        cadence_group.setLayout(cl)
        layout.addWidget(cadence_group)

        # === TASK ===
        task_group = QGroupBox("Task")
        tl = QVBoxLayout()
        self.label_task = QLabel("<i>No task</i>")
        self.label_task.setWordWrap(True)
        self.task_progress = QProgressBar()
        self.task_progress.setRange(0, 1000)
        self.task_progress.setTextVisible(False)
        tl.addWidget(self.label_task)
        tl.addWidget(self.task_progress)
        task_group.setLayout(tl)
        layout.addWidget(task_group)

        # === MEDIA ===
        media_group = QGroupBox("Media")
        ml = QVBoxLayout()
        self.media_view = QLabel("<i>No media</i>")
        self.media_view.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.media_view.setMinimumHeight(160)
        ml.addWidget(self.media_view, 1)
        media_group.setLayout(ml)
        layout.addWidget(media_group, 1)

        # === CONTROLS ===
        controls = QHBoxLayout()
        self.btn_start = QPushButton("Start")
        self.btn_start.clicked.connect(self.start_session)
        self.btn_pause = QPushButton("Pause")
        self.btn_pause.clicked.connect(self.toggle_pause)
        self.btn_skip = QPushButton("Skip Task")
        self.btn_skip.clicked.connect(self.skip_task)
        self.btn_next = QPushButton("Next Media")
        self.btn_next.clicked.connect(self.next_media)
        self.btn_stop = QPushButton("Stop")
        self.btn_stop.clicked.connect(self.stop_session)
        for btn in (self.btn_start, self.btn_pause, self.btn_skip, self.btn_next, self.btn_stop):
            controls.addWidget(btn)
        layout.addLayout(controls)

        # === SUMMARY ===
        self.summary_view = QPlainTextEdit()
        self.summary_view.setReadOnly(True)
        self.summary_view.setMaximumHeight(200)
        self.summary_view.setPlaceholderText("Session summary appears here after Stop")
        layout.addWidget(self.summary_view)

    def _refresh_buttons(self):
        runner = self.runner
        stopped = runner is None or runner.is_stopped()
        self.btn_start.setEnabled(stopped)
        self.btn_pause.setEnabled(not stopped)
        self.btn_pause.setText("Resume" if runner is not None and runner.is_paused() else "Pause")
        self.btn_skip.setEnabled(not stopped and runner.tasks.busy)
        self.btn_next.setEnabled(not stopped and runner.media is not None)
        self.btn_stop.setEnabled(not stopped)

    # ------------------------------------------------------------ controls
    def set_config(self, config: GameConfig):
        """Use *config* for the next session."""
        self.config = config

    def start_session(self) -> bool:
        if self.runner is not None and not self.runner.is_stopped():
            return False
        self.runner = self._runner_factory(self.config)
        if not self.runner.start():
            return False
        self._last_frame = time.monotonic()
        self._last_strokes = 0
        self.summary_view.clear()
        self.frame_timer.start()
        self._refresh_view()
        self._refresh_buttons()
        self.session_started.emit()
        return True

    def toggle_pause(self):
        if self.runner is None:
            return
        if self.runner.is_paused():
            self.runner.resume()
        else:
            self.runner.pause()
        self._refresh_buttons()

    def skip_task(self):
        if self.runner is not None:
            self.runner.skip_task()
            self._refresh_view()
            self._refresh_buttons()

    def next_media(self):
        if self.runner is not None:
            self.runner.advance_media()
            self._refresh_media()

    def stop_session(self) -> bool:
        if self.runner is None or not self.runner.stop():
            return False
        self.frame_timer.stop()
        summary = self.runner.last_summary
        if summary is not None:
            self.summary_view.setPlainText(summary.format_text())
        self.progress_bar.setFormat("Stopped")
        self.label_notification.setText("")
        self._refresh_buttons()
        self.session_stopped.emit(summary)
        return True

    # --------------------------------------------------------------- frame
    def _on_frame(self):
        if self.runner is None:
            return
        now = time.monotonic()
        dt = now - (self._last_frame or now)
        self._last_frame = now
        try:
            self.runner.update(dt)
        except Exception as e:
            self.logger.error("[session] Frame update failed: %s", e, exc_info=True)
        self._refresh_view()
        self._refresh_buttons()

    def _refresh_view(self):
        runner = self.runner
        if runner is None:
            return
        snap = runner.cadence.snapshot()
        plan = runner.plan
        if plan is not None and plan.total_seconds > 0:
            self.progress_bar.setValue(int(1000 * min(1.0, runner.elapsed / plan.total_seconds)))
            self.progress_bar.setFormat("Complete" if plan.session_complete else "%p%")
        self.label_elapsed.setText(f"Elapsed {_fmt_clock(runner.elapsed)}")
        self.label_remaining.setText(f"Remaining {_fmt_clock(runner.remaining)}")
        self.label_driver.setText(f"Phase: {runner.driver.phase.value.replace('_', ' ')}")

        self.label_speed.setText(f"{snap.speed:.2f} /s")
        self.label_phase.setText(snap.phase.value.replace("_", " ") + (" (paused)" if runner.is_paused() else ""))
        self.label_counts.setText(f"Edges {snap.edges_fired} · Ruins {snap.ruins_fired} · Strokes {snap.total_strokes}")
        self.label_notification.setText(snap.notification or "")
        if snap.total_strokes != self._last_strokes:
            self._last_strokes = snap.total_strokes
            self.beat_meter.pulse()
        self.beat_meter.update()

        action = runner.tasks.current
        if action is None:
            self.label_task.setText("<i>No task</i>")
            self.task_progress.setValue(0)
        else:
            left = runner.task_time_left
            total = action.duration_s or runner.config.task_duration_s
            self.label_task.setText(f"<b>{action.label}</b> ({int(left)}s)<br>{action.description}")
            self.task_progress.setValue(int(1000 * (left / total)) if total > 0 else 0)
        self._refresh_media()

    def _refresh_media(self):
        runner = self.runner
        item = runner.media.current_item() if runner is not None and runner.media is not None else None
        key = item.id if item is not None else None
        if key == getattr(self, "_media_key", None):
            return
        self._media_key = key
        if item is None:
            self.media_view.setPixmap(QPixmap())
            self.media_view.setText("<i>No media</i>")
            return
        if item.media_type in (MediaType.IMAGE, MediaType.ANIMATION):
            pix = QPixmap(item.path)
            if not pix.isNull():
                self.media_view.setPixmap(pix.scaled(
                    self.media_view.size(),
                    Qt.AspectRatioMode.KeepAspectRatio,
                    Qt.TransformationMode.SmoothTransformation,
                ))
                return
        self.media_view.setPixmap(QPixmap())
        self.media_view.setText(Path(item.path).name)

    def closeEvent(self, event):
        try:
            self.stop_session()
        finally:
            super().closeEvent(event)
