"""
Integrity Monitor

Samples simulated face presence and screen focus on two independent periodic
tasks, keeps the session's append-only red-flag log and derives the
authenticity score, attention score and face detection rate from it.
"""

from concurrent.futures import Future
from datetime import datetime
from typing import Callable, List, Optional, Set

from .detectors import Detector, MediaAcquirer, MediaHandle
from .environment import EnvironmentSignalSource
from .errors import PermissionDenied
from .models import (
    DetectionResult, EngineConfig, FlagSource, IntegrityState, RedFlag, Severity
)
from .scheduler import Scheduler, TaskHandle


NO_FACE = "No face detected"
MULTIPLE_FACES = "Multiple faces detected"
LOOKING_AWAY = "Looking away from screen"
TAB_SWITCH = "Tab switching detected"
NOT_FULLSCREEN = "Not in fullscreen mode"

# Face-sample flags raised once per run of consecutive samples showing them
DEDUPLICATED_FLAGS = (NO_FACE, MULTIPLE_FACES)


class IntegrityMonitor:
    """Accumulates red flags for one session and scores them."""

    def __init__(
        self,
        scheduler: Scheduler,
        detector: Detector,
        environment: EnvironmentSignalSource,
        media_acquirer: MediaAcquirer,
        config: Optional[EngineConfig] = None,
        session_logger=None,
        is_live: Optional[Callable[[], bool]] = None,
        wall_clock: Callable[[], datetime] = datetime.now
    ):
        self.scheduler = scheduler
        self.detector = detector
        self.environment = environment
        self.media_acquirer = media_acquirer
        self.config = config or EngineConfig.default()
        self.session_logger = session_logger
        self.wall_clock = wall_clock
        self._is_live = is_live

        self.monitoring_active = False
        self.face_task: Optional[TaskHandle] = None
        self.screen_task: Optional[TaskHandle] = None
        self.media: Optional[MediaHandle] = None
        self.permission_error: Optional[PermissionDenied] = None
        self.media_error: Optional[Exception] = None
        self.camera_status = "pending"

        self._flags: List[RedFlag] = []
        self._guard_flag_count = 0
        self._monitor_flag_count = 0
        self._face_flag_count = 0
        self._previous_face_flags: Set[str] = set()
        self._authenticity_score = 100
        self.total_checks = 0
        self.successful_detections = 0
        self.flagged_events = 0
        self.last_detection: Optional[DetectionResult] = None

        self._observers: List[Callable[[IntegrityState], None]] = []
        self._red_flag_listeners: List[Callable[[RedFlag], None]] = []
        self._permission_listeners: List[Callable[[PermissionDenied], None]] = []

    # ===== SUBSCRIPTIONS =====

    def add_observer(self, callback: Callable[[IntegrityState], None]) -> None:
        """Receive the full IntegrityState after every sample and every reported flag."""
        self._observers.append(callback)

    def add_red_flag_listener(self, callback: Callable[[RedFlag], None]) -> None:
        """External red-flag channel: called for every warning/error flag."""
        self._red_flag_listeners.append(callback)

    def on_permission_denied(self, callback: Callable[[PermissionDenied], None]) -> None:
        self._permission_listeners.append(callback)

    # ===== LIFECYCLE =====

    @property
    def live(self) -> bool:
        if not self.monitoring_active:
            return False
        return self._is_live() if self._is_live else True

    def start(self) -> 'Future[MediaHandle]':
        """
        Start screen sampling right away and request the camera.

        Face sampling starts once the media future resolves; a refusal leaves
        screen sampling running.
        """
        if self.monitoring_active:
            raise RuntimeError("Integrity monitor already started")

        self.monitoring_active = True
        self.screen_task = self.scheduler.every(
            self.config.screen_sample_interval_seconds, self._screen_sample
        )
        self._log("MONITORING_STARTED", "Screen sampling active, requesting camera")

        future = self.media_acquirer.acquire()
        future.add_done_callback(self._on_media_ready)
        return future

    def _on_media_ready(self, future: Future):
        with self.scheduler.lock:
            error = future.exception()
            if error is None and not self.live:
                # Session ended while the camera prompt was open
                handle = future.result()
                handle.stop()
                self.camera_status = "released"
                return

            if error is not None:
                if isinstance(error, PermissionDenied):
                    self.permission_error = error
                    self.camera_status = "denied"
                    self._log("CAMERA_DENIED", str(error))
                    for listener in list(self._permission_listeners):
                        listener(error)
                else:
                    self.media_error = error
                    self.camera_status = "failed"
                    self._log("CAMERA_ERROR", f"Media acquisition failed: {error}")
                self._emit()
                return

            self.media = future.result()
            self.camera_status = "active"
            self.face_task = self.scheduler.every(
                self.config.face_sample_interval_seconds, self._face_sample
            )
            self._log("CAMERA_ACTIVE", "Face sampling active")
            self._emit()

    def stop(self) -> IntegrityState:
        """Cancel both samplers, release the camera and return the final state."""
        was_active = self.monitoring_active
        self.monitoring_active = False
        for task in (self.face_task, self.screen_task):
            if task is not None:
                task.cancel()
        self.release_media()
        if was_active:
            self._log("MONITORING_STOPPED", f"Final authenticity score: {self._authenticity_score}")
        return self.snapshot()

    def release_media(self) -> None:
        """Stop the camera/microphone tracks. Safe to call repeatedly."""
        if self.media is not None:
            self.media.stop()
            self.media = None
            self.camera_status = "released"

    # ===== SAMPLING =====

    def _face_sample(self):
        if not self.live:
            return

        result = self.detector.sample()
        self.last_detection = result
        self.total_checks += 1
        if result.face_present:
            self.successful_detections += 1

        observed: Set[str] = set()
        if not result.face_present:
            self._face_flag(NO_FACE, Severity.WARNING, observed)
        if result.face_count > 1:
            self._face_flag(MULTIPLE_FACES, Severity.ERROR, observed)
        if not result.looking_at_screen:
            self._face_flag(LOOKING_AWAY, Severity.WARNING, observed)
        self._previous_face_flags = observed

        self._recompute()
        self._emit()

    def _screen_sample(self):
        if not self.live:
            return

        if self.environment.is_hidden():
            self._append(TAB_SWITCH, Severity.WARNING, FlagSource.MONITOR)
        if not self.environment.is_fullscreen():
            self._append(NOT_FULLSCREEN, Severity.INFO, FlagSource.MONITOR)

        self._recompute()
        self._emit()

    def _face_flag(self, description: str, severity: Severity, observed: Set[str]):
        observed.add(description)
        if description in DEDUPLICATED_FLAGS and description in self._previous_face_flags:
            return
        self._face_flag_count += 1
        self._append(description, severity, FlagSource.MONITOR)

    # ===== RED-FLAG CHANNEL =====

    def report_flag(self, description: str, severity: Severity = Severity.WARNING) -> Optional[RedFlag]:
        """
        Record a flag observed outside the samplers (environment guard).

        Returns the stored flag, or None when the session is no longer live.
        """
        with self.scheduler.lock:
            if not self.live:
                return None
            flag = self._append(description, severity, FlagSource.GUARD)
            self._recompute()
            self._emit()
            return flag

    def _append(self, description: str, severity: Severity, source: FlagSource) -> RedFlag:
        flag = RedFlag(
            timestamp=self.wall_clock(),
            description=description,
            severity=severity,
            source=source
        )
        self._flags.append(flag)

        if severity.is_score_bearing:
            if source is FlagSource.GUARD:
                self._guard_flag_count += 1
            else:
                self._monitor_flag_count += 1
            self.flagged_events += 1
            for listener in list(self._red_flag_listeners):
                listener(flag)

        self._log("RED_FLAG", f"[{severity.value}] {description}")
        return flag

    # ===== SCORING =====

    def _recompute(self):
        score = (100
                 - self.config.session_flag_penalty * self._guard_flag_count
                 - self.config.monitor_flag_penalty * self._monitor_flag_count)
        score = max(0, min(100, score))
        # Counts only grow, so this never raises the score
        self._authenticity_score = min(self._authenticity_score, score)

    @property
    def authenticity_score(self) -> int:
        return self._authenticity_score

    @property
    def attention_score(self) -> int:
        return max(0, 100 - self.config.attention_flag_penalty * self._face_flag_count)

    @property
    def face_detection_rate(self) -> float:
        if self.total_checks == 0:
            return 0.0
        return self.successful_detections / self.total_checks

    @property
    def red_flags(self) -> List[RedFlag]:
        return list(self._flags)

    def snapshot(self) -> IntegrityState:
        return IntegrityState(
            authenticity_score=self._authenticity_score,
            red_flags=tuple(self._flags),
            face_detection_rate=self.face_detection_rate,
            attention_score=self.attention_score,
            total_checks=self.total_checks,
            successful_detections=self.successful_detections,
            flagged_events=self.flagged_events,
            camera_status=self.camera_status,
            last_detection=self.last_detection
        )

    def _emit(self):
        state = self.snapshot()
        for observer in list(self._observers):
            observer(state)

    def _log(self, event: str, details: str = ""):
        if self.session_logger:
            self.session_logger(event, details)
