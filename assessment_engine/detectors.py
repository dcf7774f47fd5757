"""
Detection and media-acquisition backends for the integrity monitor.

The monitor only depends on the abstract Detector and MediaAcquirer
interfaces; a computer-vision backend can replace RandomDetector without
touching the flag/score rules.
"""

import random
from abc import ABC, abstractmethod
from concurrent.futures import Future
from typing import Optional

from .errors import PermissionDenied
from .models import DetectionResult


class Detector(ABC):
    """Produces one face-detection sample per call."""

    @abstractmethod
    def sample(self) -> DetectionResult:
        pass


class RandomDetector(Detector):
    """
    Simulated face detection.

    A face is found 90% of the time with 80-100% confidence, a second face
    shows up 5% of the time and the candidate looks at the screen 85% of
    the time.
    """

    FACE_PRESENT_P = 0.9
    MULTIPLE_FACES_P = 0.05
    LOOKING_AT_SCREEN_P = 0.85

    def __init__(self, seed: Optional[int] = None):
        self.rng = random.Random(seed)

    def sample(self) -> DetectionResult:
        return DetectionResult(
            face_present=self.rng.random() < self.FACE_PRESENT_P,
            face_confidence=0.8 + self.rng.random() * 0.2,
            face_count=2 if self.rng.random() < self.MULTIPLE_FACES_P else 1,
            looking_at_screen=self.rng.random() < self.LOOKING_AT_SCREEN_P
        )


class MediaHandle(ABC):
    """A live audio/video capture. Owned by exactly one monitor."""

    @abstractmethod
    def stop(self) -> None:
        """Stop all tracks. Must be safe to call more than once."""
        pass

    @property
    @abstractmethod
    def active(self) -> bool:
        pass


class MediaAcquirer(ABC):
    """Platform media API: resolves to a MediaHandle or fails with PermissionDenied."""

    @abstractmethod
    def acquire(self) -> 'Future[MediaHandle]':
        pass


class SimulatedMediaHandle(MediaHandle):
    """In-process stand-in for a camera/microphone stream."""

    def __init__(self, tracks=("video", "audio")):
        self.tracks = list(tracks)
        self._active = True
        self.stop_count = 0

    @property
    def active(self) -> bool:
        return self._active

    def stop(self) -> None:
        self.stop_count += 1
        self._active = False


class SimulatedMediaAcquirer(MediaAcquirer):
    """
    Resolves immediately: granted with a SimulatedMediaHandle, or refused
    with PermissionDenied.
    """

    def __init__(self, granted: bool = True):
        self.granted = granted
        self.handles = []

    def acquire(self) -> 'Future[MediaHandle]':
        future: Future = Future()
        if self.granted:
            handle = SimulatedMediaHandle()
            self.handles.append(handle)
            future.set_result(handle)
        else:
            future.set_exception(PermissionDenied("Camera and microphone access was denied"))
        return future
