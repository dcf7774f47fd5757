"""
Persistence collaborator for the session engine.

SubmissionStore is the contract the engine depends on. FileStore keeps
assessments, candidates and submissions as JSON documents under one root
directory, optionally Fernet-encrypted (``.enc``):

    <root>/assessments/<assessment_id>.json | .enc
    <root>/candidates/<unique_link>.json
    <root>/submissions/<session_id>.json | .enc
"""

import json
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator, Optional

from . import crypto
from .errors import PersistError
from .models import AssessmentDescriptor, CandidateDescriptor, SubmissionRecord


class SubmissionStore(ABC):
    """Contract of the external persistence collaborator."""

    @abstractmethod
    def save_submission(self, record: SubmissionRecord) -> str:
        """Persist ``record``; returns an acknowledgement id. Raises PersistError."""
        pass

    @abstractmethod
    def load_assessment(self, link_id: str) -> AssessmentDescriptor:
        pass

    @abstractmethod
    def load_candidate(self, link_id: str) -> CandidateDescriptor:
        pass


class FileStore(SubmissionStore):
    """JSON-on-disk store with optional encryption of assessments and submissions."""

    def __init__(
        self,
        root: Path,
        key: Optional[bytes] = None,
        password: Optional[str] = None,
        default_duration_minutes: int = 45
    ):
        self.root = Path(root)
        self.key = key
        self.password = password
        self.default_duration_minutes = default_duration_minutes
        self.assessments_dir = self.root / "assessments"
        self.candidates_dir = self.root / "candidates"
        self.submissions_dir = self.root / "submissions"

    @property
    def encrypts(self) -> bool:
        return self.key is not None or self.password is not None

    # ===== LOADING =====

    def _read_document(self, directory: Path, name: str) -> dict:
        enc_path = directory / f"{name}.enc"
        json_path = directory / f"{name}.json"

        if enc_path.exists():
            plaintext = crypto.decrypt(enc_path.read_bytes(), key=self.key, password=self.password)
            return json.loads(plaintext)
        if json_path.exists():
            with open(json_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        raise LookupError(f"No document '{name}' in {directory}")

    def load_candidate(self, link_id: str) -> CandidateDescriptor:
        data = self._read_document(self.candidates_dir, link_id)
        candidate = CandidateDescriptor.from_dict(data)
        if candidate.unique_link is None:
            candidate.unique_link = link_id
        return candidate

    def load_assessment(self, link_id: str) -> AssessmentDescriptor:
        """Resolve the candidate link to its assessment and load it."""
        candidate = self.load_candidate(link_id)
        return self.get_assessment(candidate.assessment_id)

    def get_assessment(self, assessment_id: str) -> AssessmentDescriptor:
        data = self._read_document(self.assessments_dir, assessment_id)
        return AssessmentDescriptor.from_dict(data, self.default_duration_minutes)

    def iter_candidates(self) -> Iterator[CandidateDescriptor]:
        if not self.candidates_dir.exists():
            return
        for path in sorted(self.candidates_dir.glob("*.json")):
            yield self.load_candidate(path.stem)

    # ===== SUBMISSIONS =====

    def submission_path(self, session_id: str) -> Path:
        suffix = ".enc" if self.encrypts else ".json"
        return self.submissions_dir / f"{session_id}{suffix}"

    def save_submission(self, record: SubmissionRecord) -> str:
        path = self.submission_path(record.session_id)
        try:
            payload = json.dumps(record.to_dict(), indent=2).encode('utf-8')
            if self.encrypts:
                payload = crypto.encrypt(payload, key=self.key, password=self.password)

            self.submissions_dir.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(path.suffix + ".tmp")
            with open(tmp_path, 'wb') as f:
                f.write(payload)
            os.replace(tmp_path, path)
        except (OSError, ValueError) as e:
            raise PersistError(f"Could not save submission {record.session_id}: {e}", record=record) from e
        return str(path)

    def load_submission(self, session_id: str) -> SubmissionRecord:
        return SubmissionRecord.from_dict(self._read_document(self.submissions_dir, session_id))

    def iter_submissions(self) -> Iterator[SubmissionRecord]:
        if not self.submissions_dir.exists():
            return
        seen = set()
        for path in sorted(self.submissions_dir.iterdir()):
            if path.suffix not in ('.json', '.enc') or path.stem in seen:
                continue
            seen.add(path.stem)
            yield self.load_submission(path.stem)
