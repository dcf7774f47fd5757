"""
Tests for the key generation tool.
"""

import pytest
from pathlib import Path

# Add parent directory to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))

from assessment_engine import crypto
from keygen import key_path_for_root, main, sealed_documents, write_key


class TestKeyPlacement:
    """Test where keys are written."""

    def test_key_sits_next_to_store(self, tmp_path):
        """Test that store/ maps to a sibling store.key."""
        assert key_path_for_root(tmp_path / "store") == (tmp_path / "store.key").resolve()

    def test_root_option_writes_usable_key(self, tmp_path):
        """Test that --root writes a key that encrypts and decrypts."""
        root = tmp_path / "store"
        root.mkdir()

        assert main(["--root", str(root)]) == 0

        key = (tmp_path / "store.key").read_bytes()
        assert not list(root.iterdir())
        assert crypto.decrypt(crypto.encrypt(b"answers", key=key), key=key) == b"answers"


class TestOverwrite:
    """Test protection of existing keys."""

    def test_existing_key_is_kept(self, tmp_path):
        """Test that an existing key file is not replaced without --force."""
        key_file = tmp_path / "acme.key"
        key_file.write_bytes(b"original")

        with pytest.raises(FileExistsError):
            write_key(key_file)
        assert main(["--out", str(key_file)]) == 1
        assert key_file.read_bytes() == b"original"

    def test_force_replaces_key(self, tmp_path):
        """Test that --force writes a fresh key."""
        key_file = tmp_path / "acme.key"
        key_file.write_bytes(b"original")

        assert main(["--out", str(key_file), "--force"]) == 0
        assert key_file.read_bytes() != b"original"

    def test_sealed_documents_are_reported(self, tmp_path, capsys):
        """Test that a new key for a store with sealed files warns about them."""
        root = tmp_path / "store"
        (root / "assessments").mkdir(parents=True)
        (root / "assessments" / "quiz-1.enc").write_bytes(b"sealed")
        (root / "assessments" / "quiz-2.json").write_text("{}")

        assert sealed_documents(root) == [root / "assessments" / "quiz-1.enc"]
        assert main(["--root", str(root)]) == 0
        assert "1 sealed file(s)" in capsys.readouterr().out
