#!/usr/bin/env python3
"""
keygen.py - Create the Fernet key that protects an assessment store.

The key is written beside the store directory (store/ -> store.key) so it
never travels with the store itself.

Usage:
    python tools/keygen.py --root store
    python tools/keygen.py --out keys/ACME_HIRING.key
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))
from assessment_engine.crypto import generate_key


def key_path_for_root(root: Path) -> Path:
    """store/ -> store.key, next to the store rather than inside it."""
    root = Path(root).resolve()
    return root.parent / f"{root.name}.key"


def sealed_documents(root: Path) -> list:
    """Encrypted assessments and submissions already present under ``root``."""
    root = Path(root)
    found = []
    for sub in ("assessments", "submissions"):
        directory = root / sub
        if directory.exists():
            found.extend(sorted(directory.glob("*.enc")))
    return found


def write_key(key_file: Path, force: bool = False) -> bytes:
    """
    Generate a key into ``key_file``.

    Raises:
        FileExistsError: the file exists and ``force`` is not set
    """
    key_file = Path(key_file)
    if key_file.exists() and not force:
        raise FileExistsError(f"Key file already exists: {key_file}")

    key = generate_key()
    key_file.parent.mkdir(parents=True, exist_ok=True)
    key_file.write_bytes(key)
    return key


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Generate the Fernet key for an assessment store.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python tools/keygen.py --root store
  python tools/keygen.py --out keys/ACME_HIRING.key --force

Then seal and run with the same key:
  python tools/seal_assessment.py --in quiz.json --root store --key-file store.key
  assessment-runner --root store --link <link> --key-file store.key
        """
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--root", help="Store directory; the key is written next to it")
    target.add_argument("--out", help="Explicit output path for the key")
    parser.add_argument("--force", action="store_true", help="Overwrite an existing key file")

    args = parser.parse_args(argv)
    key_file = key_path_for_root(Path(args.root)) if args.root else Path(args.out)

    try:
        write_key(key_file, force=args.force)
    except FileExistsError as e:
        print(f"[ERROR] {e} (use --force to replace it)", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"[ERROR] Error writing key: {e}", file=sys.stderr)
        return 1

    print(f"[OK] Encryption key written to {key_file}")

    if args.root:
        existing = sealed_documents(Path(args.root))
        if existing:
            print(f"[!] {len(existing)} sealed file(s) in {args.root} were encrypted with another key")
            print("    and cannot be opened with this one.")

    print("\n[!] SECURITY: Never commit this key or copy it into the store directory.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
