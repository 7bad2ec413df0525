"""Safety tests to ensure the test suite doesn't touch production data.

These tests verify that running the test suite does NOT modify:
- ./db directory (the user's mastery database)
- ./data/config (the user's configuration)

All tests MUST use temporary directories via pytest fixtures.
"""

import hashlib
import os
from pathlib import Path

import pytest


def _hash_directory(path: Path) -> str | None:
    """Hash directory structure, file sizes and mtimes.

    Returns None if directory doesn't exist.
    """
    if not path.exists():
        return None

    hasher = hashlib.sha256()

    for root, dirs, files in os.walk(path):
        dirs.sort()
        files.sort()

        for filename in files:
            filepath = Path(root) / filename
            hasher.update(str(filepath.relative_to(path)).encode())

            stat = filepath.stat()
            hasher.update(str(stat.st_size).encode())
            hasher.update(str(int(stat.st_mtime)).encode())

    return hasher.hexdigest()


@pytest.mark.parametrize("directory", ["db", "data/config"])
class TestProductionDirectorySafety:
    """The suite must leave ./db and ./data/config as it found them."""

    @pytest.fixture(scope="class")
    def states_before(self):
        return {
            name: {"exists": Path(name).exists(), "hash": _hash_directory(Path(name))}
            for name in ("db", "data/config")
        }

    def test_directory_not_created(self, directory, states_before):
        if not states_before[directory]["exists"] and Path(directory).exists():
            pytest.fail(
                f"./{directory} was created during test run. "
                "All tests MUST use temporary directories."
            )

    def test_directory_not_modified(self, directory, states_before):
        if states_before[directory]["exists"]:
            if _hash_directory(Path(directory)) != states_before[directory]["hash"]:
                pytest.fail(
                    f"./{directory} was modified during test run. "
                    "All tests MUST use temporary directories."
                )


class TestTestIsolation:
    """Meta-tests ensuring database tests use temp directories."""

    def test_database_tests_use_temp_fixtures(self):
        """No test module may initialize the default database."""
        tests_dir = Path(__file__).parent
        violations = []

        for test_file in sorted(tests_dir.glob("f*/*.py")):
            content = test_file.read_text(encoding="utf-8")

            if "init_db()" in content:
                violations.append(f"{test_file.name}: Calls init_db() without explicit temp path")

            if 'Path("db")' in content and "tmp_path" not in content:
                violations.append(f"{test_file.name}: Uses Path('db') without temp fixtures")

        if violations:
            pytest.fail(
                "Test files may not be properly isolated:\n"
                + "\n".join(f"  - {v}" for v in violations)
            )
