import os
import shutil
import tempfile

import pytest

from gitre import base, data


@pytest.fixture
def repo():
    tmpdir = tempfile.mkdtemp()
    repo = data.repo_at(tmpdir)
    base.init(repo)
    yield repo
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def write(repo):
    """Write a file relative to the working tree, creating parent directories."""

    def write_file(path, content):
        full = os.path.join(repo.root, path)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        mode = 'wb' if isinstance(content, bytes) else 'w'
        with open(full, mode) as f:
            f.write(content)
        return full

    return write_file


@pytest.fixture
def ignores(repo):
    # The ignore file itself would otherwise show up as untracked.
    return base.load_ignores(repo) + [data.IGNORE_FILE]
