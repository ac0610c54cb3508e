"""End-to-end tests through the command-line entry point."""

import os
import shutil
import tempfile

import pytest

from gitre import cli


@pytest.fixture
def workdir():
    tmpdir = tempfile.mkdtemp()
    yield tmpdir
    shutil.rmtree(tmpdir, ignore_errors=True)


def run(workdir, *argv):
    return cli.main(['-C', workdir, *argv])


def write(workdir, path, content):
    full = os.path.join(workdir, path)
    os.makedirs(os.path.dirname(full), exist_ok=True)
    with open(full, 'w') as f:
        f.write(content)


class TestCli:
    def test_init(self, workdir, capsys):
        assert run(workdir, 'init') == 0
        assert 'Initialized empty gitre repository' in capsys.readouterr().out
        assert os.path.isfile(os.path.join(workdir, '.gitre', 'HEAD'))

    def test_outside_repository(self, workdir, capsys):
        assert run(workdir, 'status') == 1
        assert 'Not a gitre repository' in capsys.readouterr().err

    def test_add_commit_log(self, workdir, capsys):
        run(workdir, 'init')
        write(workdir, 'a.txt', 'a')
        assert run(workdir, 'add', 'a.txt') == 0
        assert 'added a.txt' in capsys.readouterr().out

        assert run(workdir, 'commit', '-m', 'first') == 0
        first = capsys.readouterr().out
        assert first.endswith('] first\n')

        write(workdir, 'a.txt', 'b')
        run(workdir, 'add', 'a.txt')
        run(workdir, 'commit', '-m', 'second')
        capsys.readouterr()

        assert run(workdir, 'log') == 0
        out = capsys.readouterr().out
        assert out.count('commit ') == 2
        assert out.index('second') < out.index('first')

    def test_add_reports_failures(self, workdir, capsys):
        run(workdir, 'init')
        write(workdir, 'a.txt', 'a')
        assert run(workdir, 'add', 'a.txt', 'missing.txt') == 1
        captured = capsys.readouterr()
        assert 'added a.txt' in captured.out
        assert 'failed to add missing.txt' in captured.err

    def test_commit_empty_index(self, workdir, capsys):
        run(workdir, 'init')
        assert run(workdir, 'commit', '-m', 'nothing') == 1
        assert 'Nothing to commit' in capsys.readouterr().err

    def test_log_without_commits(self, workdir, capsys):
        run(workdir, 'init')
        capsys.readouterr()
        assert run(workdir, 'log') == 0
        assert 'no commits yet' in capsys.readouterr().out

    def test_status(self, workdir, capsys):
        run(workdir, 'init')
        write(workdir, 'staged.txt', 's')
        write(workdir, 'loose.txt', 'l')
        run(workdir, 'add', 'staged.txt')
        capsys.readouterr()

        assert run(workdir, 'status') == 0
        out = capsys.readouterr().out
        assert 'On branch main' in out
        assert 'No commits yet' in out
        assert '\tnew file:   staged.txt' in out
        assert '\tloose.txt' in out

    def test_branch(self, workdir, capsys):
        run(workdir, 'init')
        write(workdir, 'a.txt', 'a')
        run(workdir, 'add', 'a.txt')
        run(workdir, 'commit', '-m', 'first')
        capsys.readouterr()

        assert run(workdir, 'branch', 'feature', 'main') == 0
        assert "Switched to a new branch 'feature'" in capsys.readouterr().out
        assert run(workdir, 'branch') == 0
        assert capsys.readouterr().out == '* feature\n  main\n'

    def test_branch_requires_source(self, workdir, capsys):
        run(workdir, 'init')
        assert run(workdir, 'branch', 'feature') == 2
        assert 'usage' in capsys.readouterr().err

    def test_hash_object_and_cat_file(self, workdir, capsysbinary):
        run(workdir, 'init')
        write(workdir, 'a.txt', 'payload')
        capsysbinary.readouterr()

        assert run(workdir, 'hash-object', '-w', 'a.txt') == 0
        oid = capsysbinary.readouterr().out.decode().strip()
        assert len(oid) == 64

        assert run(workdir, 'cat-file', oid) == 0
        assert capsysbinary.readouterr().out == b'payload'
