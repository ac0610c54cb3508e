import os
import stat
import string
import fnmatch
import logging
from typing import Iterable, Iterator

from . import data, errors
from . import types
from .types import IndexEntry, RefValue, Repo

logger = logging.getLogger(__name__)

ALWAYS_IGNORED = (data.GIT_DIR_NAME, '.git')


def init(repo: Repo):
    data.init(repo)
    logger.info('initialized repository in %s', repo.git_dir)


class Node:
    """A staged file (leaf) or directory while a tree is being written."""

    def __init__(self, oid: types.OID | None = None, mode: int = data.DIR_MODE):
        self.oid = oid
        self.mode = mode
        self.children: dict[str, Node] | None = None if oid is not None else {}

    @property
    def is_leaf(self):
        return self.children is None


def check_path(path: types.Path):
    """Raise UnsupportedPathName unless ``path`` can be stored in tree objects."""
    for segment in path.split('/'):
        if segment in ('', '.', '..'):
            raise errors.UnsupportedPathName(path, f'invalid path segment {segment!r}')
        if '\n' in segment or '\r' in segment:
            raise errors.UnsupportedPathName(path, 'line break in name')
    try:
        path.encode()
    except UnicodeEncodeError:
        raise errors.UnsupportedPathName(path, 'name is not valid UTF-8') from None


def build_tree(entries: Iterable[IndexEntry]) -> Node:
    root = Node()
    for entry in entries:
        check_path(entry.path)
        *dirpath, filename = entry.path.split('/')
        current = root
        # Find the node of the directory holding this file
        for depth, dirname in enumerate(dirpath):
            child = current.children.setdefault(dirname, Node())
            if child.is_leaf:
                raise errors.AmbiguousPathCollision(entry.path, '/'.join(dirpath[:depth + 1]))
            current = child
        existing = current.children.get(filename)
        if existing is not None and not existing.is_leaf:
            raise errors.AmbiguousPathCollision(entry.path, entry.path)
        current.children[filename] = Node(oid=entry.hash, mode=entry.mode)
    return root


def serialize_tree(repo: Repo, node: Node) -> types.OID:
    if node.is_leaf:
        return node.oid

    entries = []
    for name, child in node.children.items():
        type_ = 'blob' if child.is_leaf else 'tree'
        entries.append((name, child.mode, type_, serialize_tree(repo, child)))

    tree = '\n'.join(f'{mode} {type_} {oid} {name}'
                     for name, mode, type_, oid
                     in sorted(entries))
    return data.hash_object(repo, tree.encode(), 'tree')


def write_tree(repo: Repo) -> types.OID:
    return serialize_tree(repo, build_tree(data.load_index(repo)))


def _iter_tree_entries(repo: Repo, oid: types.OID):
    if not oid:
        return
    tree = data.get_object(repo, oid, 'tree')
    if not tree:
        return
    try:
        lines = tree.decode().split('\n')
    except UnicodeDecodeError as exc:
        raise errors.CorruptObject(oid, f'tree is not UTF-8: {exc}') from exc
    for entry in lines:
        try:
            mode, type_, oid_, name = entry.split(' ', 3)
            mode = int(mode)
        except ValueError:
            raise errors.CorruptObject(oid, f'malformed tree entry {entry!r}') from None
        if not data.is_oid(oid_):
            raise errors.CorruptObject(oid, f'invalid hash in tree entry {entry!r}')
        yield mode, type_, oid_, name


def get_tree(repo: Repo, oid: types.OID, base_path: types.Path = '') -> types.TreeMap:
    result = {}
    for _, type_, oid_, name in _iter_tree_entries(repo, oid):
        if '/' in name or name in ('', '.', '..'):
            raise errors.CorruptObject(oid, f'invalid entry name {name!r}')
        path = base_path + name
        if type_ == 'blob':
            result[path] = oid_
        elif type_ == 'tree':
            result.update(get_tree(repo, oid_, f'{path}/'))
        else:
            raise errors.CorruptObject(oid, f'unknown tree entry type {type_!r}')
    return result


def get_commit(repo: Repo, oid: types.OID) -> types.Commit:
    commit_ = data.get_object(repo, oid, 'commit').decode(errors='surrogateescape')
    tree_line, _, rest = commit_.partition('\n')
    if not tree_line.startswith('tree '):
        raise errors.CorruptObject(oid, 'commit does not start with a tree line')
    tree = tree_line[len('tree '):]
    if not data.is_oid(tree):
        raise errors.CorruptObject(oid, f'invalid tree hash {tree!r}')

    parent = None
    if rest.startswith('parent '):
        parent_line, _, rest = rest.partition('\n')
        parent = parent_line[len('parent '):]
        if not data.is_oid(parent):
            raise errors.CorruptObject(oid, f'invalid parent hash {parent!r}')
    return types.Commit(tree=tree, parent=parent, message=rest)


def get_branch_name(repo: Repo) -> str:
    HEAD = data.get_ref(repo, 'HEAD', deref=False)
    if not HEAD.value:
        raise errors.RefResolutionFailed('HEAD', 'missing or empty')
    if not HEAD.symbolic or not HEAD.value.startswith('refs/heads/'):
        raise errors.RefResolutionFailed('HEAD', f'expected "ref: refs/heads/<name>", found {HEAD.value!r}')
    return HEAD.value[len('refs/heads/'):]


def get_head_commit(repo: Repo) -> types.OID | None:
    """Return the commit the current branch points at, or None before the first commit."""
    return data.get_ref(repo, f'refs/heads/{get_branch_name(repo)}').value


def commit(repo: Repo, message: str) -> types.OID:
    if not message:
        raise ValueError('Commit message must not be empty')

    with data.lock(repo):
        entries = data.load_index(repo)
        if not entries:
            raise errors.EmptyIndex()

        branch = get_branch_name(repo)
        tree = serialize_tree(repo, build_tree(entries))
        commit_ = f'tree {tree}\n'

        parent = data.get_ref(repo, f'refs/heads/{branch}').value
        if parent:
            commit_ += f'parent {parent}\n'
        commit_ += message

        oid = data.hash_object(repo, commit_.encode(errors='surrogateescape'), 'commit')
        data.update_ref(repo, f'refs/heads/{branch}', RefValue(symbolic=False, value=oid))
    logger.info('committed %s on %s', oid, branch)
    return oid


def iter_commits(repo: Repo, oid: types.OID | None) -> Iterator[tuple[types.OID, types.Commit]]:
    while oid:
        commit_ = get_commit(repo, oid)
        yield oid, commit_
        oid = commit_.parent


def get_oid(repo: Repo, name: str) -> types.OID:
    if name == '@':
        name = 'HEAD'

    refs_to_try = [
        f'{name}',
        f'refs/{name}',
        f'refs/tags/{name}',
        f'refs/heads/{name}'
    ]
    for ref in refs_to_try:
        if oid := data.get_ref(repo, ref).value:
            return oid

    is_hex = all(c in string.hexdigits for c in name)
    if len(name) == 64 and is_hex:
        return name.lower()

    raise errors.RefResolutionFailed(name, 'unknown revision')


def iter_branch_names(repo: Repo) -> Iterator[str]:
    for refname, _ in data.iter_refs(repo, 'refs/heads/'):
        yield refname[len('refs/heads/'):]


def create_branch(repo: Repo, name: str, source: str):
    """Create branch ``name`` at the commit of branch ``source`` and switch to it."""
    with data.lock(repo):
        if data.get_ref(repo, f'refs/heads/{name}').value:
            raise errors.BranchExists(name)
        oid = data.get_ref(repo, f'refs/heads/{source}').value
        if not oid:
            raise errors.RefResolutionFailed(f'refs/heads/{source}', 'no such branch')

        data.update_ref(repo, f'refs/heads/{name}', RefValue(symbolic=False, value=oid))
        data.update_ref(repo, 'HEAD', RefValue(symbolic=True, value=f'refs/heads/{name}'), deref=False)
    logger.info('created branch %s from %s at %s', name, source, oid)


def load_ignores(repo: Repo) -> list[str]:
    ignores = list(ALWAYS_IGNORED)
    try:
        with open(f'{repo.root}/{data.IGNORE_FILE}') as f:
            lines = f.read().splitlines()
    except FileNotFoundError:
        return ignores

    for line in lines:
        line = line.strip()
        if line and not line.startswith('#'):
            ignores.append(line)
    return ignores


def is_ignored(name: str, ignores: Iterable[str]) -> bool:
    return any(fnmatch.fnmatchcase(name, pattern) for pattern in ignores)


def iter_working_files(repo: Repo, ignores: Iterable[str], start: str | None = None) -> Iterator[types.Path]:
    """Yield every file under ``start`` (default: the root) that is not ignored.

    Each directory's files come out in name order before its subdirectories
    are visited. Ignore patterns match single path segments, so an ignored directory
    prunes everything below it.
    """
    ignores = list(ignores)
    stack = [start or repo.root]
    while stack:
        directory = stack.pop()
        with os.scandir(directory) as it:
            dir_entries = sorted(it, key=lambda e: e.name)
        subdirs = []
        for entry in dir_entries:
            if is_ignored(entry.name, ignores):
                continue
            if entry.is_dir(follow_symlinks=False):
                subdirs.append(entry.path)
            elif entry.is_file():
                yield _relpath(repo, entry.path)
        stack.extend(reversed(subdirs))


def _relpath(repo: Repo, path: str) -> types.Path:
    return os.path.relpath(path, repo.root).replace('\\', '/')


def get_working_tree(repo: Repo, ignores: Iterable[str]) -> types.TreeMap:
    result = {}
    for path in iter_working_files(repo, ignores):
        with open(f'{repo.root}/{path}', 'rb') as f:
            result[path] = data.hash_object(repo, f.read(), write=False)
    return result


def get_index_tree(repo: Repo) -> types.TreeMap:
    return {entry.path: entry.hash for entry in data.load_index(repo)}


def add(repo: Repo, filenames: Iterable[str], ignores: Iterable[str]) -> types.AddResult:
    ignores = list(ignores)
    added = []
    failed = {}

    def add_file(path):
        relpath = _relpath(repo, path)
        check_path(relpath)
        with open(path, 'rb') as f:
            oid = data.hash_object(repo, f.read())
        st = os.stat(path)
        index[relpath] = IndexEntry(path=relpath, hash=oid, mode=stat.S_IMODE(st.st_mode),
                                    size=st.st_size, mtime=int(st.st_mtime))
        added.append(relpath)

    def add_directory(dirname):
        for relpath in iter_working_files(repo, ignores, start=dirname):
            try:
                add_file(f'{repo.root}/{relpath}')
            except (errors.GitreError, OSError) as exc:
                failed[relpath] = exc

    with data.lock(repo), data.get_index(repo) as index:
        for name in filenames:
            path = os.path.normpath(os.path.join(repo.root, name))
            try:
                segments = os.path.relpath(path, repo.root).split(os.sep)
                if segments[0] == os.pardir:
                    raise errors.PathNotFound(name, 'outside repository')
                if any(segment in ALWAYS_IGNORED for segment in segments):
                    raise errors.PathNotFound(name, 'inside repository metadata')
                if os.path.isfile(path):
                    add_file(path)
                elif os.path.isdir(path):
                    add_directory(path)
                else:
                    raise errors.PathNotFound(name)
            except (errors.GitreError, OSError) as exc:
                logger.debug('failed to add %s: %s', name, exc)
                failed[name] = exc

    return types.AddResult(added=added, failed=failed)
