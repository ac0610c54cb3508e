import os
import re
import json
import zlib
import hashlib
import logging
from contextlib import contextmanager
from typing import Iterable, Iterator

from . import errors
from . import types
from .types import IndexEntry, RefValue, Repo

logger = logging.getLogger(__name__)

GIT_DIR_NAME = '.gitre'
IGNORE_FILE = '.gitreignore'
LOCK_FILE = 'gitre.lock'
DEFAULT_BRANCH = 'main'
DEFAULT_IGNORES = ('*.exe', '*.dll', '.env')
DIR_MODE = 500

INDEX_FIELDS = IndexEntry._fields
INDEX_FIELD_TYPES = {'path': str, 'hash': str, 'mode': int, 'size': int, 'mtime': int}

OID_RE = re.compile(r'[0-9a-f]{64}')


def is_oid(value) -> bool:
    return isinstance(value, str) and OID_RE.fullmatch(value) is not None


def repo_at(root: str) -> Repo:
    root = os.path.abspath(root)
    return Repo(root=root, git_dir=f'{root}/{GIT_DIR_NAME}')


def find_repo(path: str = '.') -> Repo:
    """Return the repository whose working tree contains ``path``."""
    current = os.path.abspath(path)
    while True:
        if os.path.isdir(f'{current}/{GIT_DIR_NAME}'):
            return repo_at(current)
        parent = os.path.dirname(current)
        if parent == current:
            raise errors.RepositoryNotFound(os.path.abspath(path))
        current = parent


def init(repo: Repo):
    os.makedirs(f'{repo.git_dir}/objects', exist_ok=True)
    os.makedirs(f'{repo.git_dir}/refs/heads', exist_ok=True)
    os.makedirs(f'{repo.git_dir}/refs/tags', exist_ok=True)
    _write_if_missing(f'{repo.git_dir}/config', '')
    _write_if_missing(f'{repo.git_dir}/index', '[]')
    _write_if_missing(f'{repo.git_dir}/HEAD', f'ref: refs/heads/{DEFAULT_BRANCH}\n')
    _write_if_missing(f'{repo.root}/{IGNORE_FILE}', ''.join(f'{p}\n' for p in DEFAULT_IGNORES))


def _write_if_missing(path, content):
    if os.path.exists(path):
        return
    with open(path, 'w') as f:
        f.write(content)


@contextmanager
def lock(repo: Repo):
    """Hold the advisory repository lock for the duration of the block."""
    lock_path = f'{repo.git_dir}/{LOCK_FILE}'
    try:
        fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
    except FileExistsError:
        raise errors.RepositoryLocked(lock_path) from None
    try:
        os.write(fd, str(os.getpid()).encode())
        os.close(fd)
        logger.debug('acquired %s', lock_path)
        yield
    finally:
        os.remove(lock_path)
        logger.debug('released %s', lock_path)


def _object_path(repo: Repo, oid: types.OID) -> str:
    return f'{repo.git_dir}/objects/{oid[:2]}/{oid[2:]}'


def hash_object(repo: Repo, data: bytes, type_: types.ObjectType = 'blob', write: bool = True) -> types.OID:
    obj = f'{type_} {len(data)}'.encode() + b'\x00' + data
    oid = hashlib.sha256(obj).hexdigest()
    if not write:
        return oid

    path = _object_path(repo, oid)
    if os.path.exists(path):
        return oid
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'wb') as out:
        out.write(zlib.compress(obj))
    logger.debug('stored %s %s (%d bytes)', type_, oid, len(data))
    return oid


def object_exists(repo: Repo, oid: types.OID) -> bool:
    return len(oid) > 2 and os.path.isfile(_object_path(repo, oid))


def get_object(repo: Repo, oid: types.OID, expected: types.ObjectType | None = 'blob') -> bytes:
    try:
        with open(_object_path(repo, oid), 'rb') as f:
            compressed = f.read()
    except (FileNotFoundError, NotADirectoryError, IsADirectoryError):
        raise errors.ObjectNotFound(oid) from None

    try:
        obj = zlib.decompress(compressed)
    except zlib.error as exc:
        raise errors.CorruptObject(oid, f'cannot decompress: {exc}') from exc

    header, sep, content = obj.partition(b'\x00')
    if not sep:
        raise errors.CorruptObject(oid, 'missing header delimiter')

    type_, _, size = header.decode(errors='replace').partition(' ')
    if type_ not in types.OBJECT_TYPES:
        raise errors.CorruptObject(oid, f'unknown type {type_!r}')
    if not size.isdigit() or int(size) != len(content):
        raise errors.CorruptObject(oid, f'size mismatch, header says {size!r}, got {len(content)}')
    if expected is not None and type_ != expected:
        raise errors.CorruptObject(oid, f'expected {expected}, got {type_}')
    return content


def update_ref(repo: Repo, ref: str, value: RefValue, deref=True):
    ref = _get_ref_internal(repo, ref, deref)[0]

    assert value.value
    if value.symbolic:
        value = f'ref: {value.value}\n'
    else:
        value = value.value
    ref_path = f'{repo.git_dir}/{ref}'
    os.makedirs(os.path.dirname(ref_path), exist_ok=True)
    with open(ref_path, 'w') as f:
        f.write(value)
    logger.debug('updated %s -> %s', ref, value.strip())


def get_ref(repo: Repo, ref: str, deref=True) -> RefValue:
    return _get_ref_internal(repo, ref, deref)[1]


def _get_ref_internal(repo: Repo, ref: str, deref: bool) -> tuple[str, RefValue]:
    ref_path = f'{repo.git_dir}/{ref}'
    value = None
    if os.path.isfile(ref_path):
        try:
            with open(ref_path) as f:
                value = f.read().strip()
        except OSError as exc:
            raise errors.RefResolutionFailed(ref, str(exc)) from exc

    symbolic = bool(value) and value.startswith('ref:')
    if symbolic:
        value = value.split(':', 1)[1].strip()
        if deref:
            return _get_ref_internal(repo, value, deref=True)
    return ref, RefValue(symbolic=symbolic, value=value or None)


def iter_refs(repo: Repo, prefix='', deref=True) -> Iterable[tuple[str, RefValue]]:
    refs = ['HEAD']
    for root, _, filenames in os.walk(f'{repo.git_dir}/refs/'):
        root = os.path.relpath(root, repo.git_dir).replace('\\', '/')
        refs.extend(f'{root}/{name}' for name in sorted(filenames))

    for refname in refs:
        if not refname.startswith(prefix):
            continue
        ref = get_ref(repo, refname, deref=deref)
        if ref.value:
            yield refname, ref


def load_index(repo: Repo) -> list[IndexEntry]:
    index_path = f'{repo.git_dir}/index'
    try:
        with open(index_path) as f:
            raw = f.read()
    except FileNotFoundError:
        return []
    if not raw.strip():
        return []

    try:
        items = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise errors.IndexCorrupt(index_path, str(exc)) from exc
    if not isinstance(items, list):
        raise errors.IndexCorrupt(index_path, f'expected a list, got {type(items).__name__}')

    entries = []
    for i, item in enumerate(items):
        if not isinstance(item, dict) or any(field not in item for field in INDEX_FIELDS):
            raise errors.IndexCorrupt(index_path, f'malformed entry #{i}')
        for field, type_ in INDEX_FIELD_TYPES.items():
            # bool is an int subclass
            if not isinstance(item[field], type_) or isinstance(item[field], bool):
                raise errors.IndexCorrupt(index_path, f'entry #{i}: {field} must be {type_.__name__}')
        if not is_oid(item['hash']):
            raise errors.IndexCorrupt(index_path, f'entry #{i}: invalid hash {item["hash"]!r}')
        entries.append(IndexEntry(**{field: item[field] for field in INDEX_FIELDS}))
    return entries


def _write_index(repo: Repo, entries: Iterable[IndexEntry]):
    with open(f'{repo.git_dir}/index', 'w') as f:
        json.dump([entry._asdict() for entry in entries], f, indent='\t')


@contextmanager
def get_index(repo: Repo) -> Iterator[dict[types.Path, IndexEntry]]:
    """Yield the staged entries keyed by path, and write them back on exit.

    Replacing a key keeps its position, so the persisted order only
    changes when paths are added.
    """
    index = {entry.path: entry for entry in load_index(repo)}
    yield index
    _write_index(repo, index.values())
    logger.debug('wrote index with %d entries', len(index))


def add_entry(repo: Repo, entry: IndexEntry):
    with get_index(repo) as index:
        index[entry.path] = entry
