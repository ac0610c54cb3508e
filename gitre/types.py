from typing import TypeAlias, NamedTuple, Literal

Path: TypeAlias = str  # a path relative to the repository root, '/'-separated
OID: TypeAlias = str  # hash
TreeMap: TypeAlias = dict[Path, OID]
ObjectType: TypeAlias = Literal['blob', 'tree', 'commit']

OBJECT_TYPES: tuple[ObjectType, ...] = ('blob', 'tree', 'commit')


class Repo(NamedTuple):
    root: str  # working tree
    git_dir: str  # <root>/.gitre


class Commit(NamedTuple):
    tree: OID
    parent: OID | None
    message: str


class RefValue(NamedTuple):
    symbolic: bool
    value: str | None


class IndexEntry(NamedTuple):
    path: Path
    hash: OID
    mode: int
    size: int
    mtime: int


class AddResult(NamedTuple):
    added: list[Path]
    failed: dict[str, Exception]


class Status(NamedTuple):
    branch: str
    has_commits: bool
    staged_new: list[Path]
    staged_modified: list[Path]
    staged_deleted: list[Path]
    unstaged_modified: list[Path]
    unstaged_deleted: list[Path]
    untracked: list[Path]

    @property
    def clean(self) -> bool:
        return not any(self[2:])
