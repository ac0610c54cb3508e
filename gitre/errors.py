"""gitre error types."""


class GitreError(Exception):
    """Base class for every error the repository layer raises."""


class RepositoryNotFound(GitreError):
    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f'Not a gitre repository (or any parent up to /): {path}')


class RepositoryLocked(GitreError):
    """Raised when another process holds the repository lock.

    The lock file is removed when the owning operation finishes. A lock
    left behind by a crashed process has to be deleted by hand.
    """

    def __init__(self, lock_path: str) -> None:
        self.lock_path = lock_path
        super().__init__(f'Repository is locked: {lock_path} exists')


class ObjectNotFound(GitreError):
    def __init__(self, oid: str) -> None:
        self.oid = oid
        super().__init__(f'Object not found: {oid}')


class CorruptObject(GitreError):
    def __init__(self, oid: str, reason: str) -> None:
        self.oid = oid
        self.reason = reason
        super().__init__(f'Corrupt object {oid}: {reason}')


class IndexCorrupt(GitreError):
    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f'Corrupt index {path}: {reason}')


class EmptyIndex(GitreError):
    """Raised when a commit is attempted with nothing staged."""

    def __init__(self) -> None:
        super().__init__('Nothing to commit (index is empty)')


class RefResolutionFailed(GitreError):
    def __init__(self, ref: str, reason: str) -> None:
        self.ref = ref
        self.reason = reason
        super().__init__(f'Cannot resolve {ref}: {reason}')


class BranchExists(GitreError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f'Branch already exists: {name}')


class PathNotFound(GitreError):
    def __init__(self, path: str, reason: str = 'no such file or directory') -> None:
        self.path = path
        super().__init__(f'{path}: {reason}')


class AmbiguousPathCollision(GitreError):
    """Raised when a staged path uses a file name as a directory, or vice versa.

    Attributes:
        path: The staged path that could not be planted.
        conflicting: The prefix already occupied by the other kind of node.
    """

    def __init__(self, path: str, conflicting: str) -> None:
        self.path = path
        self.conflicting = conflicting
        super().__init__(f'Cannot stage {path}: {conflicting} is both a file and a directory')


class UnsupportedPathName(GitreError):
    """Raised for a path that cannot be written into a tree object.

    Tree lines are newline-separated UTF-8, so names holding a line break,
    bytes that are not valid UTF-8, or empty, ``.`` or ``..`` segments are
    refused.
    """

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f'{path!r}: {reason}')
