from collections import defaultdict
from typing import Iterable, TypeAlias, Literal
from typing_extensions import Unpack

from . import base
from . import types
from .types import Repo


def compare_trees(*trees: types.TreeMap) -> Iterable[tuple[types.Path, Unpack[tuple[types.OID | None, ...]]]]:
    entries = defaultdict(lambda: [None] * len(trees))
    for i, tree in enumerate(trees):
        for path, oid in tree.items():
            entries[path][i] = oid

    for path, oids in sorted(entries.items()):
        yield path, *oids


Action: TypeAlias = Literal['new_file', 'deleted', 'modified']


def iter_changed_files(t_from: types.TreeMap, t_to: types.TreeMap) -> Iterable[
    tuple[types.Path, Action]]:
    for path, o_from, o_to in compare_trees(t_from, t_to):
        if o_from != o_to:
            action = ('new_file' if not o_from else
                      'deleted' if not o_to else
                      'modified')
            yield path, action


def _classify(t_from: types.TreeMap, t_to: types.TreeMap) -> dict[Action, list[types.Path]]:
    changes = {'new_file': [], 'deleted': [], 'modified': []}
    for path, action in iter_changed_files(t_from, t_to):
        changes[action].append(path)
    return changes


def status(repo: Repo, ignores: Iterable[str]) -> types.Status:
    """Compare the last commit with the index, and the index with the working tree.

    Before the first commit the committed side is empty, so everything
    staged is reported as new.
    """
    branch = base.get_branch_name(repo)
    head = base.get_head_commit(repo)
    committed = base.get_tree(repo, base.get_commit(repo, head).tree) if head else {}
    staged = base.get_index_tree(repo)
    working = base.get_working_tree(repo, ignores)

    to_index = _classify(committed, staged)
    to_working = _classify(staged, working)
    return types.Status(
        branch=branch,
        has_commits=head is not None,
        staged_new=to_index['new_file'],
        staged_modified=to_index['modified'],
        staged_deleted=to_index['deleted'],
        unstaged_modified=to_working['modified'],
        unstaged_deleted=to_working['deleted'],
        untracked=to_working['new_file'],
    )
