import argparse
import logging
import os
import sys
import textwrap

from . import data
from . import base
from . import diff
from . import errors


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
        stream=sys.stderr,
    )
    try:
        if args.command == 'init':
            args.repo = data.repo_at(args.C)
        else:
            args.repo = data.find_repo(args.C)
        return args.func(args) or 0
    except errors.GitreError as exc:
        print(f'error: {exc}', file=sys.stderr)
        return 1


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog='gitre')
    parser.add_argument('-C', default='.', metavar='PATH', help='run as if started in PATH')
    parser.add_argument('-v', '--verbose', action='store_true')
    commands = parser.add_subparsers(dest='command')
    commands.required = True

    init_parser = commands.add_parser('init')
    init_parser.set_defaults(func=init)

    add_parser = commands.add_parser('add')
    add_parser.set_defaults(func=add)
    add_parser.add_argument('files', nargs='+')

    commit_parser = commands.add_parser('commit')
    commit_parser.set_defaults(func=commit)
    commit_parser.add_argument('-m', '--message', required=True)

    log_parser = commands.add_parser('log')
    log_parser.set_defaults(func=log)
    log_parser.add_argument('oid', default='@', nargs='?')

    status_parser = commands.add_parser('status')
    status_parser.set_defaults(func=status)

    branch_parser = commands.add_parser('branch')
    branch_parser.set_defaults(func=branch)
    branch_parser.add_argument('name', nargs='?')
    branch_parser.add_argument('source', nargs='?')

    hash_object_parser = commands.add_parser('hash-object')
    hash_object_parser.set_defaults(func=hash_object)
    hash_object_parser.add_argument('-w', dest='write', action='store_true')
    hash_object_parser.add_argument('file')

    cat_file_parser = commands.add_parser('cat-file')
    cat_file_parser.set_defaults(func=cat_file)
    cat_file_parser.add_argument('object')

    write_tree_parser = commands.add_parser('write-tree')
    write_tree_parser.set_defaults(func=write_tree)

    return parser.parse_args(argv)


def init(args):
    base.init(args.repo)
    print(f'Initialized empty gitre repository in {args.repo.git_dir}')


def add(args):
    cwd = os.path.abspath(args.C)
    names = [os.path.join(cwd, name) for name in args.files]
    result = base.add(args.repo, names, base.load_ignores(args.repo))
    for path in result.added:
        print(f'added {path}')
    for name, exc in result.failed.items():
        print(f'failed to add {os.path.relpath(name, cwd)}: {exc}', file=sys.stderr)
    return 1 if result.failed else 0


def commit(args):
    oid = base.commit(args.repo, args.message)
    print(f'[{oid[:7]}] {args.message}')


def log(args):
    if args.oid == '@' and base.get_head_commit(args.repo) is None:
        print(f'branch {base.get_branch_name(args.repo)} has no commits yet')
        return
    oid = base.get_oid(args.repo, args.oid)
    for oid, commit_ in base.iter_commits(args.repo, oid):
        print(f'commit {oid}\n')
        print(textwrap.indent(commit_.message, '    '))
        print('')


def status(args):
    status_ = diff.status(args.repo, base.load_ignores(args.repo))
    print(f'On branch {status_.branch}')
    if not status_.has_commits:
        print('\nNo commits yet')

    sections = [
        ('Changes to be committed:', [
            ('new file', status_.staged_new),
            ('modified', status_.staged_modified),
            ('deleted', status_.staged_deleted),
        ]),
        ('Changes not staged for commit:', [
            ('modified', status_.unstaged_modified),
            ('deleted', status_.unstaged_deleted),
        ]),
        ('Untracked files:', [
            ('', status_.untracked),
        ]),
    ]
    for title, groups in sections:
        lines = [f'\t{label}:   {path}' if label else f'\t{path}'
                 for label, paths in groups
                 for path in paths]
        if lines:
            print(f'\n{title}')
            print('\n'.join(lines))

    if status_.clean:
        print('\nnothing to commit, working tree clean')


def branch(args):
    if args.name is None:
        current = base.get_branch_name(args.repo)
        for name in base.iter_branch_names(args.repo):
            prefix = '*' if name == current else ' '
            print(f'{prefix} {name}')
        return

    if args.source is None:
        print('error: usage: gitre branch <name> <source>', file=sys.stderr)
        return 2
    base.create_branch(args.repo, args.name, args.source)
    print(f'Switched to a new branch {args.name!r} (from {args.source})')


def hash_object(args):
    with open(os.path.join(args.C, args.file), 'rb') as f:
        print(data.hash_object(args.repo, f.read(), write=args.write))


def write_tree(args):
    print(base.write_tree(args.repo))


def cat_file(args):
    oid = base.get_oid(args.repo, args.object)
    sys.stdout.flush()
    sys.stdout.buffer.write(data.get_object(args.repo, oid, expected=None))
    sys.stdout.flush()
