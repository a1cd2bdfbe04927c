#!/usr/bin/env python
""" A helper script to inspect and edit versioned content stored in MongoDB.
"""
import dataclasses
import getpass
import logging
import os.path
import pprint
import subprocess
import sys
from argparse import ArgumentParser
from configparser import ConfigParser
from typing import Any, Iterable

from colorama import Fore
from pymongo import MongoClient

import versioned_content
from versioned_content import ContentVersioningEngine
from versioned_content.config import (
    CONFIG_DIR,
    CONFIG_FILE_PTH,
    ENGINE_SECTION,
    MONGO_SECTION,
    load_config,
)
from versioned_content.errors import VersioningError, VersionNotFound
from versioned_content.models import ContentVersion, VersionAuthor
from versioned_content.store import MongoVersionStore
from versioned_content.utils.serialization import colour_diff, format_changes


def _check_config_exits() -> None:
    if not os.path.exists(CONFIG_FILE_PTH):
        _error("Error: Missing configuration.\n"
               "\tPlease run `vcontent config` before")
        exit(-1)


def _error(msg: str) -> None:
    print(Fore.RED + msg)


def _info(msg: Any) -> None:
    print(Fore.GREEN + msg)


def _load_engine() -> ContentVersioningEngine:
    _check_config_exits()
    engine_cfg, mongo_cfg = load_config(CONFIG_FILE_PTH)
    client = MongoClient(
        host=mongo_cfg.host,
        port=mongo_cfg.port,
        username=mongo_cfg.username,
        password=mongo_cfg.password,
    )
    store = MongoVersionStore(
        client[mongo_cfg.database],
        namespace=mongo_cfg.namespace,
        lock_poll_interval=engine_cfg.lock_poll_interval,
        lock_timeout=engine_cfg.lock_timeout,
    )
    return ContentVersioningEngine(store, engine_cfg)


def _author(args) -> VersionAuthor:
    author_id = args.author if args.author is not None else getpass.getuser()
    return VersionAuthor(id=author_id, name=author_id)


def _resolve_version(
    engine: ContentVersioningEngine, content_path: str, ref: str
) -> ContentVersion:
    """Find a version by number or by id."""
    if ref.isdigit():
        for version in engine.get_version_history(content_path).versions:
            if version.number == int(ref):
                return version
        raise VersionNotFound(content_path, ref)
    return engine.get_version(content_path, ref)


def _page(lines: Iterable[str]) -> None:
    try:
        pager = subprocess.Popen(['less', '-F', '-R', '-X', '-K'],
                                 stdin=subprocess.PIPE, stdout=sys.stdout)
        for line in lines:
            pager.stdin.write(f"{line}\n".encode())
        pager.stdin.close()
        pager.wait()
    except KeyboardInterrupt:
        # '-K' flag of less handles this case
        pass
    except BrokenPipeError:
        # The pager was closed before all the output was written
        pass


def config(args):
    if not os.path.exists(CONFIG_DIR):
        os.makedirs(CONFIG_DIR)
    if not os.path.exists(CONFIG_FILE_PTH):
        open(CONFIG_FILE_PTH, 'w+').close()

    config_file = ConfigParser()
    config_file.read(CONFIG_FILE_PTH)
    for section in (MONGO_SECTION, ENGINE_SECTION):
        if not config_file.has_section(section):
            config_file[section] = dict()
    mongo_cfg = config_file[MONGO_SECTION]

    if args.username is not None:
        mongo_cfg['username'] = args.username
        if args.password is None:
            _error("Error: Username provided without password. \n"
                   "\tInclude --password in your command.")
            exit(-1)
        else:
            if args.password == "prompt":
                password = getpass.getpass("Enter Password:")
            else:
                password = args.password
            mongo_cfg['password'] = password

    mongo_cfg['host'] = 'localhost' if args.host is None else args.host
    mongo_cfg['port'] = str(args.port)
    if args.database is not None:
        mongo_cfg['database'] = args.database
    if args.namespace is not None:
        mongo_cfg['namespace'] = args.namespace
    if args.trunk is not None:
        config_file[ENGINE_SECTION]['trunk_branch'] = args.trunk

    with open(CONFIG_FILE_PTH, 'w') as f:
        config_file.write(f)


def config_show(_) -> None:
    _check_config_exits()
    config_file = ConfigParser()
    config_file.read(CONFIG_FILE_PTH)
    config_file.write(sys.stdout)


def history(args) -> None:
    snapshot = _load_engine().get_version_history(args.content_path)
    print(Fore.WHITE + f"Content: {snapshot.content_path}")
    print(Fore.WHITE + f"Versions: {snapshot.total_versions}")
    print(Fore.WHITE + f"Latest: {snapshot.latest_version!r}")
    published = snapshot.published_version
    print(Fore.WHITE + "Published: "
          + ('-' if published is None else repr(published)))
    print()
    _info(pprint.pformat(snapshot.branches, sort_dicts=False))


def log(args):
    engine = _load_engine()
    if args.tree:
        print(Fore.GREEN + str(engine.version_tree(args.content_path)))
        return
    _page(
        Fore.GREEN + str(v)
        for v in engine.get_log(args.content_path, args.branch)
    )


def diff(args):
    engine = _load_engine()
    to_version = (
        engine.get_latest_version(args.content_path) if args.to_version is None
        else _resolve_version(engine, args.content_path, args.to_version)
    )
    from_version = _resolve_version(
        engine, args.content_path, args.from_version
    )
    version_diff = engine.generate_diff(
        args.content_path, from_version.id, to_version.id
    )
    if not version_diff.changes:
        _info("Nothing has changed between the two versions.")
        return

    stats = version_diff.stats
    header = (
        Fore.YELLOW + f"{from_version!r} -> {to_version!r} "
        f"(+{stats.added} -{stats.removed} ~{stats.modified})"
    )
    _page([header] + colour_diff(
        format_changes(version_diff.changes)
    ).splitlines())


def branches(args):
    _branches = _load_engine().list_branches(args.content_path)
    if len(_branches) == 0:
        _info("Content has no branches")
        return
    for branch in _branches:
        _info(f"{branch.name} [{branch.status.value}] "
              f"head: {branch.head_version_id} - {branch.description}")


def create_branch(args):
    engine = _load_engine()
    base = (
        engine.get_latest_version(args.content_path) if args.base is None
        else _resolve_version(engine, args.content_path, args.base)
    )
    engine.create_branch(
        args.content_path, args.branch_name, args.description,
        base.id, _author(args),
    )
    _info(f"Created branch {args.branch_name} at version {base.number}")


def commit(args):
    with open(args.file, 'r') as f:
        content = f.read()
    engine = _load_engine()
    branch_name = engine.config.trunk_branch if args.branch is None \
        else args.branch

    expected = None
    if engine.store.has_history(args.content_path):
        expected = engine.get_branch(
            args.content_path, branch_name
        ).head_version_id
    version = engine.create_version(
        args.content_path, content, _author(args),
        expected_parent_version_id=expected,
        branch_name=branch_name,
        message=args.message,
    )
    _info(f"Registered version {version.number} ({version.id}) "
          f"on branch {branch_name}.")


def publish(args):
    engine = _load_engine()
    version = _resolve_version(engine, args.content_path, args.version)
    engine.publish_version(args.content_path, version.id, _author(args))
    _info(f"Published version {version.number} of {args.content_path}")


def rollback(args):
    engine = _load_engine()
    target = _resolve_version(engine, args.content_path, args.version)
    version = engine.rollback_to_version(
        args.content_path, target.id, _author(args), branch_name=args.branch
    )
    _info(f"Rolled back to version {target.number} "
          f"as version {version.number}.")


def merge(args):
    engine = _load_engine()
    target = engine.config.trunk_branch if args.target is None \
        else args.target
    result = engine.merge_branch(
        args.content_path, args.source, target, _author(args), args.message
    )
    if result.up_to_date:
        _info(f"Branch {target} is already up to date with {args.source}.")
    elif result.succeeded:
        _info(f"Merged {args.source} into {target} as version "
              f"{result.merged_version.number}.")
    else:
        _error(f"Merging {args.source} into {target} produced "
               f"{len(result.conflict.conflicts)} conflict(s):")
        for pair in result.conflict.conflicts:
            print(Fore.YELLOW + f"<<<<<<< {args.source}")
            print(colour_diff(format_changes([pair.source])))
            print(Fore.YELLOW + f"======= {target}")
            print(colour_diff(format_changes([pair.target])))
            print(Fore.YELLOW + ">>>>>>>")
        exit(1)


def analytics(args):
    stats = _load_engine().get_versioning_analytics(args.content_path)
    stats = dataclasses.asdict(stats)
    if 'recent_activity' in stats:
        stats['recent_activity'] = [
            f"{v['content_path']} #{v['number']} by {v['author']['id']}"
            for v in stats['recent_activity']
        ]
    _info(pprint.pformat(stats, sort_dicts=False))


def cli():
    parser = ArgumentParser(prog='vcontent')

    parser.add_argument(
        '--version', action='version',
        version=f'versioned_content: {versioned_content.__version__}',
        help='Show the current versioned_content version installed'
    )
    parser.add_argument(
        '-v', '--verbose', action='count', default=0,
        help='increase the logging verbosity'
    )
    parser.add_argument(
        '--author', type=str, default=None,
        help='id of the author performing the command, '
             'the current user by default'
    )

    subparsers = parser.add_subparsers(
        title='These are common versioned content commands',
        metavar='commands'
    )

    # config
    config_parser = subparsers.add_parser(
        'config',
        help='Update the configuration and credentials'
    )
    config_parser.add_argument(
        '--username', type=str, default=None,
        help='user with access to the database'
    )
    config_parser.add_argument(
        '--password', nargs='?', const='prompt',
        help='password to access the database. '
             'if unfilled, a prompt will appear.'
    )
    config_parser.add_argument(
        '--host', type=str, default=None,
        help='host address of the mongodb server'
    )
    config_parser.add_argument(
        '--port', type=int, default=27017,
        help='port of the mongodb server'
    )
    config_parser.add_argument(
        '-d', '--database', type=str, default=None,
        help='database holding the versioned content'
    )
    config_parser.add_argument(
        '-n', '--namespace', type=str, default=None,
        help='suffix of the collections holding the versioned content'
    )
    config_parser.add_argument(
        '--trunk', type=str, default=None,
        help='name of the trunk branch'
    )
    config_parser.set_defaults(handle=config)

    config_subparser = config_parser.add_subparsers(
        title='The available subcommands',
        metavar='commands'
    )

    # ##  config show
    config_show_parser = config_subparser.add_parser(
        'show',
        help='Print the contents of the current configuration',
    )
    config_show_parser.set_defaults(handle=config_show)

    # history
    history_parser = subparsers.add_parser(
        'history',
        help='Show a summary of the history of a content path'
    )
    history_parser.add_argument('content_path', type=str)
    history_parser.set_defaults(handle=history)

    # log
    log_parser = subparsers.add_parser(
        'log',
        help='Show version logs'
    )
    log_parser.add_argument('content_path', type=str)
    log_parser.add_argument(
        '-b', '--branch', type=str, default=None,
        help='the branch for which to get the log'
    )
    log_parser.add_argument(
        '--tree', action='store_true',
        help='show the whole version tree instead of the log of a branch'
    )
    log_parser.set_defaults(handle=log)

    # diff
    diff_parser = subparsers.add_parser(
        'diff',
        help='Show the changes between two versions'
    )
    diff_parser.add_argument('content_path', type=str)
    diff_parser.add_argument(
        'from_version', type=str,
        help='number or id of the old version'
    )
    diff_parser.add_argument(
        'to_version', type=str, nargs='?', default=None,
        help='number or id of the new version, the latest by default'
    )
    diff_parser.set_defaults(handle=diff)

    # branches
    get_branches_parser = subparsers.add_parser(
        'branches',
        help='Show the existing branches of a content path'
    )
    get_branches_parser.add_argument('content_path', type=str)
    get_branches_parser.set_defaults(handle=branches)

    # create_branch
    branch_parser = subparsers.add_parser(
        'create_branch',
        help='Create a new branch'
    )
    branch_parser.add_argument('content_path', type=str)
    branch_parser.add_argument(
        'branch_name', type=str,
        help='name of the new branch'
    )
    branch_parser.add_argument(
        '--base', type=str, default=None,
        help='number or id of the base version, the latest by default'
    )
    branch_parser.add_argument(
        '--description', type=str, default='',
        help='what the branch is for'
    )
    branch_parser.set_defaults(handle=create_branch)

    # commit
    commit_parser = subparsers.add_parser(
        'commit',
        help='Register the contents of a file as a new version'
    )
    commit_parser.add_argument('content_path', type=str)
    commit_parser.add_argument('file', type=str)
    commit_parser.add_argument(
        '-m', '--message', type=str, required=True,
        help='message that describes the changes in this version'
    )
    commit_parser.add_argument(
        '-b', '--branch', type=str, default=None,
        help='branch where the version should be registered'
    )
    commit_parser.set_defaults(handle=commit)

    # publish
    publish_parser = subparsers.add_parser(
        'publish',
        help='Publish a version of the trunk'
    )
    publish_parser.add_argument('content_path', type=str)
    publish_parser.add_argument('version', type=str)
    publish_parser.set_defaults(handle=publish)

    # rollback
    rollback_parser = subparsers.add_parser(
        'rollback',
        help='Register a new version with the content of an older one'
    )
    rollback_parser.add_argument('content_path', type=str)
    rollback_parser.add_argument('version', type=str)
    rollback_parser.add_argument(
        '-b', '--branch', type=str, default=None,
        help='branch on which to roll back'
    )
    rollback_parser.set_defaults(handle=rollback)

    # merge
    merge_parser = subparsers.add_parser(
        'merge',
        help='Merge a branch into another one'
    )
    merge_parser.add_argument('content_path', type=str)
    merge_parser.add_argument('source', type=str)
    merge_parser.add_argument(
        '-t', '--target', type=str, default=None,
        help='branch to merge into, the trunk by default'
    )
    merge_parser.add_argument(
        '-m', '--message', type=str, default=None,
        help='message of the merge version'
    )
    merge_parser.set_defaults(handle=merge)

    # analytics
    analytics_parser = subparsers.add_parser(
        'analytics',
        help='Show versioning statistics'
    )
    analytics_parser.add_argument(
        'content_path', type=str, nargs='?', default=None,
        help='the content path, all content paths by default'
    )
    analytics_parser.set_defaults(handle=analytics)

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.WARNING - 10 * min(args.verbose, 2),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    if not hasattr(args, 'handle'):
        parser.print_help()
        return
    try:
        args.handle(args)
    except VersioningError as e:
        _error(str(e))
        exit(-1)


if __name__ == '__main__':
    cli()
