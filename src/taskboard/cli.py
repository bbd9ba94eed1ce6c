from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, Optional

from rich.console import Console
from rich.table import Table

from .config import get_logging_settings, load_config, resolve_state_dir
from .domain.identity import Actor, parse_actor_kind
from .errors import TaskboardError
from .logging_utils import configure_logging, pretty
from .service import TaskboardServices


def _resolve_state_dir(project_dir: Optional[str]) -> Path:
    base = Path(project_dir).expanduser().resolve() if project_dir else None
    return resolve_state_dir(base)


def _ctx(args: argparse.Namespace) -> tuple[TaskboardServices, Actor]:
    state_dir = _resolve_state_dir(args.project_dir)
    config, err = load_config(state_dir)
    configure_logging(args.log_level or get_logging_settings(config).level)
    if err:
        sys.stderr.write(f"Ignoring unreadable config: {err}\n")
    actor = Actor(id=args.actor_id, kind=parse_actor_kind(args.actor_kind), role=args.actor_role)
    return TaskboardServices(state_dir, config), actor


def _emit(payload: dict[str, Any]) -> None:
    sys.stdout.write(pretty(payload) + '\n')


def _board_create(args: argparse.Namespace) -> int:
    services, actor = _ctx(args)
    columns = [{'name': name} for name in args.column] if args.column else None
    board = services.boards.create_board(
        actor,
        name=args.name,
        description=args.description,
        visibility=args.visibility,
        columns=columns,
    )
    _emit({'board': board.to_dict()})
    return 0


def _board_list(args: argparse.Namespace) -> int:
    services, actor = _ctx(args)
    boards = services.boards.list_for(actor)
    if args.json:
        _emit({'boards': [b.to_dict() for b in boards]})
        return 0
    table = Table(title='Boards', show_header=True)
    table.add_column('ID')
    table.add_column('Name')
    table.add_column('Visibility')
    table.add_column('Columns')
    for board in boards:
        table.add_row(board.id, board.name, board.visibility.value, ', '.join(c.name for c in board.ordered_columns()))
    Console().print(table)
    return 0


def _task_create(args: argparse.Namespace) -> int:
    services, actor = _ctx(args)
    task = services.tasks.create(
        actor,
        board_id=args.board_id,
        column_id=args.column_id,
        title=args.title,
        description=args.description,
        priority=args.priority,
        task_type=args.task_type,
        assignee_id=args.assignee,
        position=args.position,
    )
    _emit({'task': task.to_view()})
    return 0


def _task_list(args: argparse.Namespace) -> int:
    services, actor = _ctx(args)
    tasks = services.tasks.list_tasks(
        args.board_id,
        actor,
        column_id=args.column_id,
        status=args.status,
        include_archived=args.include_archived,
    )
    if args.json:
        _emit({'tasks': [t.to_view() for t in tasks]})
        return 0
    board = services.boards.get(args.board_id)
    names = {c.id: c.name for c in board.columns}
    table = Table(title=board.name, show_header=True)
    table.add_column('Column')
    table.add_column('#', justify='right')
    table.add_column('ID')
    table.add_column('Title')
    table.add_column('Status')
    table.add_column('Priority')
    table.add_column('Assignee')
    for task in tasks:
        table.add_row(
            names.get(task.column_id, task.column_id),
            '-' if task.is_archived else str(task.position),
            task.id,
            task.title,
            task.status.value,
            task.priority.value,
            task.assignee_id or '',
        )
    Console().print(table)
    return 0


def _task_move(args: argparse.Namespace) -> int:
    services, actor = _ctx(args)
    task = services.tasks.move(args.task_id, args.column_id, args.position, actor)
    _emit({'task': task.to_view()})
    return 0


def _server(args: argparse.Namespace) -> int:
    import uvicorn

    from .server import create_app

    state_dir = _resolve_state_dir(args.project_dir)
    config, err = load_config(state_dir)
    configure_logging(args.log_level or get_logging_settings(config).level)
    if err:
        sys.stderr.write(f"Ignoring unreadable config: {err}\n")
    app = create_app(services=TaskboardServices(state_dir, config))
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Taskboard CLI')
    parser.add_argument('--project-dir', default=None, help='Project directory holding .taskboard/ (default: cwd)')
    parser.add_argument('--actor-id', default=os.getenv('TASKBOARD_ACTOR_ID', 'local'), help='Acting user id')
    parser.add_argument('--actor-kind', default='Admin', choices=['Admin', 'Startup'])
    parser.add_argument('--actor-role', default='admin')
    parser.add_argument('--log-level', default=None, help='Override the configured log level')
    subparsers = parser.add_subparsers(dest='command', required=True)

    server = subparsers.add_parser('server', help='Start the REST server')
    server.add_argument('--host', default='127.0.0.1')
    server.add_argument('--port', default=8000, type=int)
    server.set_defaults(func=_server)

    board = subparsers.add_parser('board', help='Manage boards')
    board_sub = board.add_subparsers(dest='board_cmd', required=True)
    bcreate = board_sub.add_parser('create', help='Create a board')
    bcreate.add_argument('name')
    bcreate.add_argument('--description', default='')
    bcreate.add_argument('--visibility', default='private', choices=['private', 'team', 'public'])
    bcreate.add_argument('--column', action='append', help='Column name (repeatable; defaults to To Do/In Progress/Review/Done)')
    bcreate.set_defaults(func=_board_create)
    blist = board_sub.add_parser('list', help='List boards visible to the actor')
    blist.add_argument('--json', action='store_true')
    blist.set_defaults(func=_board_list)

    task = subparsers.add_parser('task', help='Manage tasks')
    task_sub = task.add_subparsers(dest='task_cmd', required=True)
    tcreate = task_sub.add_parser('create', help='Create a task')
    tcreate.add_argument('board_id')
    tcreate.add_argument('column_id')
    tcreate.add_argument('title')
    tcreate.add_argument('--description', default='')
    tcreate.add_argument('--priority', default='medium', choices=['low', 'medium', 'high', 'critical'])
    tcreate.add_argument('--task-type', default='feature')
    tcreate.add_argument('--assignee', default=None)
    tcreate.add_argument('--position', default=None, type=int)
    tcreate.set_defaults(func=_task_create)
    tlist = task_sub.add_parser('list', help='List tasks on a board')
    tlist.add_argument('board_id')
    tlist.add_argument('--column-id', default=None)
    tlist.add_argument('--status', default=None)
    tlist.add_argument('--include-archived', action='store_true')
    tlist.add_argument('--json', action='store_true')
    tlist.set_defaults(func=_task_list)
    tmove = task_sub.add_parser('move', help='Move a task to a column position')
    tmove.add_argument('task_id')
    tmove.add_argument('column_id')
    tmove.add_argument('--position', default=None, type=int)
    tmove.set_defaults(func=_task_move)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, 'func', None)
    if handler is None:
        parser.print_help()
        return 1
    try:
        return int(handler(args) or 0)
    except TaskboardError as exc:
        sys.stderr.write(json.dumps({'error': exc.to_dict()}) + '\n')
        return 1


if __name__ == '__main__':
    raise SystemExit(main())
