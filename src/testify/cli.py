# Testify
# Copyright © 2025 Osvaldo J. Vega Rodríguez
# Licensed under CC BY-NC-SA 4.0 International
# http://creativecommons.org/licenses/by-nc-sa/4.0/

from __future__ import annotations

import argparse
import json
import logging
import sys

from testify.core.logging_config import setup_logging
from testify.core.models import ScoreInfo
from testify.services.client_facade import ClientFacade
from testify.services.reports import export_results_csv, summarize
from testify.storage.errors import StorageError
from testify.utils.config import Settings

log = logging.getLogger(__name__)


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _require_template(facade: ClientFacade, template_id: str):
    template = facade.get_template(template_id)
    if template is None:
        raise SystemExit(f"Template not found: {template_id}")
    return template


def cmd_init(facade: ClientFacade, args: argparse.Namespace) -> None:
    print(f"Database ready at {facade.db.path}")


def cmd_list(facade: ClientFacade, args: argparse.Namespace) -> None:
    templates = facade.list_templates()
    if args.with_results:
        _print_json([t.model_dump() for t in templates])
    else:
        _print_json([t.model_dump(exclude={"results"}) | {"results": len(t.results)} for t in templates])


def cmd_create_template(facade: ClientFacade, args: argparse.Namespace) -> None:
    template = facade.create_template(
        args.title,
        args.questions,
        args.answers,
        image_path=args.image,
        map_path=args.map,
        template_id=args.id,
    )
    _print_json(template.model_dump())


def cmd_add_result(facade: ClientFacade, args: argparse.Namespace) -> None:
    if args.score is not None:
        info = ScoreInfo(score=args.score, correct=args.correct, incorrect=args.incorrect)
    else:
        template = _require_template(facade, args.template_id)
        info = ScoreInfo.from_counts(args.correct, template.question_count, max_score=args.max_score)
    result = facade.add_result(args.template_id, info, args.student, args.matricula, args.turma)
    _print_json(result.model_dump())


def cmd_delete_template(facade: ClientFacade, args: argparse.Namespace) -> None:
    removed = facade.delete_template(args.template_id)
    print("Template deleted" if removed else "Template not found; nothing deleted")


def cmd_report(facade: ClientFacade, args: argparse.Namespace) -> None:
    _print_json(summarize(_require_template(facade, args.template_id)).as_dict())


def cmd_export(facade: ClientFacade, args: argparse.Namespace) -> None:
    out = export_results_csv(_require_template(facade, args.template_id), args.output)
    print(f"Exported {out}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser("testify")
    parser.add_argument("--db", default=None, help="database file (default: TESTIFY_DB_PATH or data dir)")
    parser.add_argument("--verbose", action="store_true")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("init")
    sp.set_defaults(func=cmd_init)

    sp = sub.add_parser("list")
    sp.add_argument("--with-results", action="store_true")
    sp.set_defaults(func=cmd_list)

    sp = sub.add_parser("create-template")
    sp.add_argument("--title", required=True)
    sp.add_argument("--questions", type=int, required=True)
    sp.add_argument("--answers", nargs="+", required=True, help="one letter per question")
    sp.add_argument("--image", default=None)
    sp.add_argument("--map", default="")
    sp.add_argument("--id", default=None)
    sp.set_defaults(func=cmd_create_template)

    sp = sub.add_parser("add-result")
    sp.add_argument("template_id")
    sp.add_argument("--student", default="")
    sp.add_argument("--matricula", default=None)
    sp.add_argument("--turma", default=None)
    sp.add_argument("--correct", type=int, required=True)
    sp.add_argument("--incorrect", type=int, default=0)
    sp.add_argument("--score", default=None, help="display score; computed from --correct when omitted")
    sp.add_argument("--max-score", type=float, default=10.0)
    sp.set_defaults(func=cmd_add_result)

    sp = sub.add_parser("delete-template")
    sp.add_argument("template_id")
    sp.set_defaults(func=cmd_delete_template)

    sp = sub.add_parser("report")
    sp.add_argument("template_id")
    sp.set_defaults(func=cmd_report)

    sp = sub.add_parser("export")
    sp.add_argument("template_id")
    sp.add_argument("--output", required=True)
    sp.set_defaults(func=cmd_export)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    settings = Settings.from_env()
    if args.db:
        settings = settings.with_db_path(args.db)
    if settings.log_dir is not None:
        setup_logging(console_level=logging.DEBUG if args.verbose else logging.WARNING, log_dir=settings.log_dir)
    else:
        logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    facade = ClientFacade.from_settings(settings)
    try:
        facade.initialize()
        args.func(facade, args)
    except (StorageError, ValueError) as exc:
        log.debug("Command %s failed", args.cmd, exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1
    finally:
        facade.close()
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
