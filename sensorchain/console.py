"""Command line console.

Works on the local log file and anchor database by default, or against a
running service with ``--url``::

    sensorchain append 20.5
    sensorchain verify
    sensorchain --url http://localhost:8000 --admin-key ... reset --reason "sensor swap"
    sensorchain attack edit --position 1 --field value --new-value 99.9
    sensorchain shell            # one command per line on stdin

Only one process should write to a given log at a time; use ``--url`` while
the service is running.
"""
import argparse
import json
import shlex
import sys
from typing import Any, Dict, List, Optional

import requests

from sensorchain import attacks
from sensorchain.config import settings
from sensorchain.ledger.engine import ChainLedger, build_ledger
from sensorchain.ledger.errors import LedgerError
from sensorchain.ledger.verifier import AnchorStale, Tampered, count_records, verify_snapshot
from sensorchain.sensor import SimulatedSensor, format_timestamp
from sensorchain.utils.logger import logger, setup_logging

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_ERROR = 2


def _print(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _local_ledger(args: argparse.Namespace) -> ChainLedger:
    from sqlalchemy.orm import sessionmaker

    from sensorchain.database import init_db, make_engine

    engine = make_engine(args.anchor_db)
    init_db(engine)
    ledger = build_ledger(args.log_path, sessionmaker(bind=engine), fsync=settings.FSYNC_ON_WRITE)
    ledger.bootstrap()
    return ledger


def _verify_payload(ledger: ChainLedger) -> Dict[str, Any]:
    snapshot = ledger.snapshot()
    result = verify_snapshot(snapshot)
    payload: Dict[str, Any] = {
        "valid": result.valid,
        "status": result.status,
        "total_entries": count_records(snapshot.lines),
        "anchor": snapshot.anchor.value,
    }
    if isinstance(result, Tampered):
        payload.update(broken_at=result.position, reason=result.reason.value, detail=result.detail)
    elif isinstance(result, AnchorStale):
        payload.update(tip=result.tip, detail="run 'recover' to re-commit the anchor")
    else:
        payload["tip"] = result.tip
    return payload


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------

def cmd_append(args, ledger=None, client=None) -> int:
    timestamp = args.timestamp or format_timestamp()
    if client is not None:
        _print(client.append(args.value, timestamp))
    else:
        _print(ledger.append(timestamp, args.value).to_dict())
    return EXIT_OK


def cmd_sample(args, ledger=None, client=None) -> int:
    if client is not None:
        _print(client.sample())
        return EXIT_OK
    reading = SimulatedSensor(
        baseline=settings.SENSOR_BASELINE,
        jitter=settings.SENSOR_JITTER,
        minimum=settings.SENSOR_MIN,
        maximum=settings.SENSOR_MAX,
    ).read()
    _print(ledger.append(reading.timestamp, reading.value).to_dict())
    return EXIT_OK


def cmd_verify(args, ledger=None, client=None) -> int:
    payload = client.verify() if client is not None else _verify_payload(ledger)
    _print(payload)
    return EXIT_OK if payload["valid"] else EXIT_INVALID


def cmd_tip(args, ledger=None, client=None) -> int:
    if client is not None:
        _print(client.tip())
        return EXIT_OK
    tip, anchor, length = ledger.tip_state()
    _print({"tip": tip, "anchor": anchor.value, "pending": anchor.pending, "length": length,
            "in_sync": tip == anchor.value})
    return EXIT_OK


def cmd_show(args, ledger=None, client=None) -> int:
    if client is not None:
        _print(client.records(limit=args.limit, offset=args.offset))
        return EXIT_OK
    records = ledger.records()[args.offset:args.offset + args.limit]
    _print([{"position": position, **record.to_dict()} for position, record in records])
    return EXIT_OK


def cmd_reset(args, ledger=None, client=None) -> int:
    if not args.yes:
        print("Refusing to reset without --yes: this discards the whole chain.", file=sys.stderr)
        return EXIT_ERROR
    if client is not None:
        _print(client.reset(args.reason))
        return EXIT_OK
    event = ledger.reset(actor="console", reason=args.reason)
    _print({
        "id": event.id,
        "reset_at": event.reset_at,
        "previous_tip": event.previous_tip,
        "previous_length": event.previous_length,
    })
    return EXIT_OK


def cmd_recover(args, ledger=None, client=None) -> int:
    if client is not None:
        _print(client.recover())
        return EXIT_OK
    ledger.recover()
    _print(_verify_payload(ledger))
    return EXIT_OK


def cmd_attack(args, ledger=None, client=None) -> int:
    kind = args.kind
    if client is not None:
        _print(client.attack(kind, **_attack_body(args)))
        return EXIT_OK

    path = ledger.store.path
    if kind == "edit":
        result = attacks.edit_field(path, args.position, args.field, args.new_value)
    elif kind == "substitute":
        result = attacks.substitute_record(path, args.position, args.row)
    elif kind == "append-unlinked":
        result = attacks.append_unlinked(path, args.timestamp or format_timestamp(), args.value or "0.0")
    elif kind == "append-raw":
        result = attacks.append_without_hashes(path, args.timestamp or format_timestamp(), args.value or "0.0")
    elif kind == "delete":
        result = attacks.delete_record(path, args.position)
    elif kind == "swap":
        result = attacks.swap_records(path, args.position, args.second)
    else:  # overwrite
        count = args.count or count_records(ledger.store.read_lines())
        sensor = SimulatedSensor(baseline=settings.SENSOR_BASELINE, jitter=settings.SENSOR_JITTER)
        readings = [(r.timestamp, r.value) for r in (sensor.read() for _ in range(count))]
        result = attacks.overwrite_store(path, readings)
    _print({"attack": kind, "result": result})
    return EXIT_OK


def _attack_body(args: argparse.Namespace) -> Dict[str, Any]:
    """Request body for POST /attacks/<kind>"""
    kind = args.kind
    if kind == "edit":
        return {"position": args.position, "field": args.field, "new_value": args.new_value}
    if kind == "substitute":
        return {"position": args.position, "row": args.row}
    if kind in ("append-unlinked", "append-raw"):
        return {"timestamp": args.timestamp or format_timestamp(), "value": args.value or "0.0"}
    if kind == "delete":
        return {"position": args.position}
    if kind == "swap":
        return {"first": args.position, "second": args.second}
    sensor = SimulatedSensor(baseline=settings.SENSOR_BASELINE, jitter=settings.SENSOR_JITTER)
    readings = [sensor.read() for _ in range(args.count or 1)]
    return {"readings": [{"timestamp": r.timestamp, "value": r.value} for r in readings]}


def cmd_serve(args, ledger=None, client=None) -> int:
    import uvicorn

    uvicorn.run("sensorchain.main:app", host=args.host, port=args.port, log_level=settings.LOG_LEVEL.lower())
    return EXIT_OK


def cmd_shell(args, ledger=None, client=None) -> int:
    """Read one command per line from stdin until EOF or ``quit``"""
    parser = build_parser(shell=True)
    status = EXIT_OK
    for line in sys.stdin:
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if line in ("quit", "exit"):
            break
        try:
            sub_args = parser.parse_args(shlex.split(line))
        except SystemExit:
            status = EXIT_ERROR
            continue
        status = _dispatch(sub_args, ledger, client)
    return status


COMMANDS = {
    "append": cmd_append,
    "sample": cmd_sample,
    "verify": cmd_verify,
    "tip": cmd_tip,
    "show": cmd_show,
    "reset": cmd_reset,
    "recover": cmd_recover,
    "attack": cmd_attack,
    "serve": cmd_serve,
    "shell": cmd_shell,
}

# Commands that never touch the local ledger
_NO_LEDGER = ("serve",)


def build_parser(shell: bool = False) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sensorchain" if not shell else "sensorchain>",
        description="Tamper-evident sensor log console",
    )
    if not shell:
        parser.add_argument("--url", help="Talk to a running service instead of local files")
        parser.add_argument("--admin-key", default=settings.ADMIN_API_KEY)
        parser.add_argument("--log-path", default=settings.LOG_PATH)
        parser.add_argument("--anchor-db", default=settings.ANCHOR_DATABASE_URL)

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("append", help="Append a reading")
    p.add_argument("value")
    p.add_argument("--timestamp")

    sub.add_parser("sample", help="Append one simulated sensor reading")
    sub.add_parser("verify", help="Verify the chain (exit 1 if not valid)")
    sub.add_parser("tip", help="Show tip and trust anchor")

    p = sub.add_parser("show", help="List records")
    p.add_argument("--limit", type=int, default=20)
    p.add_argument("--offset", type=int, default=0)

    p = sub.add_parser("reset", help="Discard the chain and start from genesis")
    p.add_argument("--reason")
    p.add_argument("--yes", action="store_true", help="Confirm the reset")

    sub.add_parser("recover", help="Re-commit a stale trust anchor")

    p = sub.add_parser("attack", help="Tamper with the log file (demonstration)")
    p.add_argument(
        "kind",
        choices=["edit", "substitute", "append-unlinked", "append-raw", "delete", "swap", "overwrite"],
    )
    p.add_argument("--position", type=int, default=1)
    p.add_argument("--second", type=int, default=2, help="Second position for swap")
    p.add_argument("--field", default="value", choices=["timestamp", "value", "prev_hash", "entry_hash"])
    p.add_argument("--new-value", default="99.9")
    p.add_argument("--row", default="tampered,row")
    p.add_argument("--timestamp")
    p.add_argument("--value")
    p.add_argument("--count", type=int, help="Records in the forged chain (overwrite)")

    if not shell:
        p = sub.add_parser("serve", help="Run the HTTP service")
        p.add_argument("--host", default=settings.HOST)
        p.add_argument("--port", type=int, default=settings.PORT)

        sub.add_parser("shell", help="Read commands line by line from stdin")

    return parser


def _dispatch(args: argparse.Namespace, ledger, client) -> int:
    try:
        return COMMANDS[args.command](args, ledger=ledger, client=client)
    except (LedgerError, attacks.AttackError, requests.RequestException) as exc:
        logger.error("Command failed", extra={"action": args.command, "error": str(exc)})
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_ERROR


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    # stdout carries command output; log lines go to stderr
    setup_logging(settings.LOG_LEVEL, "text", stream=sys.stderr)

    client = None
    ledger = None
    if args.url:
        from sensorchain.client import SensorChainClient

        client = SensorChainClient(args.url, admin_key=args.admin_key)
    elif args.command not in _NO_LEDGER:
        ledger = _local_ledger(args)

    if args.command == "shell":
        # Sub-commands parsed inside the shell inherit the connection options
        return cmd_shell(args, ledger=ledger, client=client)
    return _dispatch(args, ledger, client)


if __name__ == "__main__":
    sys.exit(main())
