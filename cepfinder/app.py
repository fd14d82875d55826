import argparse
import asyncio
import dataclasses
import json
import signal
from pathlib import Path
from typing import Any, List

from .env import load_env

from . import __version__
from .batch import batch_stats, estimate_processing_time
from .errors import CepError
from .logger import get_logger
from .models import BatchProgress, CanonicalAddress
from .normalize import format_cep
from .resolver import MODE_ALL, MODE_FALLBACK
from .schema import parse_batch_items, validate_cep_input
from .service import CepService


def _print_json(data: Any) -> None:
    if dataclasses.is_dataclass(data):
        data = dataclasses.asdict(data)
    elif isinstance(data, list):
        data = [dataclasses.asdict(d) if dataclasses.is_dataclass(d) else d for d in data]
    elif isinstance(data, dict):
        data = {k: dataclasses.asdict(v) if dataclasses.is_dataclass(v) else v for k, v in data.items()}
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _print_address(address: CanonicalAddress, indent: str = "") -> None:
    print(f"{indent}CEP: {format_cep(address.postal_code)}")
    print(f"{indent}  Logradouro: {address.street}")
    print(f"{indent}  Bairro: {address.neighborhood}")
    print(f"{indent}  Cidade: {address.city} - {address.state_code}")
    for label, value in (
        ("Complemento", address.complement),
        ("Tipo", address.address_type),
        ("DDD", address.area_code),
        ("IBGE", address.ibge_code),
    ):
        if value:
            print(f"{indent}  {label}: {value}")
    if address.latitude and address.longitude:
        print(f"{indent}  Coordenadas: {address.latitude}, {address.longitude}")
    print(f"{indent}  Fonte: {address.source_name}")


def cmd_lookup(args: argparse.Namespace) -> None:
    service = CepService()
    mode = MODE_ALL if args.all else MODE_FALLBACK
    try:
        result = asyncio.run(service.lookup_single(args.cep, mode))
    except CepError as e:
        raise SystemExit(str(e))

    if args.json:
        _print_json(result)
        return
    if mode == MODE_FALLBACK:
        _print_address(result)
        return
    for name, outcome in result.items():
        if outcome.ok:
            print(f"[{name}]")
            _print_address(outcome.address, indent="  ")
        else:
            print(f"[{name}] erro: {outcome.reason}")


def _read_items(args: argparse.Namespace) -> List[str]:
    if args.input:
        input_path = Path(args.input)
        if not input_path.exists():
            raise SystemExit(f"Input file not found: {input_path}")
        with input_path.open("r", encoding="utf-8") as f:
            return f.read().splitlines()
    return [c.strip() for c in (args.ceps or "").split(",")]


def _print_progress(progress: BatchProgress) -> None:
    print(
        f"[{progress.processed}/{progress.total} {progress.percentage:.1f}%] "
        f"encontrados={progress.found} não-encontrados={progress.not_found} erros={progress.errors} "
        f"restante≈{progress.remaining_seconds:.1f}s"
    )


async def _run_batch(service: CepService, items, concurrency: int, quiet: bool):
    job = service.start_batch(items, concurrency, on_progress=None if quiet else _print_progress)
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, job.cancel)
    except NotImplementedError:
        pass  # Windows event loops; Ctrl+C then aborts instead of cancelling
    try:
        return await job.run()
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except NotImplementedError:
            pass


def cmd_batch(args: argparse.Namespace) -> None:
    items = parse_batch_items(_read_items(args), origin=args.input or "")
    if not items:
        raise SystemExit("No CEPs given. Use --ceps \"01001000,20040002\" or --input file.txt")

    service = CepService(chunk_size=args.chunk_size)
    if not args.json and not args.quiet:
        estimate = estimate_processing_time(len(items), args.concurrency) / 1000
        print(f"Processing {len(items)} items (≈{estimate:.0f}s). Ctrl+C cancels after the current chunk.")

    rows = asyncio.run(_run_batch(service, items, args.concurrency, args.quiet or args.json))

    if args.json:
        _print_json(rows)
    else:
        for row in rows:
            detail = row.error if row.error else f"{row.street}, {row.neighborhood}, {row.city} - {row.state_code}"
            print(f"[{row.status}] {row.postal_code} | {detail} | {row.source_name} | {row.elapsed_ms}ms")
        stats = batch_stats(rows)
        print(
            f"Done. total={stats.total} found={stats.found} not-found={stats.not_found} "
            f"errors={stats.errors} success={stats.success_rate:.1f}%"
        )
        if len(rows) < len(items):
            print(f"Cancelled: {len(items) - len(rows)} items not processed.")

    if args.metrics:
        get_logger().log_metrics_summary()


def cmd_search(args: argparse.Namespace) -> None:
    service = CepService()
    query = {
        "street": args.street or "",
        "neighborhood": args.neighborhood or "",
        "city": args.city or "",
        "state": args.state or "",
    }
    try:
        rows = asyncio.run(service.search_by_address(query))
    except CepError as e:
        raise SystemExit(str(e))

    if args.json:
        _print_json(rows)
        return
    for row in rows:
        cep = format_cep(row.postal_code) if row.postal_code else "-"
        print(f"[{row.status}] {cep} | {row.address_line}")


def cmd_health(args: argparse.Namespace) -> None:
    service = CepService()
    status = asyncio.run(service.refresh_health())
    if args.json:
        _print_json(status)
        return
    for record in status:
        state = "online" if record.is_online else "offline"
        print(f"{record.name:<12} {state:<8} {record.last_response_time_ms}ms  ({record.last_checked_at:%H:%M:%S})")


def cmd_validate(args: argparse.Namespace) -> None:
    input_path = Path(args.input)
    if not input_path.exists():
        raise SystemExit(f"Input file not found: {input_path}")
    report = validate_cep_input(input_path.read_text(encoding="utf-8"))
    print(f"Total: {report['total']}  valid: {len(report['valid'])}  invalid: {len(report['invalid'])}")
    if report["invalid"]:
        print("Invalid:")
        for entry in report["invalid"]:
            print(f" - {entry}")
        raise SystemExit(2)


def main():
    # Load .env if present (CEPFINDER_* settings)
    load_env()
    parser = argparse.ArgumentParser(prog="cepfinder", description="Brazilian CEP lookup across several public APIs")
    parser.add_argument("--version", action="store_true", help="Show version")

    subparsers = parser.add_subparsers(dest="command")
    lk = subparsers.add_parser("lookup", help="Resolve one CEP")
    lk.add_argument("cep", help="CEP, with or without formatting (01001-000)")
    lk.add_argument("--all", action="store_true", help="Query every source and show each answer")
    lk.add_argument("--json", action="store_true", help="Print JSON")
    lk.set_defaults(func=cmd_lookup)

    bt = subparsers.add_parser("batch", help="Resolve many CEPs with bounded concurrency")
    bt.add_argument("--input", help="Text file with one CEP per line")
    bt.add_argument("--ceps", help="Comma-separated CEPs")
    bt.add_argument("--concurrency", type=int, default=5, help="Lookups in flight per chunk (default 5)")
    bt.add_argument("--chunk-size", type=int, help="Items per chunk (default from CEPFINDER_BATCH_CHUNK_SIZE)")
    bt.add_argument("--quiet", action="store_true", help="Do not print progress")
    bt.add_argument("--json", action="store_true", help="Print JSON rows")
    bt.add_argument("--metrics", action="store_true", help="Log per-source metrics at the end")
    bt.set_defaults(func=cmd_batch)

    sr = subparsers.add_parser("search", help="Find CEPs for an address (city and state required)")
    sr.add_argument("--street", help="Street name (at least 3 letters)")
    sr.add_argument("--neighborhood", help="Neighborhood")
    sr.add_argument("--city", required=True, help="City")
    sr.add_argument("--state", required=True, help="Two-letter state code, e.g. SP")
    sr.add_argument("--json", action="store_true", help="Print JSON")
    sr.set_defaults(func=cmd_search)

    hl = subparsers.add_parser("health", help="Probe every source and show its status")
    hl.add_argument("--json", action="store_true", help="Print JSON")
    hl.set_defaults(func=cmd_health)

    val = subparsers.add_parser("validate", help="Check a CEP list file without querying anything")
    val.add_argument("--input", required=True, help="Text file with CEPs")
    val.set_defaults(func=cmd_validate)

    args = parser.parse_args()

    if args.version:
        print(__version__)
        return

    if hasattr(args, "func"):
        args.func(args)
        return

    parser.print_help()


if __name__ == "__main__":
    main()
