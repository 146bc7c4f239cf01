# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING, Any

from dotenv import load_dotenv

from chainseed import __version__
from chainseed.app import (
    SeedAmmOptions,
    SeedMocksOptions,
    UpdateAmmOptions,
    seed_amm,
    seed_mocks,
    show_artifacts,
    update_amm,
    view_amm,
)
from chainseed.config import ConfigurationError, configure_logging
from chainseed.domain.codec import (
    encode_price_feed_id,
    normalize_hex,
    normalize_object_id,
    parse_non_negative_u64,
    parse_positive_u64,
)
from chainseed.domain.errors import ProvisioningError
from chainseed.domain.model import DEFAULT_MOCK_PRICE_FEED
from chainseed.domain.reconciliation.config_objects import (
    DEFAULT_AMM_CONFIG_LABEL,
    AmmConfigOverrides,
)

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from types import FrameType

    from chainseed.domain.model import AmmConfigOverview, ArtifactRecord
    from chainseed.domain.reconciliation import RunReport
    from chainseed.domain.reconciliation.config_objects import AmmConfigView, ConfigUpdate

log = logging.getLogger(__name__)


def _object_id(value: str) -> str:
    return normalize_object_id(value)


def _feed_id(value: str) -> str:
    encode_price_feed_id(value)
    return normalize_hex(value)


def _positive_bps(value: str) -> int:
    return parse_positive_u64(value, "Base spread bps")


def _non_negative_bps(value: str) -> int:
    return parse_non_negative_u64(value, "Volatility multiplier bps")


def _add_output_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--network",
        type=str,
        help="Network to target (defaults to CHAINSEED_NETWORK or localnet)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON on stdout",
    )


def _add_amm_value_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--base-spread-bps", type=_positive_bps, help="Base spread in bps")
    parser.add_argument(
        "--volatility-multiplier-bps",
        type=_non_negative_bps,
        help="Volatility multiplier in bps",
    )
    parser.add_argument(
        "--use-laser",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Enable or disable the laser pricing path",
    )
    parser.add_argument(
        "--price-feed-id",
        type=_feed_id,
        help="32-byte price feed id (hex)",
    )
    parser.add_argument(
        "--price-feed-label",
        type=str,
        help="Label of a seeded mock feed whose id should be used",
    )
    parser.add_argument("--amm-package-id", type=_object_id, help="Existing AMM package id")
    parser.add_argument(
        "--label",
        type=str,
        default=DEFAULT_AMM_CONFIG_LABEL,
        help="Artifact label of the config object (default: %(default)s)",
    )


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Provision and reconcile ledger resources")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    mocks = subparsers.add_parser(
        "seed-mocks",
        help="Publish the mock oracle and coin, then ensure the mock price feeds (localnet)",
    )
    _add_output_flags(mocks)
    mocks.add_argument(
        "--re-publish",
        action="store_true",
        help="Ignore cached artifacts and create everything again",
    )
    mocks.add_argument(
        "--no-refresh-feeds",
        dest="refresh_feeds",
        action="store_false",
        help="Skip pushing fresh prices to the mock feeds",
    )
    mocks.add_argument("--oracle-package-id", type=_object_id, help="Existing oracle package id")
    mocks.add_argument("--coin-package-id", type=_object_id, help="Existing coin package id")

    amm = subparsers.add_parser("seed-amm", help="Ensure the AMM package and its shared config")
    _add_output_flags(amm)
    amm.add_argument(
        "--re-publish",
        action="store_true",
        help="Publish the AMM package again and create a fresh config",
    )
    _add_amm_value_flags(amm)

    update = subparsers.add_parser("update-amm", help="Patch fields of the shared AMM config")
    _add_output_flags(update)
    _add_amm_value_flags(update)
    update.add_argument("--config-id", type=_object_id, help="AMM config object id")
    update.add_argument("--admin-cap-id", type=_object_id, help="Admin capability object id")
    update.add_argument(
        "--trading-paused",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Pause or resume trading",
    )
    update.add_argument(
        "--dry-run",
        action="store_true",
        help="Simulate the update without submitting it",
    )

    view = subparsers.add_parser("view-amm", help="Print the current AMM config (read-only)")
    _add_output_flags(view)
    view.add_argument("--config-id", type=_object_id, help="AMM config object id")
    view.add_argument(
        "--label",
        type=str,
        default=DEFAULT_AMM_CONFIG_LABEL,
        help="Artifact label of the config object (default: %(default)s)",
    )

    show = subparsers.add_parser("show-artifacts", help="Print the cached artifact records")
    _add_output_flags(show)

    args = parser.parse_args(list(argv))
    if getattr(args, "price_feed_id", None) and getattr(args, "price_feed_label", None):
        raise ValueError("Pass either --price-feed-id or --price-feed-label, not both")
    return args


# --- Rendering ---------------------------------------------------------------


def _record_payload(record: ArtifactRecord) -> dict[str, Any]:
    return {
        "kind": record.kind.value,
        "label": record.label,
        "objectId": record.object_id,
        "auxiliaryIds": dict(record.auxiliary_ids),
        "attributes": dict(record.attributes),
    }


def _report_payload(report: RunReport) -> dict[str, Any]:
    return {
        "ok": report.ok,
        "outcomes": [
            {
                "kind": outcome.kind.value,
                "label": outcome.label,
                "objectId": outcome.object_id,
                "status": outcome.status.value,
                "digest": outcome.effects.digest if outcome.effects else None,
            }
            for outcome in report.outcomes
        ],
        "failures": [
            {
                "kind": failure.kind,
                "label": failure.label,
                "stage": failure.stage,
                "message": failure.message,
            }
            for failure in report.failures
        ],
        "skipped": list(report.skipped),
    }


def _overview_payload(overview: AmmConfigOverview) -> dict[str, Any]:
    return {
        "configId": overview.config_id,
        "baseSpreadBps": overview.base_spread_bps,
        "volatilityMultiplierBps": overview.volatility_multiplier_bps,
        "useLaser": overview.use_laser,
        "tradingPaused": overview.trading_paused,
        "pythPriceFeedIdHex": overview.price_feed_id_hex,
    }


def _view_payload(view: AmmConfigView) -> dict[str, Any]:
    return {
        **_overview_payload(view.overview),
        "initialSharedVersion": view.initial_shared_version,
    }


def _update_payload(update: ConfigUpdate) -> dict[str, Any]:
    return {
        "dryRun": update.dry_run,
        "status": update.effects.status,
        "digest": update.effects.digest or None,
        "adminCapId": update.capability.object_id,
        "previous": _overview_payload(update.previous),
        "current": _overview_payload(update.current) if update.current else None,
    }


def _print_json(payload: Mapping[str, Any]) -> None:
    print(json.dumps(payload, indent=2))


def _emit_report(report: RunReport, *, as_json: bool) -> None:
    if as_json:
        _print_json(_report_payload(report))
        return
    for outcome in report.outcomes:
        log.info(
            "%s %s: %s (%s)",
            outcome.kind.value,
            outcome.label,
            outcome.object_id,
            outcome.status.value,
        )
    for label in report.skipped:
        log.warning("Skipped %s", label)


# --- Commands ----------------------------------------------------------------


def _run_command(args: argparse.Namespace) -> bool:
    if args.command == "seed-mocks":
        report = seed_mocks(
            SeedMocksOptions(
                re_publish=args.re_publish,
                refresh_feeds=args.refresh_feeds,
                oracle_package_id=args.oracle_package_id,
                coin_package_id=args.coin_package_id,
            ),
            network=args.network,
        )
        _emit_report(report, as_json=args.json)
        return report.ok

    if args.command == "seed-amm":
        options = SeedAmmOptions(
            re_publish=args.re_publish,
            amm_package_id=args.amm_package_id,
            price_feed_id=args.price_feed_id,
            base_spread_bps=args.base_spread_bps,
            volatility_multiplier_bps=args.volatility_multiplier_bps,
            use_laser=args.use_laser,
            label=args.label,
            price_feed_label=args.price_feed_label or DEFAULT_MOCK_PRICE_FEED.label,
        )
        report = seed_amm(options, network=args.network)
        _emit_report(report, as_json=args.json)
        return report.ok

    if args.command == "update-amm":
        update = update_amm(
            UpdateAmmOptions(
                overrides=AmmConfigOverrides(
                    base_spread_bps=args.base_spread_bps,
                    volatility_multiplier_bps=args.volatility_multiplier_bps,
                    use_laser=args.use_laser,
                    trading_paused=args.trading_paused,
                    price_feed_id_hex=args.price_feed_id,
                ),
                config_id=args.config_id,
                admin_cap_id=args.admin_cap_id,
                amm_package_id=args.amm_package_id,
                price_feed_label=args.price_feed_label,
                label=args.label,
                dry_run=args.dry_run,
            ),
            network=args.network,
        )
        if args.json:
            _print_json(_update_payload(update))
        else:
            verb = "Simulated" if update.dry_run else "Applied"
            log.info("%s update of %s: %s", verb, update.previous.config_id, update.settings)
        return True

    if args.command == "view-amm":
        view = view_amm(config_id=args.config_id, label=args.label, network=args.network)
        if args.json:
            _print_json(_view_payload(view))
        else:
            for key, value in _view_payload(view).items():
                print(f"{key}: {value}")
        return True

    if args.command == "show-artifacts":
        records = show_artifacts(network=args.network)
        if args.json:
            _print_json({key: _record_payload(record) for key, record in sorted(records.items())})
        else:
            for key, record in sorted(records.items()):
                print(f"{key}: {record.object_id}")
        return True

    raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
    except ValueError as exc:
        log.error("Invalid arguments: %s", exc)  # noqa: TRY400
        sys.exit(2)

    if parsed_args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        ok = _run_command(parsed_args)
    except (ProvisioningError, ConfigurationError) as exc:
        log.error("%s", exc)  # noqa: TRY400
        sys.exit(1)
    except Exception:
        log.exception("Fatal error during %s", parsed_args.command)
        sys.exit(1)

    if not ok:
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


if __name__ == "__main__":
    signal(SIGINT, sigint_handler)
    main()
