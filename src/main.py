"""
Command-line entry point for the solar verification service.

Runs the detection engine for single samples or CSV batches, exports stored
results for audit, or serves the HTTP API.

Usage:
    python src/main.py --config config/config.yaml detect --sample-id S1 --lat 12.97 --lon 77.59
    python src/main.py batch claims.csv
    python src/main.py export --format csv --output results.csv
    python src/main.py serve

Arguments:
    --config: Path to configuration file
"""

import argparse
import json
import logging
import os
import sys
from typing import Any, Dict, Optional, Tuple

import uvicorn
import yaml

from detection.engine import create_engine_from_config
from detection.errors import DetectionError
from export.exporter import export_csv, export_json, parse_batch_csv
from inference.image import decode_image
from models.config import Config
from ops.logging import setup_logging
from runtime.services import VerificationService
from storage.database import Database
from web.app import create_app
from web.state import state as web_state

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        # Finally apply explicit config_path if it's not the local override file itself
        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except (OSError, yaml.YAMLError) as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['detection', 'storage', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Detection backend selection
    detection = config.get('detection', {}) or {}
    backend = detection.get('backend', 'simulated')
    if backend not in ('simulated', 'remote'):
        return False, "detection.backend must be one of: simulated, remote"
    if backend == 'remote':
        remote = detection.get('remote', {}) or {}
        if not isinstance(remote.get('url'), str) or not remote.get('url'):
            return False, "detection.remote.url is required when detection.backend is 'remote'"
        if 'timeout_s' in remote and (not _is_number(remote['timeout_s']) or remote['timeout_s'] <= 0):
            return False, "detection.remote.timeout_s must be a positive number"

    seed = detection.get('seed')
    if seed is not None and (not isinstance(seed, int) or isinstance(seed, bool) or seed < 0):
        return False, "detection.seed must be a non-negative integer"

    if 'presence_threshold' in detection:
        pt = detection['presence_threshold']
        if not _is_number(pt) or not (0 <= pt < 1):
            return False, "detection.presence_threshold must be in [0, 1)"

    if 'timeout_s' in detection:
        if not _is_number(detection['timeout_s']) or detection['timeout_s'] <= 0:
            return False, "detection.timeout_s must be a positive number"

    # The HTTP timeout bounds a detection worker that outlived its attempt
    if backend == 'remote':
        remote_timeout = (detection.get('remote', {}) or {}).get('timeout_s', 10.0)
        if remote_timeout > detection.get('timeout_s', 30.0):
            return False, "detection.remote.timeout_s must not exceed detection.timeout_s"

    # Physical constants
    physics = config.get('physics', {}) or {}
    for key in ('avg_panel_area_sqm', 'watt_per_sqm'):
        if key in physics and (not _is_number(physics[key]) or physics[key] <= 0):
            return False, f"physics.{key} must be a positive number"

    geometry = config.get('geometry', {}) or {}
    if 'frame_size' in geometry:
        fs = geometry['frame_size']
        if not isinstance(fs, int) or isinstance(fs, bool) or fs <= 0:
            return False, "geometry.frame_size must be a positive integer"

    # Retry policy
    workflow = config.get('workflow', {}) or {}
    if 'max_attempts' in workflow:
        ma = workflow['max_attempts']
        if not isinstance(ma, int) or isinstance(ma, bool) or ma <= 0:
            return False, "workflow.max_attempts must be a positive integer"
    if 'backoff_s' in workflow:
        if not _is_number(workflow['backoff_s']) or workflow['backoff_s'] < 0:
            return False, "workflow.backoff_s must be a non-negative number"
    if 'backoff_factor' in workflow:
        if not _is_number(workflow['backoff_factor']) or workflow['backoff_factor'] < 1:
            return False, "workflow.backoff_factor must be >= 1"

    # Validate storage settings
    storage = config.get('storage', {}) or {}
    if 'local_database_path' not in storage:
        return False, "Missing storage.local_database_path"
    if not isinstance(storage['local_database_path'], str):
        return False, "storage.local_database_path must be a string"

    web = config.get('web', {}) or {}
    if 'port' in web:
        port = web['port']
        if not isinstance(port, int) or isinstance(port, bool) or not (0 < port < 65536):
            return False, "web.port must be an integer between 1 and 65535"

    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Rooftop Solar Verification')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    sub = parser.add_subparsers(dest='command', required=True)

    p_detect = sub.add_parser('detect', help='Run detection for one sample')
    p_detect.add_argument('--sample-id', required=True)
    p_detect.add_argument('--lat', type=float, required=True)
    p_detect.add_argument('--lon', type=float, required=True)
    p_detect.add_argument('--claim-id', default=None,
                          help='Owning claim (defaults to the sample id)')
    p_detect.add_argument('--region', default=None)
    p_detect.add_argument('--image', default=None,
                          help='Path to a rooftop image (PNG/JPEG)')

    p_batch = sub.add_parser('batch', help='Run detection for every row of a CSV file')
    p_batch.add_argument('csv_path')

    p_export = sub.add_parser('export', help='Export stored results')
    p_export.add_argument('--format', choices=['csv', 'json'], default='csv')
    p_export.add_argument('--output', default='-',
                          help="Output file ('-' for stdout)")

    sub.add_parser('serve', help='Serve the HTTP API')
    return parser


def _write_output(body: str, output: str) -> None:
    if output == '-':
        sys.stdout.write(body)
        if not body.endswith("\n"):
            sys.stdout.write("\n")
        return
    out_dir = os.path.dirname(output)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    with open(output, 'w', newline='') as f:
        f.write(body)
    logging.info(f"Wrote {output}")


def run_command(args: argparse.Namespace, config: Dict[str, Any]) -> int:
    """Execute one CLI command against an initialized database. Returns the exit code."""
    typed = Config.from_dict(config)
    db = Database(typed.storage.local_database_path)
    db.initialize()
    try:
        if args.command == 'export':
            records = db.list_results()
            body = export_csv(records) if args.format == 'csv' else export_json(records)
            _write_output(body, args.output)
            return 0

        engine = create_engine_from_config(typed)
        service = VerificationService(
            engine, db, typed.workflow, timeout_s=typed.detection.timeout_s
        )

        if args.command == 'detect':
            image = None
            if args.image:
                with open(args.image, 'rb') as f:
                    image = decode_image(f.read())
            result = service.verify(
                claim_id=args.claim_id or args.sample_id,
                sample_id=args.sample_id,
                lat=args.lat,
                lon=args.lon,
                image=image,
                region=args.region,
            )
            print(json.dumps(result.to_dict(), indent=2))
            return 0

        if args.command == 'batch':
            with open(args.csv_path, 'r', newline='', encoding='utf-8-sig') as f:
                rows = parse_batch_csv(f.read())
            outcome = service.verify_batch(rows)
            print(json.dumps({
                "verified": outcome.succeeded,
                "rejected": outcome.failed,
                "errors": outcome.errors,
            }, indent=2))
            return 0 if outcome.failed == 0 else 2

        if args.command == 'serve':
            web_state.set_database(db)
            web_state.set_service(service)
            web_state.set_config(config)
            logging.info(f"Web interface starting on {typed.web.host}:{typed.web.port}")
            uvicorn.run(
                create_app(),
                host=typed.web.host,
                port=typed.web.port,
                log_level=typed.log_level.lower(),
            )
            return 0

        logging.error(f"Unknown command: {args.command}")
        return 1
    finally:
        db.close()


def main(argv=None) -> int:
    """Main application function."""
    args = build_parser().parse_args(argv)

    # Load configuration
    config = load_config(args.config)

    # Validate configuration
    is_valid, error_msg = validate_config(config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        return 1

    # Setup logging
    setup_logging(config['log_path'], config['log_level'])
    logging.info(f"Starting Solar Verification ({args.command})")

    try:
        return run_command(args, config)
    except DetectionError as e:
        logging.error(f"Detection failed: {e}")
        return 2
    except OSError as e:
        logging.error(f"I/O error: {e}")
        return 1
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
