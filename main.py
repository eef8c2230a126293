# =============================================================================
# main.py - CLI entry point
# =============================================================================

import argparse
import logging
import sys
from contextlib import nullcontext
from datetime import datetime
from pathlib import Path

from core.ad_client import ActiveDirectoryClient
from core.credential_store import CredentialStoreClient, CredentialStoreError, decrypt_rpc_cache
from core.models import ServiceType
from processors.credential_consolidation import CredentialConsolidationProcessor
from processors.device_classification import DeviceClassificationProcessor
from processors.user_import import UserImportProcessor
from utils.config import Config


def setup_logging(level: str = "INFO") -> str:
    """Setup logging configuration with both console and file output"""
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)

    # Generate date-stamped filename
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_filename = log_dir / f"helpdesk_audit_{timestamp}.log"

    formatter = logging.Formatter(
        fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    file_handler = logging.FileHandler(log_filename, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)  # Always log DEBUG to file
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized - Console: {level.upper()}, File: DEBUG")
    logger.info(f"Log file: {log_filename}")

    return str(log_filename)


def directory_client(args, config):
    """AD client context when --with-directory is set, else a no-op context"""
    if not getattr(args, 'with_directory', False):
        return nullcontext(None)

    if not config.validate_ad_config():
        raise ValueError(f"Missing required environment variables: {config.get_missing_ad_vars()}")

    return ActiveDirectoryClient(
        config.ad_server, config.ad_username,
        config.ad_password, config.base_dn
    )


def handle_classify(args, config):
    """Classify each row of an inventory sheet as thin client or full PC"""
    logger = logging.getLogger(__name__)

    with directory_client(args, config) as ad_client:
        processor = DeviceClassificationProcessor(ad_client)
        stats = processor.process(args.input_file, args.output_csv, sheet_name=args.sheet_name)

    logger.info("Classification completed successfully!")
    logger.info(f"Classified {stats.classified_records} of {stats.total_records} rows")


def handle_consolidate(args, config):
    """Consolidate a credential export into one row per user"""
    logger = logging.getLogger(__name__)

    with directory_client(args, config) as ad_client:
        processor = CredentialConsolidationProcessor(ad_client)
        stats = processor.process(args.input_file, args.output_csv, sheet_name=args.sheet_name)

    logger.info("Consolidation completed successfully!")
    logger.info(f"Consolidated users: {stats.consolidated_users}")


def handle_fetch_credentials(args, config):
    """Fetch credentials from the store and write the consolidated view"""
    logger = logging.getLogger(__name__)

    if not config.validate_store_config():
        raise ValueError(f"Missing required environment variables: {config.get_missing_store_vars()}")

    decrypt_rpc_cache.ttl_seconds = config.rpc_cache_ttl
    service_type = ServiceType(args.service_type) if args.service_type else None

    with CredentialStoreClient(config.supabase_url, config.supabase_key) as store:
        records = store.fetch_credentials(service_type)

    with directory_client(args, config) as ad_client:
        processor = CredentialConsolidationProcessor(ad_client)
        stats = processor.export_records(records, args.output_csv)

    logger.info(f"Exported {stats.consolidated_users} consolidated users to {args.output_csv}")


def handle_import_users(args, config):
    """Validate a staff import sheet"""
    logger = logging.getLogger(__name__)

    processor = UserImportProcessor(config.allowed_email_domain)
    preview = processor.process(args.input_file, args.output_csv, sheet_name=args.sheet_name)

    if args.errors_output and preview.errors:
        processor.write_errors(args.errors_output)

    logger.info(f"{len(preview.valid_rows)} users ready to import, {len(preview.errors)} errors")


HANDLERS = {
    'classify': handle_classify,
    'consolidate': handle_consolidate,
    'fetch-credentials': handle_fetch_credentials,
    'import-users': handle_import_users,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Helpdesk identity and device audit")
    subparsers = parser.add_subparsers(dest='command', help='Command')

    classify_parser = subparsers.add_parser('classify', help='Classify devices as thin client or full PC')
    consolidate_parser = subparsers.add_parser('consolidate', help='Consolidate VPN/RDP credentials by email')
    import_parser = subparsers.add_parser('import-users', help='Validate a staff import sheet')

    for sub_parser in (classify_parser, consolidate_parser, import_parser):
        sub_parser.add_argument('input_file', help='Input CSV or Excel file path')
        sub_parser.add_argument('output_csv', help='Output CSV file path')
        sub_parser.add_argument('--sheet-name', help='Excel sheet name (optional)')

    for sub_parser in (classify_parser, consolidate_parser):
        sub_parser.add_argument('--with-directory', action='store_true',
                                help='Enrich rows from Active Directory')

    import_parser.add_argument('--errors-output', help='Output CSV file for validation errors')

    fetch_parser = subparsers.add_parser('fetch-credentials', help='Export consolidated credentials from the store')
    fetch_parser.add_argument('output_csv', help='Output CSV file path')
    fetch_parser.add_argument('--service-type', choices=[s.value for s in ServiceType],
                              help='Only fetch one service type')
    fetch_parser.add_argument('--with-directory', action='store_true',
                              help='Enrich users from Active Directory')

    parser.add_argument('--log-level', default='INFO', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level')
    return parser


def main(argv=None):
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    config = Config()

    input_file = getattr(args, 'input_file', None)
    if input_file and not Path(input_file).exists():
        logger.error(f"Input file not found: {input_file}")
        sys.exit(1)

    try:
        HANDLERS[args.command](args, config)
    except CredentialStoreError as e:
        logger.error(f"Credential store error: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Processing failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
