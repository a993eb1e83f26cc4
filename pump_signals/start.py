"""
Entry Point for the Pump Signals Pipeline
Validates configuration, sets up logging and runs the job loops
"""

import asyncio
import logging
import sys
from logging.handlers import RotatingFileHandler

from pump_signals import config
from pump_signals.exchanges import EXCHANGE_CLASSES

logger = logging.getLogger(__name__)


def setup_logging():
    logging.basicConfig(
        level=getattr(logging, config.LOGGING_CONFIG['level'], logging.INFO),
        format=config.LOGGING_CONFIG['format'],
        handlers=[
            RotatingFileHandler(
                config.LOGGING_CONFIG['file'],
                maxBytes=config.LOGGING_CONFIG['max_size_mb'] * 1024 * 1024,
                backupCount=config.LOGGING_CONFIG['backup_count'],
            ),
            logging.StreamHandler()
        ]
    )


def validate_configuration():
    """Validate required configuration before startup"""
    errors = []

    enabled = config.EXCHANGE_CONFIG['enabled']
    if not enabled:
        errors.append("EXCHANGES must name at least one exchange")
    for name in enabled:
        if name not in EXCHANGE_CLASSES:
            errors.append(f"Unknown exchange '{name}' (supported: {', '.join(EXCHANGE_CLASSES)})")

    if not config.REDIS_URL:
        errors.append("REDIS_URL not set in environment")

    if config.PUMP_CONFIG['threshold_pct'] <= 0:
        errors.append("Pump threshold percentage must be positive")

    if config.PUMP_CONFIG['volume_multiplier'] <= 0:
        errors.append("Pump volume multiplier must be positive")

    if config.PUMP_CONFIG['window_minutes'] <= 0:
        errors.append("Pump window must be positive")

    for name, seconds in config.SCHEDULE_CONFIG.items():
        if seconds <= 0:
            errors.append(f"{name} interval must be positive")

    if errors:
        logger.error("Configuration validation failed:")
        for error in errors:
            logger.error(f"  {error}")
        return False

    return True


def log_configuration():
    """Log key configuration parameters"""
    schedule = config.SCHEDULE_CONFIG
    logger.info("Configuration Summary:")
    logger.info(f"   Exchanges: {', '.join(config.EXCHANGE_CONFIG['enabled'])}")
    logger.info(f"   Pump Threshold: {config.PUMP_CONFIG['threshold_pct']}%")
    logger.info(f"   Volume Multiplier: {config.PUMP_CONFIG['volume_multiplier']}x")
    logger.info(f"   Pump Window: {config.PUMP_CONFIG['window_minutes']} min")
    logger.info(f"   Auto-generate Signals: {bool(config.SIGNAL_CONFIG['auto_generate_from_pumps'])}")
    logger.info(f"   Schedule: aggregate {schedule['price_aggregator_seconds']}s | "
                f"scan {schedule['pump_scanner_seconds']}s | check {schedule['signal_checker_seconds']}s")
    logger.info(f"   Database: {config.DATABASE_CONFIG['host']}:{config.DATABASE_CONFIG['port']}/"
                f"{config.DATABASE_CONFIG['database']}")


async def main():
    """Main entry point"""
    from pump_signals.main import PumpSignalSystem

    if not validate_configuration():
        logger.error("Configuration validation failed. Exiting.")
        return 1

    log_configuration()

    system = None
    try:
        logger.info("Starting Pump Signals Pipeline...")
        system = PumpSignalSystem()
        await system.initialize()
        await system.run()

    except asyncio.CancelledError:
        logger.info("Cancelled. Shutting down...")

    except Exception as e:
        logger.exception(f"Fatal error: {e}")
        return 1

    finally:
        if system:
            try:
                await system.shutdown()
            except Exception as e:
                logger.error(f"Error during shutdown: {e}")

    return 0


def run():
    setup_logging()
    try:
        exit_code = asyncio.run(main())
        sys.exit(exit_code)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    run()
