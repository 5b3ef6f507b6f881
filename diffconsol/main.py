"""
Consolidation Pipeline - Main Entry Point

This module serves as the main entry point with zero business logic.
All processing is delegated to specialized services.
"""

import sys
from typing import Optional, Sequence

from diffconsol.application.consolidation_service import ConsolidationService
from diffconsol.infrastructure.argument_parser import ArgumentParser
from diffconsol.infrastructure.logger import Logger


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point - no business logic"""
    logger = Logger()

    try:
        logger.log_step("Starting", "Consolidation Pipeline")

        # Parse and validate arguments
        logger.log_step("Parsing", "Command line arguments")
        parser = ArgumentParser()
        config = parser.parse_arguments(argv)

        # Initialize and run consolidation service
        logger.log_step("Initializing", "Consolidation service")
        service = ConsolidationService(config)

        logger.log_step("Processing", f"{config.mode} run")
        service.run()

        logger.log_success("Processing completed successfully")
        print("✅ Processing completed successfully")
        return 0

    except KeyboardInterrupt:
        logger.log_warning("Processing interrupted by user")
        print("⚠️ Processing interrupted by user")
        return 130

    except Exception as e:
        logger.log_error(e, "Main execution")
        print(f"❌ Processing failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
