"""Main entry point for the StrataLens application."""

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from stratalens.utils.logger import setup_logging
from stratalens.database.db_init import init_db

# Setup logging first
logger = setup_logging()

# Initialize database
init_db()

if __name__ == "__main__":
    logger.info("Starting StrataLens")

    # Import UI app after logging setup
    from ui.app import main as ui_main

    logger.info("Streamlit app initialized, launching UI...")
    ui_main()
