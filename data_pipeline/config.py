"""
Configuration settings for the data layer of the FPL gameweek advisor
"""
import os

# Base paths
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
DATA_DIR = os.path.join(BASE_DIR, 'data')
PROCESSED_DATA_DIR = os.path.join(DATA_DIR, 'processed')
DATABASE_PATH = os.environ.get(
    'FPL_ADVISOR_DB',
    os.path.join(PROCESSED_DATA_DIR, 'sqlite', 'fpl_advisor.db')
)

# Database settings
SQLITE_PRAGMAS = {
    'journal_mode': 'WAL',
    'cache_size': -1 * 10000,  # 10MB
    'foreign_keys': 1,
    'synchronous': 'NORMAL'
}

# Forecast provider batching
FORECAST_BATCH_SIZE = 20

# Fallback forecast formula weights
FORM_WEIGHT = 0.5
POINTS_PER_90_WEIGHT = 0.3
FALLBACK_APPEARANCE_POINTS = 2.0
