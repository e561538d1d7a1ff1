"""
Configuration for FPL squad optimization
"""
# FPL Rules and Constraints
BUDGET = 100.0  # £100 million
TEAM_LIMIT = 3  # Max 3 players from any single team
SQUAD_SIZE = 15
STARTING_XI_SIZE = 11

# Squad quotas, keyed by position code. Order is the canonical selection order.
SQUAD_QUOTAS = {
    'GKP': 2,
    'DEF': 5,
    'MID': 5,
    'FWD': 3
}

# Starting XI floors (at least 1 GK, 3 DEF, 2 MID, 1 FWD); exactly one keeper starts
FORMATION_MINIMUMS = {
    'GKP': 1,
    'DEF': 3,
    'MID': 2,
    'FWD': 1
}
STARTING_GOALKEEPERS = 1

# Optimization settings
OPTIMIZATION_METHOD = 'greedy'  # 'greedy' (budget-sweep heuristic) or 'mip' (PuLP/CBC)
MAX_SOLUTION_TIME = 30  # seconds, MIP only

# Forecast sanity bounds
MAX_FORECAST_POINTS = 20.0

# Captain multipliers
CAPTAIN_MULTIPLIER = 2.0

# Transfer settings
POINTS_PER_TRANSFER = 4  # Points deducted for each transfer beyond free transfers
MAX_SUGGESTIONS = 10
HIGH_PRIORITY_THRESHOLD = 3.0  # impact > 3 -> high
MEDIUM_PRIORITY_THRESHOLD = 1.0  # 1 < impact <= 3 -> medium, else low

# Team rating scale
MAX_TEAM_RATING = 100

# Differential alerts (low-ownership picks)
MAX_DIFFERENTIAL_ALERTS = 30
DIFFERENTIAL_CAPTAIN_OPTIONS = 5  # differential captain is drawn from the top forecasts

# Chip settings
CHIP_PRIORITY = ['wildcard', 'triple_captain', 'bench_boost', 'free_hit']
CHIP_MIN_GAIN = {
    'wildcard': 15.0,  # Need significant improvement
    'triple_captain': 8.0,  # Good captain with easy fixture
    'bench_boost': 10.0,  # Strong bench
    'free_hit': 12.0  # Major availability issues
}
TRIPLE_CAPTAIN_MULTIPLIER = 3.0
EASY_FIXTURE_BONUS = 1.2  # Triple captain gain bonus for FDR <= 2
