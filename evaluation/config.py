"""
Configuration for forecast accuracy scoring
"""
# A prediction is "correct" when it lands within this many points of the outcome
CORRECT_THRESHOLD = 2.0

# Accuracy percentages are bounded to [0, 100]
MAX_ACCURACY = 100.0
