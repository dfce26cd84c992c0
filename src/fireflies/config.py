"""
Configuration constants for the firefly simulation.

All tunable parameters in one place. Distances are in world units
(pixels), times in seconds, angles in radians.
"""

import math

# =============================================================================
# GRID & SENSING
# =============================================================================

GRID_SIZE = 8  # Occupancy grid cell size
SENSE_RADIUS = 120.0  # How far a firefly can see
FOV_ANGLE = math.pi * 0.7  # Full cone (~126 degrees), half-angle = FOV_ANGLE / 2

# =============================================================================
# SEGMENTATION
# =============================================================================

MIN_CLUSTER_CELLS = 2  # Clusters smaller than this are noise
MERGE_DISTANCE = 20.0  # Merge clusters whose centroids are this close

# =============================================================================
# MEMORY
# =============================================================================

MEMORY_FADE_RATE = 0.5  # Confidence lost per second while unmatched
MEMORY_MATCH_THRESHOLD = 80.0  # Max centroid distance to match memory
MIN_MATCH_SCORE = 0.3  # Minimum similarity to accept a match
MIN_CONFIDENCE = 0.1  # Below this, memory is forgotten
MAX_MEMORY_AGE = 10.0  # Seconds an unseen object is remembered
MATCH_CONFIDENCE_GAIN = 0.1  # Confidence restored on each match
MISSING_MIN_CONFIDENCE = 0.3  # Only confident memories can go missing
MISSING_CONFIDENCE_DECAY = 0.7  # Confidence multiplier for a missing object
CONFIRM_MIN_CONFIDENCE = 0.5  # Only confident memories can be confirmed

P_STATIC_MIN = 0.05
P_STATIC_MAX = 0.95

# =============================================================================
# PREDICTION
# =============================================================================

SURPRISE_THRESHOLD = 30.0  # Displacement that triggers surprise
CONFIRMATION_BAND = SURPRISE_THRESHOLD / 2  # Displacement still counted as "in place"
LEARNING_RATE = 0.15  # How much P(static) changes after an error
CONFIRMATION_BOOST = 0.02  # Small boost when a prediction is confirmed
COLLISION_BOOST = 0.35  # P(static) pull after an unexpected collision
ERROR_DISPLAY_DURATION = 1.5  # Seconds a prediction error stays active

# =============================================================================
# INITIAL BELIEFS
# =============================================================================

FIXED_OBSTACLE_P_STATIC = 0.85  # Near a boundary or large
DRAGGABLE_P_STATIC = 0.35  # Known draggable source
UNKNOWN_OBJECT_P_STATIC = 0.5  # Default for new objects
BOUNDARY_MARGIN = 100.0  # "Near a boundary" margin for the prior
LARGE_OBJECT_AREA = 10000.0  # "Unusually large" area for the prior

# =============================================================================
# MOVEMENT
# =============================================================================

BASE_SPEED = 72.0  # Units per second
MAX_SPEED = 150.0
AVOID_SPEED_FACTOR = 1.5  # Speed multiplier while avoiding
AVOID_ENGAGE_THRESHOLD = 0.3  # |avoidance| above this counts as avoiding
ACCELERATION = 6.0  # Speed smoothing rate (1/s)
SPEED_OSCILLATION = 0.2  # Fraction of base speed
SPEED_OSCILLATION_PERIOD = 1.9  # Seconds
TURN_RATE = 4.8  # Max radians per second

AVOIDANCE_DISTANCE = 60.0  # Start avoiding at this distance
AVOIDANCE_STRENGTH = 2.0  # How strongly to avoid
DIRECT_FIXED_WEIGHT = 1.5  # Extra weight for fixed obstacles (direct avoidance)

WALL_MARGIN = 80.0  # Start repelling from world edges
WALL_STRENGTH = 1.0
EDGE_CLEARANCE = 15.0  # Agents are kept this far inside the world

WANDER_STRENGTH = 0.6  # Persistent curve (radians per second)
WANDER_VARIATION = 0.3  # Random jitter amplitude (radians per second)

ATTRACTION_STRENGTH = 1.2
ATTRACTOR_RANGE = 700.0
ATTRACTOR_MIN_DISTANCE = 15.0
ATTRACTOR_DECAY = 2.0  # Seconds until attractor influence fades out

# =============================================================================
# COLLISION
# =============================================================================

COLLISION_PADDING = 10.0  # Padding for hard collision checks
ESCAPE_LOOKAHEAD = 30.0  # How far ahead an escape heading is tested
ESCAPE_CLEARANCE = 12.0
ESCAPE_STEP = 5.0  # Distance moved along the escape heading
ESCAPE_HOLD = 1.2  # Seconds the escape heading is held
EXPECTED_HIT_CONFIDENCE = 0.3  # Memory confidence needed to predict a hit
TOUCH_RADIUS = 32.0  # Sensing radius of the post-collision touch pass

# Escape ring (unit-ish vectors, normalised at use)
ESCAPE_DIRECTIONS = (
    (1.0, 0.0), (-1.0, 0.0), (0.0, 1.0), (0.0, -1.0),
    (0.7, 0.7), (-0.7, 0.7), (0.7, -0.7), (-0.7, -0.7),
    (0.9, 0.4), (-0.9, 0.4), (0.9, -0.4), (-0.9, -0.4),
)

# =============================================================================
# POPULATION & TIMING
# =============================================================================

AGENT_COUNT = 4
FRAME_HZ = 60
PERCEPTION_INTERVAL = 0.05  # Seconds between cognition ticks
MAX_FRAME_DT = 0.1  # Clamp on integration step after a stall
RESEED_TOLERANCE = 100.0  # Bounds change that forces a re-seed
SPAWN_CLEARANCE = 30.0  # Min distance from obstacles at spawn
SPAWN_JITTER = 0.4  # Fraction of a grid slot used for jitter
SPAWN_ATTEMPTS = 50

# =============================================================================
# WEB INTERFACE
# =============================================================================

WEB_HOST = "0.0.0.0"
WEB_PORT = 8080
WS_STREAM_HZ = 20
