"""Constants for the Facility Twin integration."""

DOMAIN = "facility_twin"

# Config keys
CONF_FLOOR_WIDTH = "floor_width"
CONF_FLOOR_HEIGHT = "floor_height"
CONF_CHANNEL = "channel"
CONF_UPDATE_INTERVAL = "update_interval"
CONF_HEATMAP_ENABLED = "heatmap_enabled"
CONF_HEATMAP_OPACITY = "heatmap_opacity"
CONF_IDW_POWER = "idw_power"
CONF_RADIUS_MULTIPLIER = "radius_multiplier"
CONF_MIN_OVERRIDE = "min_override"
CONF_MAX_OVERRIDE = "max_override"
CONF_COLOR_STOPS = "color_stops"
CONF_SHOW_NODE_NAMES = "show_node_names"
CONF_LOCKED = "locked"
CONF_WALLS = "walls"
CONF_NODES = "nodes"
CONF_ELEMENTS = "elements"

# Defaults
DEFAULT_FLOOR_WIDTH = 170.0
DEFAULT_FLOOR_HEIGHT = 220.0
DEFAULT_CHANNEL = "temperature_c"
DEFAULT_UPDATE_INTERVAL = 5  # minutes
DEFAULT_HEATMAP_ENABLED = True
DEFAULT_HEATMAP_OPACITY = 160
DEFAULT_IDW_POWER = 2.0
DEFAULT_RADIUS_MULTIPLIER = 1.0
DEFAULT_SHOW_NODE_NAMES = True
DEFAULT_LOCKED = False

# Seconds between a trigger and the heatmap recompute
RECOMPUTE_DEBOUNCE = 0.5

# Display size the editor maps pointer coordinates from until the client reports its own
DEFAULT_DISPLAY_WIDTH = 850
DEFAULT_DISPLAY_HEIGHT = 1100

SERVICE_REFRESH = "refresh"
SERVICE_INSPECT = "inspect"

ATTR_ENTRY_ID = "entry_id"
ATTR_X1 = "x1"
ATTR_Y1 = "y1"
ATTR_X2 = "x2"
ATTR_Y2 = "y2"
