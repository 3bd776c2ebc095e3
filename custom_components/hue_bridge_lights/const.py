"""Constants for the Hue Bridge Lights integration."""
from enum import Enum

DOMAIN = "hue_bridge_lights"


class ApiVersion(str, Enum):
    """Bridge API generation used for commands and inbound state."""

    V1 = "V1"
    V2 = "V2"


# Configuration keys
CONF_HOST = "host"
CONF_APP_KEY = "app_key"
CONF_API_VERSION = "api_version"
CONF_TRANSITION_TIME = "transition_time"
CONF_LEVEL_CHANGE_RATE = "level_change_rate"
CONF_HI_REZ_HUE = "hi_rez_hue"
CONF_UPDATE_GROUPS = "update_groups"
CONF_UPDATE_BULBS = "update_bulbs"
CONF_UPDATE_SCENES = "update_scenes"
CONF_POLL_INTERVAL = "poll_interval"

# Default values
DEFAULT_API_VERSION = ApiVersion.V1.value
DEFAULT_TRANSITION_TIME = 400  # ms, matches the bridge's own default
DEFAULT_LEVEL_CHANGE_RATE = "fast"
DEFAULT_HI_REZ_HUE = False
DEFAULT_UPDATE_GROUPS = False
DEFAULT_UPDATE_BULBS = True
DEFAULT_UPDATE_SCENES = True
DEFAULT_POLL_INTERVAL = 10

LEVEL_CHANGE_RATES = ["slow", "medium", "fast"]

# Transition times for start_level_change, in deciseconds
LEVEL_CHANGE_TRANSITIONS = {"fast": 30, "medium": 45, "slow": 60}

REQUEST_TIMEOUT = 10

# Service names
SERVICE_REFRESH = "refresh"
SERVICE_PRESET_LEVEL = "preset_level"
SERVICE_PRESET_COLOR_TEMPERATURE = "preset_color_temperature"
SERVICE_PRESET_COLOR = "preset_color"
SERVICE_START_LEVEL_CHANGE = "start_level_change"
SERVICE_STOP_LEVEL_CHANGE = "stop_level_change"
SERVICE_FLASH = "flash"
SERVICE_FLASH_ONCE = "flash_once"
SERVICE_FLASH_OFF = "flash_off"

# Dispatcher signals, formatted with the config entry id
SIGNAL_BRIDGE_STATUS = f"{DOMAIN}_bridge_status_{{}}"
SIGNAL_REDISCOVERY = f"{DOMAIN}_rediscovery_{{}}"
SIGNAL_GROUP_SCENES_OFF = f"{DOMAIN}_group_scenes_off_{{}}"

# Hue API min/max values - https://developers.meethue.com/develop/hue-api/lights-api/
HUE_API_STATE_BRI_MIN = 1
HUE_API_STATE_BRI_MAX = 254
HUE_API_STATE_HUE_MIN = 0
HUE_API_STATE_HUE_MAX = 65535
HUE_API_STATE_SAT_MIN = 0
HUE_API_STATE_SAT_MAX = 254
HUE_API_STATE_CT_MIN = 153
HUE_API_STATE_CT_MAX = 500

# v2 brightness is a percentage with two decimals
HUE_API_V2_BRI_MIN = 0.0
HUE_API_V2_BRI_MAX = 100.0

# Hue API state key names (v1, flat)
HUE_API_STATE_ON = "on"
HUE_API_STATE_ANY_ON = "any_on"
HUE_API_STATE_BRI = "bri"
HUE_API_STATE_BRI_INC = "bri_inc"
HUE_API_STATE_COLORMODE = "colormode"
HUE_API_STATE_HUE = "hue"
HUE_API_STATE_SAT = "sat"
HUE_API_STATE_CT = "ct"
HUE_API_STATE_XY = "xy"
HUE_API_STATE_EFFECT = "effect"
HUE_API_STATE_ALERT = "alert"
HUE_API_STATE_TRANSITION = "transitiontime"
HUE_API_STATE_REACHABLE = "reachable"

# Hue API v2 resource keys (nested)
HUE_V2_ON = "on"
HUE_V2_DIMMING = "dimming"
HUE_V2_DIMMING_DELTA = "dimming_delta"
HUE_V2_COLOR_TEMPERATURE = "color_temperature"
HUE_V2_COLOR = "color"
HUE_V2_DYNAMICS = "dynamics"
HUE_V2_SIGNALING = "signaling"
HUE_V2_IDENTIFY = "identify"
HUE_V2_ID_V1 = "id_v1"
HUE_V2_STATUS = "status"

# Light effects offered to the hub, keyed by effect number
LIGHT_EFFECTS = {0: "None", 1: "Color Loop"}

# Default attributes reported for a freshly created group
GROUP_DEFAULT_ATTRIBUTES = {
    HUE_API_STATE_ANY_ON: False,
    HUE_API_STATE_BRI: 254,
    HUE_API_STATE_HUE: 8593,
    HUE_API_STATE_SAT: 121,
    HUE_API_STATE_CT: 370,
}

# Bridge "type" strings mapped to our device types
HUE_TYPE_ON_OFF = "On/Off light"
HUE_TYPE_ON_OFF_PLUG = "On/Off plug-in unit"
HUE_TYPE_DIMMABLE = "Dimmable light"
HUE_TYPE_COLOR_TEMPERATURE = "Color temperature light"
HUE_TYPE_COLOR = "Color light"
HUE_TYPE_EXTENDED_COLOR = "Extended color light"
