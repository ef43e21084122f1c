"""Constants used by fwsize."""

__version__ = "0.3.0"

APP_NAME = "fwsize"

ENV_CONFIG_DIR = "FWSIZE_CONFIG_DIR"
ENV_LOG_LEVEL = "FWSIZE_LOG_LEVEL"
ENV_VERBOSE = "FWSIZE_VERBOSE"
ENV_NO_COLOR = "NO_COLOR"
ENV_DEV = "FWSIZE_DASHBOARD_DEV"

CONF_AUTO_DETECT = "auto_detect"
CONF_TOOLCHAIN_ROOT = "toolchain_root"
CONF_NM_PATH = "nm_path"
CONF_OBJDUMP_PATH = "objdump_path"
CONF_STRINGS_PATH = "strings_path"
CONF_TIMEOUT = "timeout"

CONF_BINARY_PATH = "binary_path"
CONF_MAP_PATH = "map_path"
CONF_TOOLCHAIN = "toolchain"

CONF_QUERY = "query"
CONF_PAGE = "page"
CONF_PAGE_SIZE = "page_size"
CONF_SORT = "sort"
CONF_ORDER = "order"
CONF_ADDRESS = "address"

DEFAULT_PAGE_SIZE = 50
