import json
import logging
import os

from edit_history import DEFAULT_MAX_DEPTH
from sort_engine import DEFAULT_WORKERS, PARALLEL_THRESHOLD
from type_sniffer import SAMPLE_SIZE

logger = logging.getLogger(__name__)

HOME = os.path.expanduser("~")
XDG_CONFIG_HOME = os.environ.get("XDG_CONFIG_HOME")
CONFIG_HOME = XDG_CONFIG_HOME if XDG_CONFIG_HOME else os.path.join(HOME, ".config")
CONFIG_DIR = os.path.join(CONFIG_HOME, "csvnav")
CONFIG_JSON = os.path.join(CONFIG_DIR, "config.json")

# default settings
SAMPLE_SIZE_DEFAULT = SAMPLE_SIZE
MAX_HISTORY_DEFAULT = DEFAULT_MAX_DEPTH
PARALLEL_THRESHOLD_DEFAULT = PARALLEL_THRESHOLD
WORKERS_DEFAULT = DEFAULT_WORKERS
DELIMITER_DEFAULT = ","
QUOTE_DEFAULT = '"'
HAS_HEADER_DEFAULT = "infer"
TRIM_DEFAULT = True


def _positive_int(value):
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if value > 0 else None


def _single_char(value):
    if isinstance(value, str) and len(value) == 1:
        return value
    return None


def default_config() -> dict:
    return {
        "SAMPLE_SIZE": SAMPLE_SIZE_DEFAULT,
        "MAX_HISTORY": MAX_HISTORY_DEFAULT,
        "PARALLEL_THRESHOLD": PARALLEL_THRESHOLD_DEFAULT,
        "WORKERS": WORKERS_DEFAULT,
        "DELIMITER": DELIMITER_DEFAULT,
        "QUOTE": QUOTE_DEFAULT,
        "HAS_HEADER": HAS_HEADER_DEFAULT,
        "TRIM": TRIM_DEFAULT,
    }


def load_config() -> dict:
    cfg = default_config()

    if not os.path.exists(CONFIG_JSON):
        return cfg

    try:
        with open(CONFIG_JSON, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", CONFIG_JSON, exc)
        return cfg

    if not isinstance(data, dict):
        logger.warning("Ignoring config %s: top level must be an object", CONFIG_JSON)
        return cfg

    engine = data.get("engine")
    if isinstance(engine, dict):
        for key, name in (
            ("sample_size", "SAMPLE_SIZE"),
            ("max_history", "MAX_HISTORY"),
            ("parallel_threshold", "PARALLEL_THRESHOLD"),
            ("workers", "WORKERS"),
        ):
            if key not in engine:
                continue
            value = _positive_int(engine[key])
            if value is None:
                logger.warning("Ignoring engine.%s=%r: expected a positive integer", key, engine[key])
                continue
            cfg[name] = value

    csv_opts = data.get("csv")
    if isinstance(csv_opts, dict):
        for key, name in (("delimiter", "DELIMITER"), ("quote", "QUOTE")):
            if key not in csv_opts:
                continue
            value = _single_char(csv_opts[key])
            if value is None:
                logger.warning("Ignoring csv.%s=%r: expected one character", key, csv_opts[key])
                continue
            cfg[name] = value
        has_header = csv_opts.get("has_header")
        if has_header in (True, False, "infer"):
            cfg["HAS_HEADER"] = has_header
        elif has_header is not None:
            logger.warning("Ignoring csv.has_header=%r", has_header)
        trim = csv_opts.get("trim")
        if isinstance(trim, bool):
            cfg["TRIM"] = trim

    if cfg["DELIMITER"] == cfg["QUOTE"]:
        logger.warning("Delimiter and quote are both %r; using defaults", cfg["QUOTE"])
        cfg["DELIMITER"] = DELIMITER_DEFAULT
        cfg["QUOTE"] = QUOTE_DEFAULT

    return cfg
