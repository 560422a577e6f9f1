"""
Configuration Management for regwatch
Centralizes all environment-based configuration and settings

Sources, later ones overriding earlier ones:
1. JSON config file (REGWATCH_CONFIG_FILE, default ./config.json)
2. REGWATCH_* environment variables
   (REGWATCH_REGISTRY_<TYPE>[_<NAME>]_<KEY>, REGWATCH_LOG_LEVEL, ...)

Any variable ending in __FILE is replaced by the content of the file it
points to (Docker secrets).

The config file is polled for changes once it has been loaded; listeners
registered with on_config_file_change() are notified on every change.
"""

import copy
import json
import os
import logging
import threading
from logging.handlers import RotatingFileHandler
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

ENV_PREFIX = 'REGWATCH_'
VAR_FILE_SUFFIX = '__FILE'
DEFAULT_CONFIG_FILE = './config.json'
DEFAULT_HTTP_TIMEOUT = 30.0
DEFAULT_WATCH_INTERVAL = 5.0
LOG_LEVELS = ('debug', 'info', 'warning', 'error')

_cached_config: Optional[Dict[str, Any]] = None

# Config file watcher
_config_callbacks: List[Callable[[], None]] = []
_watched_state: Optional[Tuple[int, int]] = None
_watcher_thread: Optional[threading.Thread] = None
_watcher_shutdown: Optional[threading.Event] = None
_watch_lock = threading.Lock()


def _base_config() -> Dict[str, Any]:
    return {
        'registry': {},
        'log': {'level': 'info'},
    }


def replace_secrets(env_vars: Dict[str, str]) -> Dict[str, str]:
    """
    Resolve <VAR>__FILE variables to <VAR> with the file content.

    Args:
        env_vars: REGWATCH_* variables (modified in place)

    Returns:
        The same dict, for chaining
    """
    secret_vars = [name for name in env_vars if name.upper().endswith(VAR_FILE_SUFFIX)]
    for secret_var in secret_vars:
        secret_key = secret_var[:-len(VAR_FILE_SUFFIX)]
        secret_path = env_vars.pop(secret_var)
        with open(secret_path, 'r', encoding='utf-8') as f:
            env_vars[secret_key] = f.read().rstrip('\n')
    return env_vars


def _set_value(target: Dict[str, Any], path: list, value: Any):
    """Set target[path[0]][path[1]]... = value, creating dicts on the way."""
    for part in path[:-1]:
        existing = target.get(part)
        if not isinstance(existing, dict):
            existing = {}
            target[part] = existing
        target = existing
    target[path[-1]] = value


def _load_config_file(config: Dict[str, Any]) -> Dict[str, Any]:
    config_file = _config_file_path()

    if not os.path.exists(config_file):
        if config_file != DEFAULT_CONFIG_FILE:
            logger.warning(f"Config file {config_file} does not exist, using only environment variables")
        else:
            logger.info(f"Default config file {config_file} does not exist, using only environment variables")
        return config

    try:
        with open(config_file, 'r', encoding='utf-8') as f:
            content = f.read()
    except OSError as e:
        logger.error(f"Failed to read configuration file {config_file}: {e}")
        return _base_config()

    if not content.strip():
        logger.error(f"Config file {config_file} is empty")
        return _base_config()

    try:
        file_config = json.loads(content)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to load configuration file {config_file}: {e}")
        return _base_config()

    if not isinstance(file_config, dict):
        logger.error(f"Config file {config_file} does not contain a valid JSON object")
        return _base_config()

    for key, value in file_config.items():
        if isinstance(value, dict) and isinstance(config.get(key), dict):
            config[key].update(value)
        else:
            config[key] = value
    return config


def _apply_environment(config: Dict[str, Any]) -> Dict[str, Any]:
    env_vars = {
        name: value for name, value in os.environ.items()
        if name.upper().startswith(ENV_PREFIX)
    }
    replace_secrets(env_vars)

    for name, value in env_vars.items():
        parts = name[len(ENV_PREFIX):].lower().split('_')
        if parts[0] == 'registry' and len(parts) >= 2:
            _set_value(config['registry'], parts[1:], value)
        elif parts == ['log', 'level']:
            config['log']['level'] = value
    return config


def get_config() -> Dict[str, Any]:
    """Return the merged configuration (file + environment), cached."""
    global _cached_config
    if _cached_config is None:
        if _watcher_thread is None:
            _start_watcher()
        config = _load_config_file(_base_config())
        if not isinstance(config.get('registry'), dict):
            logger.error("Invalid configuration for key: registry, expected an object")
            config['registry'] = {}
        if not isinstance(config.get('log'), dict):
            config['log'] = {'level': 'info'}
        _cached_config = _apply_environment(config)
    return _cached_config


def reload_config():
    """Drop the cached configuration; the next read re-parses file + environment."""
    global _cached_config
    _cached_config = None


def _config_file_path() -> str:
    return os.getenv(f'{ENV_PREFIX}CONFIG_FILE', DEFAULT_CONFIG_FILE)


def _config_file_state(path: str) -> Optional[Tuple[int, int]]:
    """(mtime_ns, size) of the config file, None when it does not exist."""
    try:
        stat = os.stat(path)
    except OSError:
        return None
    return stat.st_mtime_ns, stat.st_size


def get_watch_interval() -> float:
    """Seconds between two config file checks (REGWATCH_CONFIG_WATCH_INTERVAL)."""
    value = os.getenv(f'{ENV_PREFIX}CONFIG_WATCH_INTERVAL')
    if not value:
        return DEFAULT_WATCH_INTERVAL
    try:
        interval = float(value)
    except ValueError:
        logger.warning(f"Invalid {ENV_PREFIX}CONFIG_WATCH_INTERVAL '{value}', using {DEFAULT_WATCH_INTERVAL}")
        return DEFAULT_WATCH_INTERVAL
    return interval if interval > 0 else DEFAULT_WATCH_INTERVAL


def on_config_file_change(callback: Callable[[], None]):
    """
    Register a callback fired when the config file changes.

    Callbacks run on the watcher thread, after the change is detected and
    before anything re-reads the file; they usually call reload_config()
    and rebuild whatever depends on the configuration.
    """
    _config_callbacks.append(callback)


def remove_config_file_callback(callback: Callable[[], None]):
    if callback in _config_callbacks:
        _config_callbacks.remove(callback)


def check_config_file() -> bool:
    """
    Compare the config file with the last known state and fire callbacks on change.

    Creation and deletion count as changes.

    Returns:
        True if a change was detected
    """
    global _watched_state
    config_file = _config_file_path()
    with _watch_lock:
        state = _config_file_state(config_file)
        if state == _watched_state:
            return False

        _watched_state = state
        logger.info(f"Config file {config_file} changed, notifying {len(_config_callbacks)} listener(s)")
        for callback in list(_config_callbacks):
            try:
                callback()
            except Exception as e:
                logger.error(f"Config change callback failed: {e}", exc_info=True)
    return True


def _watch_config_file(shutdown: threading.Event, interval: float):
    while not shutdown.wait(timeout=interval):
        check_config_file()


def _start_watcher():
    global _watched_state, _watcher_thread, _watcher_shutdown
    _watched_state = _config_file_state(_config_file_path())
    _watcher_shutdown = threading.Event()
    _watcher_thread = threading.Thread(
        target=_watch_config_file,
        args=(_watcher_shutdown, get_watch_interval()),
        daemon=True,
        name="ConfigFileWatcher"
    )
    _watcher_thread.start()
    logger.debug(f"Watching config file {_config_file_path()}")


def stop_watcher():
    """Stop watching the config file (registered callbacks are kept)."""
    global _watched_state, _watcher_thread, _watcher_shutdown
    if _watcher_thread is None:
        return
    _watcher_shutdown.set()
    if _watcher_thread is not threading.current_thread():
        _watcher_thread.join(timeout=5)
    _watcher_thread = None
    _watcher_shutdown = None
    _watched_state = None


def get_registry_configurations() -> Dict[str, Any]:
    """
    Get registry configurations.

    Returns:
        { "<type>": config | "" | { "<name>": config } } (a copy)
    """
    return copy.deepcopy(get_config()['registry'])


def get_log_level() -> str:
    level = str(get_config()['log'].get('level', 'info')).lower()
    if level == 'warn':
        level = 'warning'
    return level if level in LOG_LEVELS else 'info'


def get_registry_timeout() -> float:
    """Total timeout (seconds) for registry auth HTTP calls."""
    value = os.getenv(f'{ENV_PREFIX}HTTP_TIMEOUT')
    if not value:
        return DEFAULT_HTTP_TIMEOUT
    try:
        timeout = float(value)
    except ValueError:
        logger.warning(f"Invalid {ENV_PREFIX}HTTP_TIMEOUT '{value}', using {DEFAULT_HTTP_TIMEOUT}")
        return DEFAULT_HTTP_TIMEOUT
    return timeout if timeout > 0 else DEFAULT_HTTP_TIMEOUT


def setup_logging():
    """Configure application logging (console, plus rotating file when REGWATCH_LOG_DIR is set)"""
    root_logger = logging.getLogger()

    # Close and clear any existing handlers to prevent file descriptor leaks
    for handler in root_logger.handlers[:]:  # Copy list to avoid modification during iteration
        handler.close()
        root_logger.removeHandler(handler)

    level = getattr(logging, get_log_level().upper())
    root_logger.setLevel(level)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    log_dir = os.getenv(f'{ENV_PREFIX}LOG_DIR')
    if log_dir:
        os.makedirs(log_dir, mode=0o700, exist_ok=True)
        # Max 10MB per file, keep 14 backups
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, 'regwatch.log'),
            maxBytes=10*1024*1024,
            backupCount=14,
            encoding='utf-8'
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # botocore and urllib3 are chatty at debug level
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
