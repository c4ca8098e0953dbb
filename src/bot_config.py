"""Bot configuration.

SessionConfig is built once at startup (defaults, then an optional JSON
file, then command-line overrides) and passed explicitly to the match
loop and every game session.  Nothing reads configuration from globals.
"""
import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from types import MappingProxyType

from errors import ConfigError

DEFAULT_ENGINE_PATH = os.path.join('Stockfish', 'src', 'stockfish')
DEFAULT_LOBBY_URL = 'https://lichess.org/?any#hook'

# Accepted JSON spellings → SessionConfig field names.
_KEY_ALIASES = {
    'stockfish_binary_path': 'engine_path',
    'engineBinaryPath': 'engine_path',
    'maxGames': 'max_games',
    'onlyOneGamePerOpponent': 'only_one_game_per_opponent',
    'only_one_game_per_player': 'only_one_game_per_opponent',
}

_PAIR_FIELDS = ('movetime', 'poll_interval_ms', 'click_delay_ms')


@dataclass(frozen=True)
class SessionConfig:
    # Engine
    engine_path: str = DEFAULT_ENGINE_PATH
    engine_options: Mapping = field(default_factory=lambda: {'Threads': '4'})
    engine_log_path: str = 'engine.log'
    movetime: tuple = (100, 300)
    depth_threshold: int = 6
    use_fen: bool = False

    # Match policy
    max_games: int = 5
    only_one_game_per_opponent: bool = False
    seek_timeout_s: float = 120.0
    rematch_timeout_s: float = 22.0

    # Board / humanization
    square_size_px: int = 64
    poll_interval_ms: tuple = (40, 60)
    click_delay_ms: tuple = (35, 60)

    # Browser
    lobby_url: str = DEFAULT_LOBBY_URL
    headless: bool = False

    def __post_init__(self):
        for name in _PAIR_FIELDS:
            value = getattr(self, name)
            if isinstance(value, list):
                object.__setattr__(self, name, tuple(value))
        if not isinstance(self.engine_options, Mapping):
            raise ConfigError(f"engine_options must be an object, got {self.engine_options!r}")
        object.__setattr__(self, 'engine_options', MappingProxyType(dict(self.engine_options)))
        validate(self)

    def with_overrides(self, **overrides):
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if not changes:
            return self
        return replace(self, **changes)


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str


def _check_range(name, value, allow_zero=False):
    if not isinstance(value, tuple) or len(value) != 2:
        raise ConfigError(f"{name} must be a [min, max] pair, got {value!r}")
    low, high = value
    if not all(isinstance(v, int) and not isinstance(v, bool) for v in value):
        raise ConfigError(f"{name} bounds must be integers, got {value!r}")
    if low < 0 or (low == 0 and not allow_zero) or low > high:
        raise ConfigError(f"{name} must satisfy 0 < min <= max, got {value!r}")


def validate(config):
    """Raise ConfigError if *config* is not usable."""
    if not isinstance(config.max_games, int) or isinstance(config.max_games, bool) \
            or config.max_games < 1:
        raise ConfigError(f"max_games must be a positive integer, got {config.max_games!r}")
    _check_range('movetime', config.movetime)
    _check_range('poll_interval_ms', config.poll_interval_ms)
    _check_range('click_delay_ms', config.click_delay_ms, allow_zero=True)
    if config.square_size_px <= 0:
        raise ConfigError("square_size_px must be positive")
    if config.depth_threshold < 0:
        raise ConfigError("depth_threshold must not be negative")
    if config.seek_timeout_s <= 0 or config.rematch_timeout_s <= 0:
        raise ConfigError("timeouts must be positive")
    if not config.engine_path:
        raise ConfigError("engine_path must not be empty")


def load_config(path=None, **overrides):
    """Build a SessionConfig from an optional JSON file plus overrides.

    Args:
        path:      JSON file with SessionConfig keys (camelCase and
                   older key names are accepted too).  None skips it.
        overrides: Field values that win over the file; None is ignored.

    Raises:
        ConfigError: on unreadable files, unknown keys or invalid values.
    """
    values = {}
    if path:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Could not read config file {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")
        known = {f.name for f in fields(SessionConfig)}
        for key, value in data.items():
            name = _KEY_ALIASES.get(key, key)
            if name not in known:
                raise ConfigError(f"Unknown config key: {key}")
            values[name] = value

    values.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return SessionConfig(**values)
    except TypeError as exc:
        raise ConfigError(str(exc)) from exc


def load_credentials(environ=None):
    """Read LICHESS_USER / LICHESS_PWD from the environment.

    Raises:
        ConfigError: if either variable is missing.
    """
    environ = os.environ if environ is None else environ
    username = environ.get('LICHESS_USER')
    password = environ.get('LICHESS_PWD')
    if not username or not password:
        raise ConfigError("Set LICHESS_USER and LICHESS_PWD in the environment")
    return Credentials(username=username, password=password)
