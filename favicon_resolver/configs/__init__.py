# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at http://mozilla.org/MPL/2.0/.

"""Configuration for favicon-resolver"""

import pathlib

from dynaconf import Dynaconf, Validator

# Validators for favicon-resolver settings.
_validators = [
    Validator("deployment.canary", is_type_of=bool),
    Validator("logging.format", is_in=["mozlog", "pretty"]),
    Validator("logging.level", is_in=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    Validator("logging.can_propagate", is_type_of=bool),
    Validator("metrics.dev_logger", is_type_of=bool),
    Validator("metrics.host", is_type_of=str),
    Validator("metrics.port", gte=0, is_type_of=int),
    Validator("sentry.env", is_in=["prod", "stage", "dev"]),
    Validator("sentry.mode", is_in=["disabled", "release", "debug"]),
    Validator("sentry.traces_sample_rate", gte=0, lte=1),
    Validator("runtime.cache_max_age_sec", is_type_of=int, gte=0),
    # Covers the whole fallback chain; must stay below the edge proxy timeout.
    Validator("runtime.resolution_timeout_sec", is_type_of=float, gt=0, lte=60.0),
    Validator("web.api.v1.target_character_max", is_type_of=int, gt=3, lte=4096),
    Validator("icon.target_size", is_type_of=int, gte=1, lte=1024),
    Validator("icon.min_icon_bytes", is_type_of=int, gte=0),
    Validator("icon.max_icon_bytes", is_type_of=int, gt=0),
    Validator("icon.max_decoded_pixels", is_type_of=int, gt=0),
    Validator("icon.max_candidates", is_type_of=int, gte=1),
    Validator("icon.fetch_timeout_sec", is_type_of=float, gt=0),
    Validator("icon.connect_timeout_sec", is_type_of=float, gt=0),
    Validator("icon.placeholder_enabled", is_type_of=bool),
    Validator("icon.retry_plain_http", is_type_of=bool),
    Validator("icon.unsupported_type_policy", is_in=["passthrough", "reject"]),
    Validator("icon.on_decode_failure", is_in=["next", "original"]),
    Validator("icon.lookup_services", is_type_of=list),
    Validator("icon.high_reputation_hosts", is_type_of=list),
    Validator("icon.low_reputation_hosts", is_type_of=list),
    Validator(
        "scoring.vector",
        "scoring.high_priority_role",
        "scoring.icon_role",
        "scoring.any_size",
        "scoring.social_preview",
        "scoring.data_uri",
        "scoring.svg_extension",
        "scoring.png_extension",
        "scoring.ico_extension",
        "scoring.raster_extension",
        "scoring.apple_touch_href",
        "scoring.high_reputation_host",
        "scoring.low_reputation_host",
        is_type_of=int,
        must_exist=True,
    ),
]

# `root_path` = The root path for Dynaconf, the `favicon_resolver` package directory.
# `envvar_prefix` = Export envvars with `export FAVICON_FOO=bar`.
# `settings_files` = Load these files in the order.
# `environments` = Enable layered environments such as `development`, `production`, `testing` etc.
# `env_switcher` = Switch environments by `export FAVICON_ENV=production`. Default: `development`.
# `validators` = Define validators for favicon-resolver settings.

settings = Dynaconf(
    root_path=str(pathlib.Path(__file__).resolve().parent.parent),
    envvar_prefix="FAVICON",
    settings_files=[
        "configs/default.toml",
        "configs/development.toml",
        "configs/production.toml",
        "configs/testing.toml",
    ],
    environments=True,
    env_switcher="FAVICON_ENV",
    validators=_validators,
)
