"""
Initializes the Dynaconf settings object for the archive_acquirer component.
This module is the single source of truth for all configuration.

The packaged `config/settings.toml` holds the defaults; single keys can be
overridden with ARCHIVE_ACQUIRER_<SECTION>__<KEY> environment variables,
e.g. ARCHIVE_ACQUIRER_TRANSPORT__BACKEND=curl.
"""

from pathlib import Path
from dynaconf import Dynaconf

PACKAGE_ROOT = Path(__file__).parent

settings = Dynaconf(
    root_path=PACKAGE_ROOT,
    settings_files=["config/settings.toml"],
    envvar_prefix="ARCHIVE_ACQUIRER",
    merge_enabled=True,
    environments=False,
    load_dotenv=False,
)
