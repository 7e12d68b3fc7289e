import os
from dataclasses import dataclass, fields

POLL_INTERVAL_SECONDS: int = 300
REQUEST_TIMEOUT_SECONDS: int = 10
NOTIFY_TIMEOUT_SECONDS: int = 15
MAX_CONCURRENT_SECTIONS: int = 8   # sections checked in parallel within one pass
CONNECTION_POOL_LIMIT: int = 50

CATALOG_API_BASE: str = "http://api-gw.it.umich.edu/Curriculum/SOC/v1"
TOKEN_URL: str = "https://api-km.it.umich.edu/token"

# legacy LSA course guide; query string is content={marker}{subject}{number}{section}
LEGACY_CATALOG_URL: str = "http://www.lsa.umich.edu/cg/cg_sections.aspx"
LEGACY_CONTENT_MARKER: str = "1960"
LEGACY_TERM_ARRAY: str = "f_13_1960"

MAIL_SENDER: str = "Umich Class Checker <umclasschecker@gmail.com>"
MAIL_SUBJECT: str = "Umich Class Status Change"
SMTP_HOST: str = "smtp.gmail.com"
SMTP_PORT: int = 587

DATABASE_PATH: str = "class_checker.db"

_ENV_PREFIX = "CLASS_CHECKER_"


@dataclass(frozen=True)
class CheckerConfig:
    """
    Every knob the checker needs, passed explicitly into the components
    that use it. Defaults come from the module-level constants above.
    """
    catalog_mode: str = "api"                  # api | legacy
    api_base: str = CATALOG_API_BASE
    legacy_url: str = LEGACY_CATALOG_URL
    legacy_content_marker: str = LEGACY_CONTENT_MARKER
    legacy_term_array: str = LEGACY_TERM_ARRAY

    access_token: str = ""
    token_url: str = TOKEN_URL
    consumer_key: str = ""
    consumer_secret: str = ""

    poll_interval: float = POLL_INTERVAL_SECONDS
    request_timeout: float = REQUEST_TIMEOUT_SECONDS
    notify_timeout: float = NOTIFY_TIMEOUT_SECONDS
    max_concurrency: int = MAX_CONCURRENT_SECTIONS
    pool_limit: int = CONNECTION_POOL_LIMIT

    notifier: str = "email"                    # email | console
    mail_sender: str = MAIL_SENDER
    mail_subject: str = MAIL_SUBJECT
    smtp_host: str = SMTP_HOST
    smtp_port: int = SMTP_PORT
    smtp_user: str = ""
    smtp_password: str = ""

    database_path: str = DATABASE_PATH

    def __post_init__(self) -> None:
        if self.catalog_mode not in ("api", "legacy"):
            raise ValueError(f"catalog_mode must be 'api' or 'legacy', got {self.catalog_mode!r}")
        if self.notifier not in ("email", "console"):
            raise ValueError(f"notifier must be 'email' or 'console', got {self.notifier!r}")
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides) -> "CheckerConfig":
        """
        Build a config from CLASS_CHECKER_* variables, e.g.
        CLASS_CHECKER_CATALOG_MODE=legacy or CLASS_CHECKER_SMTP_PORT=465.
        Keyword overrides win over the environment.
        """
        environ = os.environ if environ is None else environ
        values: dict = {}
        for f in fields(cls):
            raw = environ.get(_ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            if f.type in ("int", int):
                values[f.name] = int(raw)
            elif f.type in ("float", float):
                values[f.name] = float(raw)
            else:
                values[f.name] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
