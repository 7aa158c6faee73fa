import os


def get_settings_module() -> str:
    # APP_ENV selects the settings module; anything unrecognised means development.
    env = os.getenv("APP_ENV", "development").lower()

    if env in {"prod", "production"}:
        return "tuition_ledger.config.production"

    if env in {"test", "testing"}:
        return "tuition_ledger.config.testing"

    return "tuition_ledger.config.development"
