"""Shared constants for readwise-vault.

For environment-based configuration use the env module:
    from common.env import env
    db_path = env.database_path()
"""

# Separates the user-owned part of a note from the regenerated highlights
HIGHLIGHTS_BEGIN_TOKEN = "%% HIGHLIGHTS_BEGIN %%"

# Front matter keys identifying notes managed by the exporter
NOTE_KIND_KEY = "note-kind"
NOTE_KIND_VALUE = "readwise"
FOREIGN_KEY = "__readwise_fk"
STRANDED_KEY = "stranded"

KINDLE_LOCATION_URL = "https://readwise.io/to_kindle?action=open&asin={asin}&location={location}"
