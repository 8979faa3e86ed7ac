"""Constants for the line CLI."""

DEFAULT_ACCOUNT_NAME = "default"

SOURCE_EXPLICIT = "(from --account flag or LINE_ACCOUNT env)"
SOURCE_PRIMARY = "(primary)"
SOURCE_FIRST = "(first account)"

NOT_LOGGED_IN_HINT = "Run: line auth login"
