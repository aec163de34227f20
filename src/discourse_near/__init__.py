"""Link NEAR accounts to Discourse users and post on their behalf."""

__version__ = "0.1.0"
