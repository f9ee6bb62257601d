"""glwiki - browse GitLab projects by group and read their wikis."""

__version__ = "0.1.0"
