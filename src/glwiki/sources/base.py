"""Contract for the remote project/group source."""

from abc import ABC, abstractmethod

from glwiki.models import Group, Project


class ProjectSource(ABC):
    """A slow, fallible, paged source of projects and groups.

    Implementations raise ``glwiki.errors.FetchError`` on any failure.
    """

    @abstractmethod
    def list_projects(self) -> list[Project]:
        """Return the projects the credential can access, most recently active first."""
        pass

    @abstractmethod
    def list_groups(self) -> list[Group]:
        """Return every accessible group and subgroup."""
        pass
